import threading

import pytest

from quizdesk.services import session_engine, stats
from conftest import WRONG_ID


def _bump_many(session_factory, question_id, outcomes):
    with session_factory() as db:
        stats.record_exposure(db, question_id)
        db.commit()
        for ok in outcomes:
            stats.record_outcome(db, question_id, ok)
            db.commit()


def test_error_rate_tracks_counters_exactly(db, seed):
    seed(1)
    history = [False, True, True, False, True, False, True]
    wrong = 0
    for shown, ok in enumerate(history, 1):
        stats.record_exposure(db, 1)
        stats.record_outcome(db, 1, ok)
        db.commit()
        wrong += 0 if ok else 1
        row = stats.get_question_stat(db, 1)
        assert (row.total_shown, row.total_wrong) == (shown, wrong)
        assert row.error_rate == pytest.approx(100 * row.total_wrong / row.total_shown)


def test_outcome_without_exposure_keeps_rate_defined(db):
    stats.record_outcome(db, 5, True)
    db.commit()
    row = stats.get_question_stat(db, 5)
    assert (row.total_shown, row.total_wrong, row.error_rate) == (0, 0, 0.0)


def test_concurrent_updates_do_not_lose_increments(session_factory, seed):
    seed(1)
    workers = 4
    per_worker = [False] * 10 + [True] * 5
    barrier = threading.Barrier(workers)

    def work():
        barrier.wait()
        for ok in per_worker:
            _bump_many(session_factory, 1, [ok])

    threads = [threading.Thread(target=work) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    with session_factory() as db:
        row = stats.get_question_stat(db, 1)
        assert row.total_shown == workers * len(per_worker)
        assert row.total_wrong == workers * 10
        assert row.error_rate == pytest.approx(100 * row.total_wrong / row.total_shown)


def test_two_sessions_answer_same_question_wrong(session_factory, seed):
    seed(7)
    with session_factory() as db:
        a = session_engine.create_session(db, "user-a", "training")
        b = session_engine.create_session(db, "user-b", "training")
        for s in (a, b):
            for qid in range(1, 7):
                session_engine.submit_answer(db, s.session_id, s.session_token, qid, WRONG_ID)
        before = stats.get_question_stat(db, 7)
        assert before is None

    barrier = threading.Barrier(2)
    errors = []

    def answer(s):
        try:
            with session_factory() as db:
                session_engine.get_next_question(db, s.session_id, s.session_token)
                barrier.wait()
                session_engine.submit_answer(db, s.session_id, s.session_token, 7, WRONG_ID)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=answer, args=(s,)) for s in (a, b)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    with session_factory() as db:
        row = stats.get_question_stat(db, 7)
        assert (row.total_shown, row.total_wrong) == (2, 2)
        assert row.error_rate == pytest.approx(100.0)


def _set(db, qid, shown, wrong):
    for _ in range(shown):
        stats.record_exposure(db, qid)
    for _ in range(wrong):
        stats.record_outcome(db, qid, False)
    db.commit()


def test_top_difficult_ordering(db, seed):
    seed(6)
    _set(db, 1, 10, 5)   # 50%
    _set(db, 2, 4, 4)    # 100% but below min_shown
    _set(db, 3, 20, 10)  # 50%, more shows than #1
    _set(db, 4, 5, 4)    # 80%
    _set(db, 5, 10, 5)   # 50%, ties with #1 on everything but id
    _set(db, 6, 8, 0)    # 0%

    rows = stats.top_difficult(db, limit=10, min_shown=5)
    assert [r.question_id for r in rows] == [4, 3, 1, 5, 6]
    assert rows[0].question_text == "Question 4?"
    assert rows[0].error_rate == pytest.approx(80.0)

    assert [r.question_id for r in stats.top_difficult(db, limit=2, min_shown=5)] == [4, 3]
    assert [r.question_id for r in stats.top_difficult(db, limit=1, min_shown=1)] == [2]


def test_overall_stats(db, seed):
    seed(2)
    s1 = session_engine.create_session(db, "user-a", "training")
    session_engine.submit_answer(db, s1.session_id, s1.session_token, 1, WRONG_ID)
    session_engine.end_session(db, s1.session_id, 0, 1)
    s2 = session_engine.create_session(db, "user-b", "training")
    session_engine.submit_answer(db, s2.session_id, s2.session_token, 1, 2)
    session_engine.end_session(db, s2.session_id, 1, 0)
    session_engine.create_session(db, "user-b", "training")  # still open, excluded from the average

    result = stats.overall_stats(db, limit=10, min_shown=1)
    assert result.total_users == 2
    assert result.total_sessions == 3
    assert result.average_percentage == pytest.approx(50.0)
    assert [q.question_id for q in result.top_difficult_questions] == [1]
    assert result.top_difficult_questions[0].error_rate == pytest.approx(50.0)


def test_overall_stats_empty(db):
    result = stats.overall_stats(db)
    assert (result.total_users, result.total_sessions, result.average_percentage) == (0, 0, 0.0)
    assert result.top_difficult_questions == []
