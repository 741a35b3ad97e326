"""
Per-question difficulty statistics.

Every counter change is one ``INSERT ... ON CONFLICT DO UPDATE`` statement
that also recomputes ``error_rate`` from the new counters, so concurrent
sessions touching the same question never lose an update and the rate can
never drift from ``100 * total_wrong / total_shown``. None of these helpers
commit; the caller owns the transaction.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import Float, case, cast, func, select
from sqlalchemy.orm import Session

from quizdesk.core.database import dialect_insert
from quizdesk.models.orm import Question, QuestionStat, QuizSession, User


@dataclass
class DifficultQuestion:
    question_id: int
    total_shown: int
    total_wrong: int
    error_rate: float
    question_text: Optional[str] = None


@dataclass
class OverallStats:
    total_users: int
    total_sessions: int
    average_percentage: float
    top_difficult_questions: List[DifficultQuestion] = field(default_factory=list)


def error_rate(total_shown: int, total_wrong: int) -> float:
    return 100.0 * total_wrong / total_shown if total_shown else 0.0


def _bump(db: Session, question_id: int, shown: int, wrong: int) -> None:
    insert = dialect_insert(db)
    new_shown = QuestionStat.total_shown + shown
    new_wrong = QuestionStat.total_wrong + wrong
    stmt = insert(QuestionStat).values(
        question_id=question_id, total_shown=shown, total_wrong=wrong,
        error_rate=error_rate(shown, wrong),
    ).on_conflict_do_update(
        index_elements=[QuestionStat.question_id],
        set_={
            "total_shown": new_shown,
            "total_wrong": new_wrong,
            "error_rate": case((new_shown > 0, cast(new_wrong, Float) * 100.0 / new_shown), else_=0.0),
        },
    )
    db.execute(stmt)


def record_exposure(db: Session, question_id: int) -> None:
    _bump(db, question_id, shown=1, wrong=0)


def record_outcome(db: Session, question_id: int, is_correct: bool) -> None:
    if is_correct:
        # nothing changes, but make sure the row exists for reporting
        _bump(db, question_id, shown=0, wrong=0)
    else:
        _bump(db, question_id, shown=0, wrong=1)


def get_question_stat(db: Session, question_id: int) -> Optional[QuestionStat]:
    return db.get(QuestionStat, question_id, populate_existing=True)


def top_difficult(db: Session, limit: int = 10, min_shown: int = 5) -> List[DifficultQuestion]:
    stmt = (
        select(QuestionStat, Question.question_text)
        .outerjoin(Question, Question.question_number == QuestionStat.question_id)
        .where(QuestionStat.total_shown >= min_shown)
        .order_by(QuestionStat.error_rate.desc(), QuestionStat.total_shown.desc(), QuestionStat.question_id.asc())
        .limit(limit)
    )
    return [
        DifficultQuestion(
            question_id=s.question_id, total_shown=s.total_shown, total_wrong=s.total_wrong,
            error_rate=s.error_rate, question_text=text,
        )
        for s, text in db.execute(stmt).all()
    ]


def overall_stats(db: Session, limit: int = 10, min_shown: int = 5) -> OverallStats:
    total_sessions = db.scalar(select(func.count()).select_from(QuizSession)) or 0
    total_users = db.scalar(select(func.count()).select_from(User)) or 0
    avg = db.scalar(select(func.avg(QuizSession.percentage)).where(QuizSession.end_time.is_not(None)))
    return OverallStats(
        total_users=total_users,
        total_sessions=total_sessions,
        average_percentage=round(float(avg), 2) if avg is not None else 0.0,
        top_difficult_questions=top_difficult(db, limit=limit, min_shown=min_shown),
    )
