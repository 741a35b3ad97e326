"""
Session lifecycle: creation, one-question-at-a-time delivery, answer
validation and closing.

No state lives in the process between requests. A session row carries the
fixed question order and a cursor; the caller proves access with the secret
token minted at creation. The cursor only moves through a conditional
``UPDATE`` keyed on its previous value, so a retried submission cannot
advance it twice.
"""
import logging
import random
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from quizdesk.core.clock import utcnow
from quizdesk.core.config import settings
from quizdesk.core.database import dialect_insert
from quizdesk.core.errors import Conflict, InvalidArgument, NotFound, SessionClosed, Unauthorized
from quizdesk.models.orm import Answer, QuizSession, User
from quizdesk.models.projections import PublicQuestion
from quizdesk.services import question_store, stats

logger = logging.getLogger(__name__)

MODES = ("training", "test")
TOKEN_BYTES = 32
TOKEN_ATTEMPTS = 3


@dataclass
class CreatedSession:
    session_id: int
    session_token: str
    total_questions: int


@dataclass
class NextQuestion:
    question_index: int
    total_questions: int
    question: PublicQuestion


@dataclass
class AnswerResult:
    is_correct: bool
    correct_answer_id: int
    correct_answer_text: str


@dataclass
class SessionSummary:
    session_id: int
    user_uuid: str
    mode: str
    start_time: datetime
    end_time: Optional[datetime]
    correct_answers: int
    wrong_answers: int
    percentage: float
    focus_switches: int
    total_questions: int
    answered: int
    wrong_question_ids: List[int] = field(default_factory=list)


def select_question_ids(catalog: Sequence[int], mode: str, rng: Optional[random.Random] = None,
                        sample_size: Optional[int] = None) -> List[int]:
    """Question order for a new session.

    ``training`` walks the whole catalog in its natural order. ``test`` shuffles
    a copy (``random.shuffle`` is Fisher-Yates) and keeps a prefix of
    ``sample_size`` ids.
    """
    if mode not in MODES:
        raise InvalidArgument("mode must be 'training' or 'test'")
    ids = list(catalog)
    if mode == "training":
        return ids
    size = settings.TEST_MODE_QUESTION_COUNT if sample_size is None else sample_size
    (rng or random.SystemRandom()).shuffle(ids)
    return ids[:size]


def _percentage(correct: int, wrong: int) -> float:
    total = correct + wrong
    return correct / total * 100 if total > 0 else 0.0


def _token_matches(session: QuizSession, token: Optional[str]) -> bool:
    if not token:
        return False
    return secrets.compare_digest(session.session_token.encode(), token.encode())


def _load(db: Session, session_id: int) -> Optional[QuizSession]:
    return db.get(QuizSession, session_id, populate_existing=True)


def _authorize(db: Session, session_id: int, token: str) -> QuizSession:
    session = _load(db, session_id)
    if session is None or not _token_matches(session, token):
        logger.warning("Rejected token for session %s", session_id)
        raise Unauthorized()
    if session.is_closed:
        raise SessionClosed()
    return session


def _upsert_user(db: Session, user_uuid: str) -> None:
    now = utcnow()
    insert = dialect_insert(db)
    db.execute(
        insert(User).values(uuid=user_uuid, first_seen=now, last_seen=now, total_sessions=1)
        .on_conflict_do_update(
            index_elements=[User.uuid],
            set_={"last_seen": now, "total_sessions": User.total_sessions + 1},
        )
    )


def _record_dispensation(db: Session, session_id: int, index: int, question_id: int) -> None:
    # exposure is counted once per (session, question), however often it is fetched
    claimed = db.execute(
        update(QuizSession)
        .where(QuizSession.id == session_id, QuizSession.exposed_question_index == index)
        .values(exposed_question_index=index + 1)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 1:
        stats.record_exposure(db, question_id)


def create_session(db: Session, user_uuid: str, mode: str, rng: Optional[random.Random] = None) -> CreatedSession:
    if not user_uuid:
        raise InvalidArgument("userUuid is required")
    if mode not in MODES:
        raise InvalidArgument("mode must be 'training' or 'test'")

    question_ids = select_question_ids(question_store.list_ids_ordered(db), mode, rng)
    for attempt in range(1, TOKEN_ATTEMPTS + 1):
        token = secrets.token_hex(TOKEN_BYTES)
        try:
            _upsert_user(db, user_uuid)
            session = QuizSession(
                user_uuid=user_uuid, mode=mode, session_token=token,
                question_ids=question_ids, current_question_index=0,
            )
            db.add(session)
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            if attempt == TOKEN_ATTEMPTS:
                raise
            logger.warning("Session token collision, retrying (%d/%d)", attempt, TOKEN_ATTEMPTS)

    logger.info("Session %s started: user=%s mode=%s questions=%d",
                session.id, user_uuid, mode, len(question_ids))
    return CreatedSession(session_id=session.id, session_token=token, total_questions=len(question_ids))


def get_next_question(db: Session, session_id: int, token: str) -> Optional[NextQuestion]:
    """Public view of the question at the cursor, or ``None`` once every question was answered."""
    session = _authorize(db, session_id, token)
    index = session.current_question_index
    total = session.total_questions
    if index >= total:
        return None

    question_id = session.question_ids[index]
    question = question_store.get_public_projection(db, question_id)
    try:
        _record_dispensation(db, session.id, index, question_id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return NextQuestion(question_index=index + 1, total_questions=total, question=question)


def submit_answer(db: Session, session_id: int, token: str, question_id: int, answer_id: int) -> AnswerResult:
    session = _authorize(db, session_id, token)
    key = question_store.get_private_projection(db, question_id)

    index = session.current_question_index
    if index >= session.total_questions or session.question_ids[index] != question_id:
        raise Conflict(f"Question {question_id} is not the current question of session {session_id}")

    is_correct = answer_id == key.correct_answer_id
    try:
        advanced = db.execute(
            update(QuizSession)
            .where(
                QuizSession.id == session.id,
                QuizSession.current_question_index == index,
                QuizSession.end_time.is_(None),
            )
            .values(
                current_question_index=index + 1,
                correct_answers=QuizSession.correct_answers + (1 if is_correct else 0),
                wrong_answers=QuizSession.wrong_answers + (0 if is_correct else 1),
            )
            .execution_options(synchronize_session=False)
        )
        if advanced.rowcount != 1:
            raise Conflict(f"Session {session_id} moved on before this answer was recorded")
        _record_dispensation(db, session.id, index, question_id)
        db.add(Answer(session_id=session.id, question_id=question_id, is_correct=is_correct, timestamp=utcnow()))
        stats.record_outcome(db, question_id, is_correct)
        db.commit()
    except (Conflict, SQLAlchemyError):
        db.rollback()
        raise

    return AnswerResult(
        is_correct=is_correct,
        correct_answer_id=key.correct_answer_id,
        correct_answer_text=key.correct_answer_text,
    )


def log_focus_switch(db: Session, session_id: int, token: Optional[str]) -> bool:
    """Count a focus/tab switch. Never raises: this is telemetry, not quiz flow."""
    try:
        session = _load(db, session_id)
        if session is None or not _token_matches(session, token) or session.is_closed:
            logger.debug("Focus switch ignored for session %s", session_id)
            return False
        db.execute(
            update(QuizSession)
            .where(QuizSession.id == session.id)
            .values(focus_switches=QuizSession.focus_switches + 1)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return True
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to log focus switch for session %s", session_id)
        return False


def _answer_counts(db: Session, session_id: int) -> tuple[int, int]:
    rows = db.execute(
        select(Answer.is_correct, func.count()).where(Answer.session_id == session_id).group_by(Answer.is_correct)
    ).all()
    counts = {bool(is_correct): n for is_correct, n in rows}
    return counts.get(True, 0), counts.get(False, 0)


def end_session(db: Session, session_id: int, correct_count: int, wrong_count: int,
                token: Optional[str] = None) -> Optional[SessionSummary]:
    """Close a session with counters recomputed from its answer events.

    Returns the final summary, or ``None`` when the session was already closed
    (the stored result is left untouched).
    """
    if correct_count < 0 or wrong_count < 0:
        raise InvalidArgument("answer counts must not be negative")
    session = _load(db, session_id)
    if session is None:
        raise NotFound(f"Session {session_id} not found")
    if token is not None and not _token_matches(session, token):
        logger.warning("Rejected token for session %s on close", session_id)
        raise Unauthorized()

    try:
        # close first: submits are guarded by end_time IS NULL, so the recount below is final
        closed = db.execute(
            update(QuizSession)
            .where(QuizSession.id == session_id, QuizSession.end_time.is_(None))
            .values(end_time=utcnow())
            .execution_options(synchronize_session=False)
        )
        if closed.rowcount != 1:
            db.rollback()
            logger.warning("Session %s is already closed; ignoring repeated close", session_id)
            return None
        correct, wrong = _answer_counts(db, session_id)
        db.execute(
            update(QuizSession)
            .where(QuizSession.id == session_id)
            .values(correct_answers=correct, wrong_answers=wrong, percentage=_percentage(correct, wrong))
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if (correct, wrong) != (correct_count, wrong_count):
        logger.warning("Session %s reported %d/%d, recorded %d/%d; keeping recorded counts",
                       session_id, correct_count, wrong_count, correct, wrong)

    logger.info("Session %s closed: %d correct, %d wrong", session_id, correct, wrong)
    return get_session_stats(db, session_id)


def get_session_stats(db: Session, session_id: int) -> Optional[SessionSummary]:
    session = _load(db, session_id)
    if session is None:
        return None
    wrong_ids = list(db.scalars(
        select(Answer.question_id)
        .where(Answer.session_id == session_id, Answer.is_correct.is_(False))
        .order_by(Answer.id)
    ))
    return SessionSummary(
        session_id=session.id,
        user_uuid=session.user_uuid,
        mode=session.mode,
        start_time=session.start_time,
        end_time=session.end_time,
        correct_answers=session.correct_answers,
        wrong_answers=session.wrong_answers,
        percentage=session.percentage,
        focus_switches=session.focus_switches,
        total_questions=session.total_questions,
        answered=session.current_question_index,
        wrong_question_ids=wrong_ids,
    )
