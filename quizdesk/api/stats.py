from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from quizdesk.api.base import CamelModel
from quizdesk.core.config import settings
from quizdesk.core.database import get_db
from quizdesk.core.errors import NotFound
from quizdesk.services import session_engine, stats
from quizdesk.services.messages import format_overall_stats
from quizdesk.services.notifier import Notifier, get_notifier

router = APIRouter()


class SessionStatsOut(CamelModel):
    session_id: int
    user_uuid: str
    mode: str
    start_time: datetime
    end_time: Optional[datetime] = None
    correct_answers: int
    wrong_answers: int
    percentage: float
    focus_switches: int
    total_questions: int
    answered: int
    wrong_question_ids: List[int]


class DifficultQuestionOut(CamelModel):
    question_id: int
    total_shown: int
    total_wrong: int
    error_rate: float
    question_text: Optional[str] = None


class OverallStatsOut(CamelModel):
    total_users: int
    total_sessions: int
    average_percentage: float
    top_difficult_questions: List[DifficultQuestionOut]


@router.get("/stats/session/{session_id}", response_model=SessionStatsOut)
def session_stats(session_id: int, db: Session = Depends(get_db)):
    summary = session_engine.get_session_stats(db, session_id)
    if summary is None:
        raise NotFound(f"Session {session_id} not found")
    return SessionStatsOut.model_validate(summary)


@router.get("/stats", response_model=OverallStatsOut)
def overall_stats(background_tasks: BackgroundTasks,
                  send_to_telegram: bool = Query(False, alias="sendToTelegram"),
                  db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)):
    result = stats.overall_stats(db, limit=settings.DIFFICULT_LIMIT, min_shown=settings.DIFFICULT_MIN_SHOWN)
    if send_to_telegram and notifier.enabled:
        background_tasks.add_task(notifier.notify, format_overall_stats(result))
    return OverallStatsOut.model_validate(result)
