from typing import Any, List, Optional, Union

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import AliasChoices, Field, constr
from sqlalchemy.orm import Session

from quizdesk.api.base import CamelModel, SuccessOut
from quizdesk.core.auth import optional_session_token, require_session_token
from quizdesk.core.database import get_db
from quizdesk.services import session_engine
from quizdesk.services.messages import format_session_results
from quizdesk.services.notifier import Notifier, get_notifier

router = APIRouter()


class SessionStart(CamelModel):
    user_uuid: constr(min_length=1, max_length=64)
    mode: str


class SessionStarted(CamelModel):
    success: bool = True
    session_id: int
    session_token: str
    total_questions: int


class AnswerOptionOut(CamelModel):
    id: int
    text: str


class QuestionOut(CamelModel):
    id: int
    text: str
    answers: List[AnswerOptionOut]
    document_link: Optional[str] = None
    document_text: Optional[str] = None
    image_ref: Optional[str] = None


class NextQuestionOut(CamelModel):
    success: bool = True
    question_index: int
    total_questions: int
    question: QuestionOut


class CompletedOut(CamelModel):
    completed: bool = True


class AnswerSubmit(CamelModel):
    question_id: int = Field(validation_alias=AliasChoices("questionId", "questionNumber"))
    answer_id: int


class AnswerOut(CamelModel):
    success: bool = True
    is_correct: bool
    correct_answer_id: int
    correct_answer_text: str


class SessionEnd(CamelModel):
    session_id: int
    correct_answers: int = Field(ge=0)
    wrong_answers: int = Field(ge=0)
    # accepted for older clients; the missed questions are taken from recorded answers
    top_wrong_questions: Optional[List[Any]] = None


@router.post("/session-start", response_model=SessionStarted)
def start_session(payload: SessionStart, db: Session = Depends(get_db)):
    created = session_engine.create_session(db, payload.user_uuid, payload.mode)
    return SessionStarted.model_validate(created)


@router.get("/session/{session_id}/next", response_model=Union[NextQuestionOut, CompletedOut])
def next_question(session_id: int, token: str = Depends(require_session_token), db: Session = Depends(get_db)):
    nxt = session_engine.get_next_question(db, session_id, token)
    if nxt is None:
        return CompletedOut()
    return NextQuestionOut.model_validate(nxt)


@router.post("/session/{session_id}/submit-answer", response_model=AnswerOut)
def submit_answer(session_id: int, payload: AnswerSubmit, token: str = Depends(require_session_token),
                  db: Session = Depends(get_db)):
    result = session_engine.submit_answer(db, session_id, token, payload.question_id, payload.answer_id)
    return AnswerOut.model_validate(result)


@router.post("/session/{session_id}/focus-switch", response_model=SuccessOut)
def focus_switch(session_id: int, token: Optional[str] = Depends(optional_session_token),
                 db: Session = Depends(get_db)):
    session_engine.log_focus_switch(db, session_id, token)
    return SuccessOut()


@router.post("/session-end", response_model=SuccessOut)
def end_session(payload: SessionEnd, background_tasks: BackgroundTasks,
                token: Optional[str] = Depends(optional_session_token),
                db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)):
    summary = session_engine.end_session(db, payload.session_id, payload.correct_answers,
                                         payload.wrong_answers, token=token)
    if summary is not None and notifier.enabled:
        background_tasks.add_task(notifier.notify, format_session_results(summary))
    return SuccessOut()
