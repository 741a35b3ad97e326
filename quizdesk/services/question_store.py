import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from quizdesk.core.errors import NotFound
from quizdesk.models.orm import Question
from quizdesk.models.projections import AnswerKey, AnswerOption, PublicQuestion

logger = logging.getLogger(__name__)


@dataclass
class ImportReport:
    imported: int = 0
    failed: int = 0


def list_ids_ordered(db: Session) -> List[int]:
    return list(db.scalars(select(Question.question_number).order_by(Question.question_number)))


def _get(db: Session, question_id: int) -> Question:
    q = db.get(Question, question_id)
    if q is None:
        raise NotFound(f"Question {question_id} not found")
    return q


def get_public_projection(db: Session, question_id: int) -> PublicQuestion:
    q = _get(db, question_id)
    return PublicQuestion(
        id=q.question_number,
        text=q.question_text,
        answers=[AnswerOption(id=int(a["id"]), text=a["text"]) for a in q.answers],
        document_link=q.document_link or None,
        document_text=q.document_text or None,
        image_ref=q.image_ref or None,
    )


def get_private_projection(db: Session, question_id: int) -> AnswerKey:
    q = _get(db, question_id)
    return AnswerKey(correct_answer_id=q.correct_answer_id, correct_answer_text=q.correct_answer_text)


def import_questions(db: Session, records: Iterable[Dict[str, Any]], replace: bool = True) -> ImportReport:
    """Load raw catalog records, splitting the ``flag`` marker off into the answer key.

    Records must look like ``{"question_number", "question_text", "answers":
    [{"id", "text", "flag"}], ...}``. A record without exactly one flagged
    answer is skipped.
    """
    report = ImportReport()
    if replace:
        removed = db.execute(delete(Question)).rowcount
        if removed:
            logger.warning("Replacing %d existing questions", removed)
    for rec in records:
        number = rec.get("question_number")
        answers = rec.get("answers") or []
        correct = [a for a in answers if a.get("flag") is True]
        if number is None or not rec.get("question_text") or len(correct) != 1:
            logger.error("Question %s skipped: needs text and exactly one correct answer", number)
            report.failed += 1
            continue
        db.merge(Question(
            question_number=int(number),
            question_text=rec["question_text"],
            answers=[{"id": int(a["id"]), "text": a["text"]} for a in answers],
            correct_answer_id=int(correct[0]["id"]),
            correct_answer_text=correct[0]["text"],
            document_link=rec.get("document_link") or None,
            document_text=rec.get("document_text") or None,
            image_ref=rec.get("image_url") or rec.get("image_file") or None,
        ))
        report.imported += 1
    db.commit()
    logger.info("Imported %d questions (%d failed)", report.imported, report.failed)
    return report
