"""
Read-side views of a catalog question.

``PublicQuestion`` is the only shape that leaves the server before an answer
is submitted; it has no field that can carry correctness. ``AnswerKey`` is
revealed exclusively by ``submit_answer``.
"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class AnswerOption:
    id: int
    text: str


@dataclass(frozen=True)
class PublicQuestion:
    id: int
    text: str
    answers: List[AnswerOption] = field(default_factory=list)
    document_link: Optional[str] = None
    document_text: Optional[str] = None
    image_ref: Optional[str] = None


@dataclass(frozen=True)
class AnswerKey:
    correct_answer_id: int
    correct_answer_text: str
