from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import (
    BigInteger, Integer, String, Text, Boolean, Float,
    ForeignKey, JSON, DateTime, Index, CheckConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from quizdesk.core.clock import utcnow


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    uuid: Mapped[str] = mapped_column(String(64), primary_key=True)
    first_seen: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_seen: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    total_sessions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Question(Base):
    __tablename__ = "questions"

    question_number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    # [{"id": int, "text": str}, ...] without any correctness marker
    answers: Mapped[List[Dict]] = mapped_column(JSON, nullable=False)
    correct_answer_id: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answer_text: Mapped[str] = mapped_column(Text, nullable=False)
    document_link: Mapped[Optional[str]] = mapped_column(Text)
    document_text: Mapped[Optional[str]] = mapped_column(Text)
    image_ref: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class QuizSession(Base):
    __tablename__ = "sessions"
    __table_args__ = (
        Index("idx_sessions_user", "user_uuid"),
        CheckConstraint("mode IN ('training', 'test')", name="ck_sessions_mode"),
        CheckConstraint("current_question_index >= 0", name="ck_sessions_cursor"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_uuid: Mapped[str] = mapped_column(String(64), ForeignKey("users.uuid"), nullable=False)
    mode: Mapped[str] = mapped_column(String(16), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    wrong_answers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    percentage: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    session_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    question_ids: Mapped[List[int]] = mapped_column(JSON, nullable=False)
    current_question_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # dispensations whose exposure is already counted in question_stats
    exposed_question_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    focus_switches: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    @property
    def total_questions(self) -> int:
        return len(self.question_ids or [])

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None


class Answer(Base):
    __tablename__ = "answers"
    __table_args__ = (
        Index("idx_answers_session", "session_id"),
        Index("idx_answers_question", "question_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(Integer, ForeignKey("sessions.id"), nullable=False)
    question_id: Mapped[int] = mapped_column(Integer, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class QuestionStat(Base):
    __tablename__ = "questions_stats"
    __table_args__ = (
        Index("idx_qstats_error_rate", "error_rate"),
    )

    question_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    total_shown: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_wrong: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
