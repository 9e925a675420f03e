"""SQLModel models for the Exam Portal."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

EXAM_TYPES = ("mcq", "theory", "coding")


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column is stored in UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(SQLModel, table=True):
    """Account that can log in as an admin or a student."""

    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str
    password_hash: str
    role: str = Field(default="student")  # "admin", "student"
    created_at: datetime = Field(default_factory=utcnow)


class Exam(SQLModel, table=True):
    """An authored exam definition.

    Questions are kept as a JSON document (camelCase keys, the same shape the
    API accepts) since their shape depends on ``exam_type``:

    * mcq: ``{"question", "options", "correctAnswer"}``
    * theory: ``{"question"}``
    * coding: ``{"question", "starterCode", "testcases": [{"input", "expected"}]}``
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    exam_type: str = Field(default="mcq")
    title: str
    questions: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    allowed_languages: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = None  # minutes, independent of the window
    created_at: datetime = Field(default_factory=utcnow)

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        """An exam whose start time has passed can no longer be edited."""
        now = now or utcnow()
        return self.start_time is not None and self.start_time <= now


class ExamResult(SQLModel, table=True):
    """Grading outcome of one submission.

    ``exam_id`` is a plain indexed column rather than a foreign key: exams can
    be deleted at any time and their results are kept.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    exam_id: int = Field(index=True)
    student_id: int = Field(index=True)
    exam_type: str
    score: int = 0
    total_questions: int = 0
    mcq_answers: Optional[list] = Field(default=None, sa_column=Column(JSON))
    coding: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    theory_answers: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
