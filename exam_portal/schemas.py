"""Request/response schemas.

The wire format uses camelCase keys (``examType``, ``startTime`` ...) while
the models use snake_case, so every field declares its alias.
"""

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from exam_portal.models import Exam, ExamResult
from exam_portal.utils import sanitize_text

ExamType = Literal["mcq", "theory", "coding"]


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CodingCaseIn(_WireModel):
    input: str = ""
    expected: str = ""

    @field_validator("input", "expected", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return "" if value is None else str(value)


class QuestionIn(_WireModel):
    question: str
    options: List[str] = []
    correct_answer: Optional[int] = Field(default=None, alias="correctAnswer")
    starter_code: Optional[str] = Field(default=None, alias="starterCode")
    testcases: List[CodingCaseIn] = []

    @field_validator("question")
    @classmethod
    def _clean_question(cls, value: str) -> str:
        cleaned = sanitize_text(value)
        if not cleaned:
            raise ValueError("Question text must be provided and non-empty.")
        return cleaned

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class _ScheduleFields(_WireModel):
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")
    duration: Optional[int] = Field(default=None, ge=0)

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalise_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_naive_utc(value)


class ExamCreate(_ScheduleFields):
    title: str
    exam_type: ExamType = Field(default="mcq", alias="examType")
    questions: List[QuestionIn] = []
    allowed_languages: List[str] = Field(default=[], alias="allowedLanguages")

    @field_validator("title")
    @classmethod
    def _clean_title(cls, value: str) -> str:
        cleaned = sanitize_text(value)
        if not cleaned:
            raise ValueError("Exam title is required.")
        return cleaned


class ExamUpdate(_ScheduleFields):
    """Partial update; only the fields present in the request are applied."""

    title: Optional[str] = None
    exam_type: Optional[ExamType] = Field(default=None, alias="examType")
    questions: Optional[List[QuestionIn]] = None
    allowed_languages: Optional[List[str]] = Field(default=None, alias="allowedLanguages")

    @field_validator("title")
    @classmethod
    def _clean_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = sanitize_text(value)
        if not cleaned:
            raise ValueError("Exam title cannot be empty.")
        return cleaned


class SubmitIn(_WireModel):
    # Presence is checked by the submission service so that a missing field
    # gets the same message regardless of which one is absent.
    exam_id: Optional[int] = Field(default=None, alias="examId")
    student_id: Optional[int] = Field(default=None, alias="studentId")
    answers: Any = None
    # Set by the client for timer expiry and proctoring auto-submits
    auto: bool = False


class RunCodeIn(_WireModel):
    code: str = ""
    language: Optional[str] = None
    stdin: str = ""


class RegisterIn(_WireModel):
    name: str
    email: str
    password: str = Field(min_length=6)
    role: Literal["admin", "student"] = "student"


class LoginIn(_WireModel):
    email: str
    password: str


# --- serializers ---


def serialize_exam(exam: Exam) -> dict:
    return {
        "id": exam.id,
        "examType": exam.exam_type,
        "title": exam.title,
        "questions": exam.questions or [],
        "allowedLanguages": exam.allowed_languages or [],
        "startTime": exam.start_time,
        "endTime": exam.end_time,
        "duration": exam.duration,
        "createdAt": exam.created_at,
    }


def serialize_result(result: ExamResult, exam: Optional[Exam] = None, with_questions: bool = False) -> dict:
    exam_info = None
    if exam is not None:
        exam_info = {"id": exam.id, "title": exam.title, "examType": exam.exam_type}
        if with_questions:
            exam_info["questions"] = exam.questions or []
    return {
        "id": result.id,
        "examId": result.exam_id,
        "exam": exam_info,
        "studentId": result.student_id,
        "examType": result.exam_type,
        "score": result.score,
        "totalQuestions": result.total_questions,
        "mcqAnswers": result.mcq_answers,
        "coding": result.coding,
        "theoryAnswers": result.theory_answers,
        "createdAt": result.created_at,
    }


def serialize_user(user) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}
