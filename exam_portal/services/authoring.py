"""Admin exam authoring: drafts, create, edit-until-start, delete."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from exam_portal.database import commit_or_raise
from exam_portal.errors import ExamLocked, ExamNotFound
from exam_portal.models import Exam, utcnow
from exam_portal.schemas import ExamCreate, ExamUpdate

logger = logging.getLogger(__name__)


class ExamDraft:
    """Question list and schedule built up in memory before a single create/update call."""

    def __init__(self, title: str = "", exam_type: str = "mcq"):
        self.title = title
        self.exam_type = exam_type
        self.questions: List[dict] = []
        self.allowed_languages: List[str] = []
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.duration: Optional[int] = None

    @classmethod
    def from_exam(cls, exam: dict) -> "ExamDraft":
        """Start editing an existing exam as returned by the API."""
        draft = cls(title=exam.get("title", ""), exam_type=exam.get("examType", "mcq"))
        draft.questions = [dict(q) for q in exam.get("questions") or []]
        draft.allowed_languages = list(exam.get("allowedLanguages") or [])
        draft.start_time = exam.get("startTime")
        draft.end_time = exam.get("endTime")
        draft.duration = exam.get("duration")
        return draft

    def add_mcq_question(self, question: str, options: List[str], correct_answer: int) -> None:
        self.questions.append({"question": question, "options": list(options), "correctAnswer": correct_answer})

    def add_theory_question(self, question: str) -> None:
        self.questions.append({"question": question})

    def add_coding_question(
        self,
        question: str,
        testcases: List[dict],
        starter_code: Optional[str] = None,
        allowed_languages: Optional[List[str]] = None,
    ) -> None:
        self.questions.append(
            {
                "question": question,
                "starterCode": starter_code,
                "testcases": [{"input": str(c["input"]), "expected": str(c["expected"])} for c in testcases],
            }
        )
        if allowed_languages:
            self.allowed_languages = list(allowed_languages)

    def remove_question(self, index: int) -> dict:
        return self.questions.pop(index)

    def set_schedule(
        self,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        duration: Optional[int] = None,
    ) -> None:
        self.start_time = start_time
        self.end_time = end_time
        self.duration = duration

    def to_payload(self) -> dict:
        payload = {
            "title": self.title,
            "examType": self.exam_type,
            "questions": self.questions,
            "allowedLanguages": self.allowed_languages,
            "duration": self.duration,
        }
        for key, value in (("startTime", self.start_time), ("endTime", self.end_time)):
            payload[key] = value.isoformat() if isinstance(value, datetime) else value
        return payload


def list_exams(session: Session) -> List[Exam]:
    return list(session.exec(select(Exam).order_by(Exam.id)).all())


def get_exam(session: Session, exam_id: int) -> Exam:
    exam = session.get(Exam, exam_id)
    if not exam:
        raise ExamNotFound()
    return exam


def create_exam(session: Session, data: ExamCreate) -> Exam:
    exam = Exam(
        title=data.title,
        exam_type=data.exam_type,
        questions=[q.to_document() for q in data.questions],
        allowed_languages=list(data.allowed_languages),
        start_time=data.start_time,
        end_time=data.end_time,
        duration=data.duration,
    )
    session.add(exam)
    commit_or_raise(session)
    session.refresh(exam)
    logger.info("Created %s exam %s (%d questions)", exam.exam_type, exam.id, len(exam.questions))
    return exam


def update_exam(session: Session, exam_id: int, data: ExamUpdate, now: Optional[datetime] = None) -> Exam:
    """Apply the fields present in ``data``; omitted fields keep their stored value.

    Raises ExamLocked, leaving the exam untouched, once its start time has passed.
    """
    exam = get_exam(session, exam_id)
    if exam.is_locked(now or utcnow()):
        logger.info("Rejected edit of exam %s: started at %s", exam.id, exam.start_time)
        raise ExamLocked()

    provided = data.model_fields_set
    if data.title is not None:
        exam.title = data.title
    if data.start_time is not None:
        exam.start_time = data.start_time
    if data.end_time is not None:
        exam.end_time = data.end_time
    # An explicit null clears the duration
    if "duration" in provided:
        exam.duration = data.duration
    if data.exam_type:
        exam.exam_type = data.exam_type
    if data.questions is not None:
        exam.questions = [q.to_document() for q in data.questions]
    if data.allowed_languages is not None:
        exam.allowed_languages = list(data.allowed_languages)

    session.add(exam)
    commit_or_raise(session)
    session.refresh(exam)
    return exam


def delete_exam(session: Session, exam_id: int) -> None:
    """Delete an exam at any time; there is no start-time lock on deletion."""
    exam = get_exam(session, exam_id)
    session.delete(exam)
    commit_or_raise(session)
    logger.info("Deleted exam %s", exam_id)
