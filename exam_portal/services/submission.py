"""Submission orchestration: validate, grade, persist, report."""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from exam_portal.database import commit_or_raise
from exam_portal.errors import ExamNotFound, MissingField, ResultNotFound, StorageError
from exam_portal.models import Exam, ExamResult
from exam_portal.services.grading import grade

logger = logging.getLogger(__name__)

SUBMIT_MESSAGES = {
    "mcq": "Exam submitted successfully",
    "theory": "Theory exam submitted",
    "coding": "Code evaluated",
}


@dataclass
class SubmissionReceipt:
    score: int
    total: int
    result_id: int
    message: str

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "score": self.score,
            "total": self.total,
            "resultId": self.result_id,
        }


def _absent(value: Any) -> bool:
    return value is None or value == ""


async def submit(
    session: Session,
    runner,
    exam_id: Optional[int],
    student_id: Optional[int],
    answers: Any,
    auto: bool = False,
) -> SubmissionReceipt:
    """Grade a submission and store it as a new result.

    Every call inserts a result; earlier results for the same exam and
    student are left untouched. ``auto`` is set when the client submitted on
    the student's behalf and relaxes the coding non-empty check.
    """
    if _absent(exam_id) or _absent(student_id) or _absent(answers):
        raise MissingField()

    exam = session.get(Exam, exam_id)
    if not exam:
        raise ExamNotFound()

    outcome = await grade(exam, answers, runner, auto=auto)

    result = ExamResult(
        exam_id=exam.id,
        student_id=student_id,
        exam_type=outcome.exam_type,
        score=outcome.score,
        total_questions=outcome.total_questions,
        **outcome.payload,
    )
    session.add(result)
    commit_or_raise(session)
    session.refresh(result)

    logger.info(
        "Stored %s result %s for exam %s, student %s: %s/%s",
        outcome.exam_type,
        result.id,
        exam.id,
        student_id,
        outcome.score,
        outcome.total_questions,
    )
    return SubmissionReceipt(
        score=outcome.score,
        total=outcome.total_questions,
        result_id=result.id,
        message=SUBMIT_MESSAGES[outcome.exam_type],
    )


def list_student_results(session: Session, student_id: int) -> List[tuple[ExamResult, Optional[Exam]]]:
    """All results of a student, newest first, each paired with its exam (None if deleted)."""
    try:
        rows = session.exec(
            select(ExamResult, Exam)
            .join(Exam, ExamResult.exam_id == Exam.id, isouter=True)
            .where(ExamResult.student_id == student_id)
            .order_by(ExamResult.created_at.desc(), ExamResult.id.desc())
        ).all()
    except SQLAlchemyError as exc:
        raise StorageError() from exc
    return list(rows)


def get_result_detail(session: Session, result_id: int) -> tuple[ExamResult, Optional[Exam]]:
    result = session.get(ExamResult, result_id)
    if not result:
        raise ResultNotFound()
    return result, session.get(Exam, result.exam_id)
