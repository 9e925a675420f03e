"""Submission and result routes."""

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from exam_portal.database import get_session
from exam_portal.schemas import SubmitIn, serialize_result
from exam_portal.services import submission
from exam_portal.services.code_runner import CodeRunner, get_code_runner

router = APIRouter()


@router.post("/submit")
async def submit_answers(
    payload: SubmitIn = Body(...),
    session: Session = Depends(get_session),
    runner: CodeRunner = Depends(get_code_runner),
):
    """Grade the answers and store a new result."""
    receipt = await submission.submit(
        session, runner, payload.exam_id, payload.student_id, payload.answers, auto=payload.auto
    )
    return receipt.to_dict()


@router.get("/student/{student_id}")
def student_results(student_id: int, session: Session = Depends(get_session)):
    """All results of a student, newest first."""
    rows = submission.list_student_results(session, student_id)
    return [serialize_result(result, exam) for result, exam in rows]


@router.get("/detail/{result_id}")
def result_detail(result_id: int, session: Session = Depends(get_session)):
    """A single result with its exam's questions, for the admin review page."""
    result, exam = submission.get_result_detail(session, result_id)
    return serialize_result(result, exam, with_questions=True)


# Kept for older clients that call /results/<student_id> directly
@router.get("/{student_id}")
def student_results_legacy(student_id: int, session: Session = Depends(get_session)):
    return student_results(student_id, session)
