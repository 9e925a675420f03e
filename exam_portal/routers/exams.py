"""Exam management routes, plus the interactive code runs used while taking a coding exam."""

from fastapi import APIRouter, Body, Depends
from fastapi import status as http_status
from sqlmodel import Session

from exam_portal.config import settings
from exam_portal.database import get_session
from exam_portal.errors import ValidationError
from exam_portal.schemas import ExamCreate, ExamUpdate, RunCodeIn, serialize_exam
from exam_portal.services import authoring
from exam_portal.services.code_runner import CodeRunner, get_code_runner
from exam_portal.services.grading import coding_testcases, run_case

router = APIRouter()


def _language_for(exam, requested):
    if requested:
        return requested
    return exam.allowed_languages[0] if exam.allowed_languages else "javascript"


def _code_for(exam, code: str) -> str:
    if code:
        return code
    questions = exam.questions or []
    return (questions[0].get("starterCode") or "") if questions else ""


@router.post("", status_code=http_status.HTTP_201_CREATED)
def create_exam(payload: ExamCreate = Body(...), session: Session = Depends(get_session)):
    exam = authoring.create_exam(session, payload)
    return {"message": "Exam created successfully", "exam": serialize_exam(exam)}


@router.get("")
def list_exams(session: Session = Depends(get_session)):
    return [serialize_exam(exam) for exam in authoring.list_exams(session)]


@router.get("/{exam_id}")
def get_exam(exam_id: int, session: Session = Depends(get_session)):
    return serialize_exam(authoring.get_exam(session, exam_id))


@router.put("/{exam_id}")
def update_exam(exam_id: int, payload: ExamUpdate = Body(...), session: Session = Depends(get_session)):
    exam = authoring.update_exam(session, exam_id, payload)
    return {"message": "Exam updated", "exam": serialize_exam(exam)}


@router.delete("/{exam_id}")
def delete_exam(exam_id: int, session: Session = Depends(get_session)):
    authoring.delete_exam(session, exam_id)
    return {"message": "Exam deleted"}


@router.post("/{exam_id}/run")
async def run_code(
    exam_id: int,
    payload: RunCodeIn = Body(...),
    session: Session = Depends(get_session),
    runner: CodeRunner = Depends(get_code_runner),
):
    """Run the student's code once with custom stdin."""
    exam = authoring.get_exam(session, exam_id)
    if exam.exam_type != "coding":
        raise ValidationError("Only coding exams can run code.")
    result = await runner.run_source(_language_for(exam, payload.language), _code_for(exam, payload.code), payload.stdin)
    return result.to_dict()


@router.post("/{exam_id}/run-samples")
async def run_sample_tests(
    exam_id: int,
    payload: RunCodeIn = Body(...),
    session: Session = Depends(get_session),
    runner: CodeRunner = Depends(get_code_runner),
):
    """Run the code against the first sample test cases without storing anything."""
    exam = authoring.get_exam(session, exam_id)
    if exam.exam_type != "coding":
        raise ValidationError("Only coding exams have sample tests.")
    code = _code_for(exam, payload.code)
    if not code.strip():
        raise ValidationError("Unsupported language or empty code.")
    language = _language_for(exam, payload.language)
    outcomes = []
    for case in coding_testcases(exam, limit=settings.MAX_SAMPLE_TESTCASES):
        outcomes.append(await run_case(runner, code, language, case))
    return [vars(outcome) for outcome in outcomes]
