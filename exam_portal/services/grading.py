"""Grading engine.

Raw answer payloads are decoded once, at the boundary, into one of three
answer types (:class:`McqAnswers`, :class:`TheoryAnswers`,
:class:`CodingAnswers`); each type owns its normalisation, its scoring rule
and the shape stored on the result.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from exam_portal.config import settings
from exam_portal.errors import GatewayError, InvalidAnswerFormat, MissingCode
from exam_portal.models import Exam
from exam_portal.services.harness import DEFAULT_LANGUAGE, harness_for

logger = logging.getLogger(__name__)


@dataclass
class McqAnswers:
    selections: List[Any]
    kind: str = "mcq"


@dataclass
class TheoryAnswers:
    answers: List[str]
    kind: str = "theory"


@dataclass
class CodingAnswers:
    code: str
    language: str = DEFAULT_LANGUAGE
    kind: str = "coding"


Answers = Union[McqAnswers, TheoryAnswers, CodingAnswers]


@dataclass
class GradeOutcome:
    exam_type: str
    score: int
    total_questions: int
    payload: dict = field(default_factory=dict)  # type-specific columns of the result


@dataclass
class CaseOutcome:
    input: str
    expected: str
    stdout: str = ""
    status: str = ""
    passed: bool = False
    error: Optional[str] = None


# --- normalisation ---


def _ordered(raw: Any) -> list:
    """Accept a list, or a mapping of stringified index -> value sorted numerically."""
    if isinstance(raw, list):
        return list(raw)
    if isinstance(raw, dict):
        try:
            keys = sorted(raw, key=lambda key: int(key))
        except (TypeError, ValueError) as exc:
            raise InvalidAnswerFormat() from exc
        return [raw[key] for key in keys]
    raise InvalidAnswerFormat()


def as_number(value: Any) -> Optional[float]:
    """Numeric value of an option index, or None when it cannot match anything."""
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)) or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    # inf and nan can neither match an option nor be stored as JSON
    return number if math.isfinite(number) else None


def _stored_number(value: Any):
    number = as_number(value)
    if number is not None and number.is_integer():
        return int(number)
    return number


def parse_answers(exam_type: str, raw: Any) -> Answers:
    if exam_type == "coding":
        record = raw if isinstance(raw, dict) else {}
        code = record.get("code")
        language = record.get("language")
        return CodingAnswers(
            code="" if code is None else str(code),
            language=str(language) if language else DEFAULT_LANGUAGE,
        )
    if exam_type == "theory":
        return TheoryAnswers(["" if value is None else str(value) for value in _ordered(raw)])
    return McqAnswers(_ordered(raw))


# --- scoring ---


def grade_mcq(exam: Exam, answers: McqAnswers) -> GradeOutcome:
    questions = exam.questions or []
    score = 0
    for index, question in enumerate(questions):
        correct = as_number(question.get("correctAnswer"))
        selected = as_number(answers.selections[index]) if index < len(answers.selections) else None
        if correct is not None and selected is not None and correct == selected:
            score += 1
    return GradeOutcome(
        exam_type="mcq",
        score=score,
        total_questions=len(questions),
        payload={"mcq_answers": [_stored_number(value) for value in answers.selections]},
    )


def grade_theory(exam: Exam, answers: TheoryAnswers) -> GradeOutcome:
    # Theory answers are stored for manual review; nothing is scored here.
    return GradeOutcome(
        exam_type="theory",
        score=0,
        total_questions=len(exam.questions or []),
        payload={"theory_answers": answers.answers},
    )


def coding_testcases(exam: Exam, limit: Optional[int] = None) -> List[dict]:
    limit = settings.MAX_GRADED_TESTCASES if limit is None else limit
    questions = exam.questions or []
    if not questions:
        return []
    return list(questions[0].get("testcases") or [])[:limit]


def case_passed(stdout: str, expected: Any) -> bool:
    return stdout.strip() == ("" if expected is None else str(expected))


async def run_case(runner, code: str, language: str, case: dict) -> CaseOutcome:
    """Run one test case; gateway failures become a failed outcome."""
    case_input = "" if case.get("input") is None else str(case.get("input"))
    expected = "" if case.get("expected") is None else str(case.get("expected"))
    outcome = CaseOutcome(input=case_input, expected=expected)
    try:
        result = await runner.run_harness(harness_for(language), code, case_input)
    except GatewayError as exc:
        logger.warning("Test case failed to execute, counting it as failed: %s", exc.message)
        outcome.status = "Error"
        outcome.error = exc.message
        return outcome
    outcome.stdout = result.stdout
    outcome.status = result.status
    outcome.passed = case_passed(result.stdout, expected)
    return outcome


async def grade_coding(exam: Exam, answers: CodingAnswers, runner, auto: bool = False) -> GradeOutcome:
    """Score the code against the first question's test cases.

    Empty code is refused with MissingCode, except on an automatic submission,
    where it is recorded as failing every case without contacting the sandbox.
    """
    has_code = bool(answers.code.strip())
    if not has_code and not auto:
        raise MissingCode()
    cases = coding_testcases(exam)
    passed = 0
    if has_code:
        # One case at a time: each round trip completes before the next starts.
        for case in cases:
            outcome = await run_case(runner, answers.code, answers.language, case)
            if outcome.passed:
                passed += 1
    total = len(cases)
    return GradeOutcome(
        exam_type="coding",
        score=passed,
        total_questions=total,
        payload={
            "coding": {
                "code": answers.code,
                "language": answers.language,
                "passed": passed,
                "total": total,
            }
        },
    )


async def grade(exam: Exam, raw_answers: Any, runner=None, auto: bool = False) -> GradeOutcome:
    """Grade a raw answer payload against ``exam``.

    ``runner`` is only needed for coding exams; ``auto`` marks a submission
    the student did not trigger (timer expiry, proctoring).
    """
    answers = parse_answers(exam.exam_type, raw_answers)
    if isinstance(answers, CodingAnswers):
        return await grade_coding(exam, answers, runner, auto=auto)
    if isinstance(answers, TheoryAnswers):
        return grade_theory(exam, answers)
    return grade_mcq(exam, answers)
