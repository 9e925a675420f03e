"""Exam timer and proctoring monitor for one exam attempt.

This is the client side of exam taking. An :class:`ExamSession` holds the
answer draft, the countdown and the violation counter, and turns
environment signals (fullscreen changes, page visibility, timer ticks) into
state transitions::

    not_started -> running <-> warned
    running/warned -> auto_submitting -> submitted   (time up, 4th violation)
    running/warned -> submitted                      (manual submit)

Timer expiry and violations are independent triggers that both funnel into
one guarded submission, so at most one submission call ever fires.
"""

import asyncio
import inspect
import logging
from contextlib import suppress
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from exam_portal.config import settings
from exam_portal.errors import MissingCode
from exam_portal.models import utcnow

logger = logging.getLogger(__name__)

# Called as submit(answers, auto=...)
SubmitCallback = Callable[..., Awaitable[dict]]


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    WARNED = "warned"
    AUTO_SUBMITTING = "auto_submitting"
    SUBMITTED = "submitted"


ACTIVE_STATES = (SessionState.RUNNING, SessionState.WARNED)

FULLSCREEN_EXIT = "Exited fullscreen"
TAB_HIDDEN = "Switched tab or minimized window"


def _parse_time(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def initial_remaining(exam: dict, now: Optional[datetime] = None) -> Optional[float]:
    """Seconds available for the attempt, or None when the exam is untimed.

    ``duration`` wins over the schedule window; a window that already closed
    leaves the attempt untimed.
    """
    duration = exam.get("duration")
    if duration and float(duration) > 0:
        return float(duration) * 60
    start_time = _parse_time(exam.get("startTime"))
    end_time = _parse_time(exam.get("endTime"))
    if start_time and end_time:
        remaining = (end_time - (now or utcnow())).total_seconds()
        if remaining > 0:
            return remaining
    return None


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


class ExamSession:
    """State of one in-flight exam attempt. Never persisted."""

    def __init__(
        self,
        exam: dict,
        submit: SubmitCallback,
        *,
        now: Optional[datetime] = None,
        max_violations: Optional[int] = None,
        exit_fullscreen: Optional[Callable[[], Any]] = None,
        navigate: Optional[Callable[[dict], Any]] = None,
    ):
        self.exam = exam
        self.exam_type = exam.get("examType", "mcq")
        self._submit = submit
        self._exit_fullscreen = exit_fullscreen
        self._navigate = navigate
        self.max_violations = max_violations or settings.MAX_VIOLATIONS

        self.state = SessionState.NOT_STARTED
        self.remaining_seconds = initial_remaining(exam, now)
        self.is_fullscreen = False
        self.violation_count = 0
        self.violation_reason = ""
        self.fullscreen_error = ""
        self.message = ""
        self.receipt: Optional[dict] = None
        self.submission_calls = 0

        self.answers: Dict[int, Any] = {}
        self.code: Optional[str] = None
        self.language: Optional[str] = None

        self._submission_claimed = False

    # --- answer draft ---

    def select_option(self, question_index: int, option_index: int) -> None:
        self.answers[question_index] = option_index

    def write_answer(self, question_index: int, text: str) -> None:
        self.answers[question_index] = text

    def set_code(self, code: Optional[str] = None, language: Optional[str] = None) -> None:
        if code is not None:
            self.code = code
        if language is not None:
            self.language = language

    def current_code(self) -> str:
        if self.code is not None:
            return self.code
        questions = self.exam.get("questions") or []
        return str((questions[0].get("starterCode") if questions else None) or "")

    def current_language(self) -> str:
        allowed = self.exam.get("allowedLanguages") or []
        return self.language or (allowed[0] if allowed else "javascript")

    def build_payload(self):
        """Answers in the shape the submit endpoint expects for this exam type."""
        if self.exam_type == "coding":
            return {"code": self.current_code(), "language": self.current_language()}
        if self.exam_type == "theory":
            return {str(index): text for index, text in self.answers.items()}
        return [self.answers[index] for index in sorted(self.answers)]

    # --- lifecycle ---

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def is_terminal(self) -> bool:
        return self.state in (SessionState.AUTO_SUBMITTING, SessionState.SUBMITTED)

    @property
    def warnings_left(self) -> int:
        return max(0, self.max_violations - 1 - self.violation_count)

    def start(self) -> None:
        if self.state == SessionState.NOT_STARTED:
            self.state = SessionState.RUNNING

    async def tick(self, seconds: float = 1.0) -> None:
        """Advance the countdown; auto-submit once it runs out."""
        if not self.is_active or self.remaining_seconds is None:
            return
        self.remaining_seconds -= seconds
        if self.remaining_seconds <= 0:
            self.remaining_seconds = 0
            await self._fire(auto=True)

    async def fullscreen_changed(self, is_fullscreen: bool) -> None:
        was_fullscreen = self.is_fullscreen
        self.is_fullscreen = is_fullscreen
        if was_fullscreen and not is_fullscreen:
            await self._violation(FULLSCREEN_EXIT)

    async def visibility_changed(self, hidden: bool) -> None:
        if hidden:
            await self._violation(TAB_HIDDEN)

    async def _violation(self, reason: str) -> None:
        if not self.is_active:
            return
        self.violation_count += 1
        logger.info("Proctoring violation %d/%d: %s", self.violation_count, self.max_violations, reason)
        if self.violation_count >= self.max_violations:
            await self._fire(auto=True)
            return
        self.violation_reason = reason
        self.state = SessionState.WARNED

    def acknowledge_warning(self, enter_fullscreen: Optional[Callable[[], Any]] = None) -> None:
        """Dismiss the warning; a failed fullscreen retry does not block resuming."""
        if self.state != SessionState.WARNED:
            return
        if enter_fullscreen is not None and not self.is_fullscreen:
            self.fullscreen_error = ""
            try:
                enter_fullscreen()
            except Exception as exc:
                logger.info("Fullscreen request refused: %s", exc)
                self.fullscreen_error = "Fullscreen was blocked. Please allow fullscreen and try again."
        self.state = SessionState.RUNNING

    async def submit(self) -> Optional[dict]:
        """Manual submit. Coding exams must have code before anything is sent."""
        if not self.is_active or self._submission_claimed:
            return None
        if self.exam_type == "coding" and not self.current_code().strip():
            self.message = "Please write your solution before submitting."
            raise MissingCode(self.message)
        return await self._fire(auto=False)

    async def _fire(self, auto: bool) -> Optional[dict]:
        # Claim the submission before the first await so a concurrent trigger
        # sees it taken and does nothing.
        if self._submission_claimed or self.state == SessionState.SUBMITTED:
            return None
        self._submission_claimed = True
        previous_state = self.state
        if auto:
            self.state = SessionState.AUTO_SUBMITTING

        self.submission_calls += 1
        try:
            receipt = await self._submit(self.build_payload(), auto=auto)
        except Exception:
            # Released so a manual submit or the next timer tick can retry
            self._submission_claimed = False
            self.state = previous_state
            self.message = "Submission failed"
            raise

        self.receipt = receipt
        score, total = receipt.get("score"), receipt.get("total")
        if auto:
            self.message = f"Time up! Auto-submitted. Score: {score}/{total}"
        else:
            self.message = f"Exam submitted! Your score: {score}/{total}"
        self.state = SessionState.SUBMITTED
        await self._leave()
        return receipt

    async def _leave(self) -> None:
        if self.is_fullscreen and self._exit_fullscreen is not None:
            try:
                await _maybe_await(self._exit_fullscreen())
            except Exception as exc:
                logger.debug("Could not leave fullscreen: %s", exc)
        if self._navigate is not None:
            await _maybe_await(self._navigate(self.receipt))


class CountdownTimer:
    """Ticks an :class:`ExamSession` once per interval until it is terminal.

    Use as an async context manager so the recurring task is cancelled when
    the exam view is torn down.
    """

    def __init__(self, session: ExamSession, interval: float = 1.0):
        self.session = session
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.session.remaining_seconds is None or self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while not self.session.is_terminal and self.session.remaining_seconds is not None:
            await asyncio.sleep(self.interval)
            try:
                await self.session.tick(self.interval)
            except Exception as exc:
                # The session is back in its previous state; the next tick retries.
                logger.warning("Automatic submission failed, retrying: %s", exc)

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def cancel(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def __aenter__(self) -> "CountdownTimer":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.cancel()
