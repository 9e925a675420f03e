import asyncio
from datetime import datetime, timedelta

import pytest

from exam_portal.errors import MissingCode
from exam_portal.proctoring import CountdownTimer, ExamSession, SessionState, initial_remaining

MCQ_EXAM = {
    "id": 1,
    "examType": "mcq",
    "questions": [{"question": "q1"}, {"question": "q2"}],
    "duration": 30,
}

CODING_EXAM = {
    "id": 2,
    "examType": "coding",
    "allowedLanguages": ["python"],
    "questions": [{"question": "double", "starterCode": "", "testcases": []}],
}


class RecordingSubmit:
    def __init__(self, receipt=None, fail=False):
        self.calls = []
        self.autos = []
        self.receipt = receipt or {"score": 1, "total": 2, "resultId": 10}
        self.fail = fail

    async def __call__(self, answers, auto=False):
        self.calls.append(answers)
        self.autos.append(auto)
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("network down")
        return self.receipt


def _session(exam=MCQ_EXAM, **kwargs):
    submit = RecordingSubmit()
    session = ExamSession(exam, submit, **kwargs)
    session.start()
    return session, submit


# --- timer setup ---


def test_duration_takes_priority_over_window():
    now = datetime(2026, 1, 1, 9, 0)
    exam = {"duration": 15, "startTime": "2026-01-01T09:00:00", "endTime": "2026-01-01T12:00:00"}
    assert initial_remaining(exam, now) == 15 * 60


def test_window_is_used_without_duration():
    now = datetime(2026, 1, 1, 9, 0)
    exam = {"startTime": "2026-01-01T08:00:00Z", "endTime": "2026-01-01T09:30:00Z"}
    assert initial_remaining(exam, now) == 30 * 60


def test_untimed_when_no_duration_or_window_closed():
    now = datetime(2026, 1, 1, 9, 0)
    assert initial_remaining({"endTime": "2026-01-01T10:00:00"}, now) is None
    assert initial_remaining({"startTime": "2026-01-01T07:00:00", "endTime": "2026-01-01T08:00:00"}, now) is None
    assert initial_remaining({"duration": 0}, now) is None


# --- countdown ---


def test_ticks_count_down_then_auto_submit():
    async def scenario():
        session, submit = _session(dict(MCQ_EXAM, duration=None), navigate=None)
        session.remaining_seconds = 2
        session.select_option(0, 1)
        await session.tick()
        assert session.state == SessionState.RUNNING
        assert session.remaining_seconds == 1
        await session.tick()
        return session, submit

    session, submit = asyncio.run(scenario())
    assert session.state == SessionState.SUBMITTED
    assert submit.calls == [[1]]
    assert session.message.startswith("Time up! Auto-submitted.")


def test_untimed_session_ignores_ticks():
    async def scenario():
        session, submit = _session({"examType": "mcq", "questions": []})
        await session.tick()
        return session, submit

    session, submit = asyncio.run(scenario())
    assert session.remaining_seconds is None
    assert session.state == SessionState.RUNNING
    assert submit.calls == []


def test_countdown_timer_fires_once_and_stops():
    async def scenario():
        session, submit = _session(dict(MCQ_EXAM, duration=None))
        session.remaining_seconds = 0.03
        timer = CountdownTimer(session, interval=0.01)
        timer.start()
        await asyncio.wait_for(timer.wait(), timeout=2)
        return session, submit, timer

    session, submit, timer = asyncio.run(scenario())
    assert session.state == SessionState.SUBMITTED
    assert len(submit.calls) == 1
    assert not timer.running


def test_countdown_timer_is_cancelled_on_teardown():
    async def scenario():
        session, submit = _session()
        async with CountdownTimer(session, interval=0.01) as timer:
            await asyncio.sleep(0.05)
            assert timer.running
        return session, submit, timer

    session, submit, timer = asyncio.run(scenario())
    assert not timer.running
    assert submit.calls == []
    assert session.remaining_seconds < 30 * 60


def test_countdown_timer_retries_failed_auto_submit():
    async def scenario():
        session, submit = _session(dict(MCQ_EXAM, duration=None))
        session.remaining_seconds = 0.01
        submit.fail = True
        async with CountdownTimer(session, interval=0.01) as timer:
            while len(submit.calls) < 2:
                await asyncio.sleep(0.01)
            assert timer.running
            submit.fail = False
            await asyncio.wait_for(timer.wait(), timeout=2)
        return session, submit, timer

    session, submit, timer = asyncio.run(scenario())
    assert session.state == SessionState.SUBMITTED
    assert submit.autos[-1] is True
    assert session.submission_calls == len(submit.calls)
    assert not timer.running


def test_countdown_timer_teardown_after_failed_auto_submit_is_quiet():
    async def scenario():
        session, submit = _session(dict(MCQ_EXAM, duration=None))
        session.remaining_seconds = 0.01
        submit.fail = True
        async with CountdownTimer(session, interval=0.01):
            while not submit.calls or session.state != SessionState.RUNNING:
                await asyncio.sleep(0.005)
        return session, submit

    session, submit = asyncio.run(scenario())
    assert session.state == SessionState.RUNNING
    assert session.message == "Submission failed"


# --- proctoring ---


def test_fullscreen_exit_and_tab_hide_warn():
    async def scenario():
        session, submit = _session()
        await session.fullscreen_changed(True)
        await session.fullscreen_changed(False)
        assert session.state == SessionState.WARNED
        assert session.violation_reason == "Exited fullscreen"
        assert session.warnings_left == 2
        session.acknowledge_warning()
        assert session.state == SessionState.RUNNING
        await session.visibility_changed(hidden=True)
        assert session.violation_reason == "Switched tab or minimized window"
        await session.visibility_changed(hidden=False)
        return session, submit

    session, submit = asyncio.run(scenario())
    assert session.violation_count == 2
    assert session.state == SessionState.WARNED
    assert submit.calls == []


def test_entering_fullscreen_is_not_a_violation():
    async def scenario():
        session, _ = _session()
        await session.fullscreen_changed(True)
        await session.fullscreen_changed(True)
        return session

    assert asyncio.run(scenario()).violation_count == 0


def test_fourth_violation_auto_submits():
    async def scenario():
        session, submit = _session()
        for _ in range(3):
            await session.visibility_changed(hidden=True)
            session.acknowledge_warning()
        assert submit.calls == []
        await session.visibility_changed(hidden=True)
        return session, submit

    session, submit = asyncio.run(scenario())
    assert session.violation_count == 4
    assert session.state == SessionState.SUBMITTED
    assert len(submit.calls) == 1


def test_violations_before_start_are_ignored():
    async def scenario():
        session = ExamSession(MCQ_EXAM, RecordingSubmit())
        await session.visibility_changed(hidden=True)
        return session

    session = asyncio.run(scenario())
    assert session.violation_count == 0
    assert session.state == SessionState.NOT_STARTED


def test_failed_fullscreen_retry_does_not_block_resuming():
    def refuse():
        raise PermissionError("not allowed")

    async def scenario():
        session, _ = _session()
        await session.visibility_changed(hidden=True)
        session.acknowledge_warning(enter_fullscreen=refuse)
        return session

    session = asyncio.run(scenario())
    assert session.state == SessionState.RUNNING
    assert "Fullscreen was blocked" in session.fullscreen_error


# --- single submission ---


def test_timer_and_violation_in_same_tick_submit_once():
    async def scenario():
        session, submit = _session()
        session.remaining_seconds = 1
        session.violation_count = 3
        await asyncio.gather(session.tick(), session.visibility_changed(hidden=True), session.submit())
        await session.tick()
        await session.visibility_changed(hidden=True)
        await session.submit()
        return session, submit

    session, submit = asyncio.run(scenario())
    assert len(submit.calls) == 1
    assert session.submission_calls == 1
    assert session.state == SessionState.SUBMITTED


def test_manual_submit_then_navigates_and_leaves_fullscreen():
    left = []
    visited = []

    async def scenario():
        session, submit = _session(exit_fullscreen=lambda: left.append(True), navigate=visited.append)
        await session.fullscreen_changed(True)
        session.write_answer(0, "x")
        receipt = await session.submit()
        return session, receipt

    session, receipt = asyncio.run(scenario())
    assert receipt["resultId"] == 10
    assert session.message == "Exam submitted! Your score: 1/2"
    assert left == [True]
    assert visited == [receipt]


def test_failed_submission_can_be_retried():
    async def scenario():
        submit = RecordingSubmit(fail=True)
        session = ExamSession(MCQ_EXAM, submit)
        session.start()
        with pytest.raises(RuntimeError):
            await session.submit()
        assert session.state == SessionState.RUNNING
        submit.fail = False
        await session.submit()
        return session, submit

    session, submit = asyncio.run(scenario())
    assert len(submit.calls) == 2
    assert session.state == SessionState.SUBMITTED


# --- coding exams ---


def test_manual_coding_submit_requires_code():
    async def scenario():
        session, submit = _session(CODING_EXAM)
        with pytest.raises(MissingCode):
            await session.submit()
        assert session.state == SessionState.RUNNING
        session.set_code("def solve(x):\n    return int(x) * 2")
        await session.submit()
        return submit

    submit = asyncio.run(scenario())
    assert submit.calls == [{"code": "def solve(x):\n    return int(x) * 2", "language": "python"}]


def test_automatic_coding_submit_skips_code_check():
    async def scenario():
        session, submit = _session(CODING_EXAM)
        session.remaining_seconds = 1
        await session.tick()
        return session, submit

    session, submit = asyncio.run(scenario())
    assert submit.calls == [{"code": "", "language": "python"}]
    assert submit.autos == [True]
    assert session.state == SessionState.SUBMITTED


def test_coding_payload_falls_back_to_starter_code():
    exam = dict(CODING_EXAM, allowedLanguages=[], questions=[{"question": "q", "starterCode": "function solve(x){}"}])
    session = ExamSession(exam, RecordingSubmit())
    assert session.build_payload() == {"code": "function solve(x){}", "language": "javascript"}


def test_payload_shapes_for_mcq_and_theory():
    mcq = ExamSession(MCQ_EXAM, RecordingSubmit())
    mcq.select_option(1, 0)
    mcq.select_option(0, 2)
    assert mcq.build_payload() == [2, 0]

    theory = ExamSession({"examType": "theory", "questions": []}, RecordingSubmit())
    theory.write_answer(1, "b")
    theory.write_answer(0, "a")
    assert theory.build_payload() == {"1": "b", "0": "a"}


def test_remaining_time_starts_from_window():
    end = datetime(2026, 5, 1, 12, 0)
    exam = {"examType": "mcq", "startTime": (end - timedelta(hours=2)).isoformat(), "endTime": end.isoformat()}
    session = ExamSession(exam, RecordingSubmit(), now=end - timedelta(minutes=10))
    assert session.remaining_seconds == 600
