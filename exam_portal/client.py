"""HTTP client for the Exam Portal API, used to drive an exam attempt."""

import logging
from typing import Any, Optional

import httpx

from exam_portal.proctoring import ExamSession

logger = logging.getLogger(__name__)


class PortalClientError(Exception):
    """The API answered with an error status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class ExamPortalClient:
    """Thin async wrapper over the REST API.

    The student identity is passed explicitly to :meth:`start_session`
    instead of being read from ambient storage.
    """

    def __init__(self, base_url: str = "http://localhost:8000", client: Optional[httpx.AsyncClient] = None):
        self._client = client or httpx.AsyncClient(base_url=base_url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ExamPortalClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        response = await self._client.request(method, url, **kwargs)
        if response.is_error:
            try:
                message = response.json().get("detail", response.text)
            except ValueError:
                message = response.text
            raise PortalClientError(response.status_code, str(message))
        return response.json()

    async def get_exam(self, exam_id: int) -> dict:
        return await self._request("GET", f"/exams/{exam_id}")

    async def create_exam(self, payload: dict) -> dict:
        return (await self._request("POST", "/exams", json=payload))["exam"]

    async def update_exam(self, exam_id: int, payload: dict) -> dict:
        return (await self._request("PUT", f"/exams/{exam_id}", json=payload))["exam"]

    async def submit_answers(self, exam_id: int, student_id: int, answers: Any, auto: bool = False) -> dict:
        return await self._request(
            "POST",
            "/results/submit",
            json={"examId": exam_id, "studentId": student_id, "answers": answers, "auto": auto},
        )

    async def run_code(self, exam_id: int, code: str, language: Optional[str] = None, stdin: str = "") -> dict:
        return await self._request(
            "POST",
            f"/exams/{exam_id}/run",
            json={"code": code, "language": language, "stdin": stdin},
        )

    async def student_results(self, student_id: int) -> list:
        return await self._request("GET", f"/results/student/{student_id}")

    async def start_session(self, exam_id: int, student_id: int, **session_kwargs) -> ExamSession:
        """Load the exam and return a running session that submits through this client."""
        exam = await self.get_exam(exam_id)

        async def submit(answers, auto=False):
            return await self.submit_answers(exam_id, student_id, answers, auto=auto)

        session = ExamSession(exam, submit, **session_kwargs)
        session.start()
        logger.info("Started attempt of exam %s for student %s", exam_id, student_id)
        return session
