"""Client for the external code execution sandbox (Piston-compatible API)."""

import logging
from dataclasses import asdict, dataclass
from typing import AsyncIterator, List, Optional

import httpx

from exam_portal.config import settings
from exam_portal.errors import GatewayError, ValidationError
from exam_portal.services.harness import Harness, get_harness

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    stdout: str = ""
    stderr: str = ""
    compile_output: str = ""
    status: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def _status_for(data: dict) -> str:
    compile_stage = data.get("compile") or {}
    run_stage = data.get("run") or {}
    if compile_stage.get("code"):
        return "Compilation Error"
    if run_stage.get("signal"):
        return f"Killed ({run_stage['signal']})"
    if run_stage.get("code"):
        return "Runtime Error"
    return "Accepted"


class CodeRunner:
    """Sends source files to the sandbox and decodes its answer.

    Every failure (transport error, non-200 status, undecodable body) is
    raised as :class:`GatewayError`. No deadline is applied beyond the
    transport's own unless ``CODE_RUNNER_TIMEOUT`` is configured.
    """

    def __init__(self, client: httpx.AsyncClient, url: Optional[str] = None):
        self._client = client
        self.url = url or settings.CODE_RUNNER_URL

    async def execute(self, language: str, version: str, files: List[dict], stdin: str = "") -> ExecutionResult:
        body = {"language": language, "version": version, "files": files}
        logger.debug("Executing %s source (%d file(s)) at %s", language, len(files), self.url)
        if stdin:
            body["stdin"] = stdin
        try:
            response = await self._client.post(self.url, json=body)
        except httpx.HTTPError as exc:
            raise GatewayError(f"Code execution request failed: {exc}") from exc
        if response.status_code != 200:
            raise GatewayError(f"Code execution service returned {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise GatewayError("Code execution service returned an invalid body") from exc
        if not isinstance(data, dict):
            raise GatewayError("Code execution service returned an invalid body")

        run_stage = data.get("run") or {}
        compile_stage = data.get("compile") or {}
        return ExecutionResult(
            stdout=str(run_stage.get("stdout") or ""),
            stderr=str(run_stage.get("stderr") or ""),
            compile_output=str(compile_stage.get("output") or ""),
            status=_status_for(data),
        )

    async def run_harness(self, harness: Harness, code: str, case_input: str) -> ExecutionResult:
        """Run ``code`` wrapped in the language driver for one test case."""
        files = [{"name": harness.filename, "content": harness.render(code, case_input)}]
        return await self.execute(harness.language, harness.version, files)

    async def run_source(self, language: Optional[str], code: str, stdin: str = "") -> ExecutionResult:
        """Run raw source with stdin, as the interactive "run" button does."""
        harness = get_harness(language)
        if harness is None or not code:
            raise ValidationError("Unsupported language or empty code.")
        files = [{"name": harness.filename, "content": code}]
        return await self.execute(harness.language, harness.version, files, stdin=stdin)


def build_http_client() -> httpx.AsyncClient:
    if settings.CODE_RUNNER_TIMEOUT is not None:
        return httpx.AsyncClient(timeout=settings.CODE_RUNNER_TIMEOUT)
    return httpx.AsyncClient()


async def get_code_runner() -> AsyncIterator[CodeRunner]:
    """FastAPI dependency that yields a runner bound to a short-lived HTTP client."""
    async with build_http_client() as client:
        yield CodeRunner(client)
