import json
import sys
from pathlib import Path

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, text


def _ensure_app_on_path():
    repo_root = Path(__file__).resolve().parent.parent
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))
    return repo_root


_ensure_app_on_path()

from fastapi.testclient import TestClient  # noqa: E402

from exam_portal.database import get_session  # noqa: E402
from exam_portal.main import app  # noqa: E402
from exam_portal.models import Exam  # noqa: E402
from exam_portal.services.code_runner import CodeRunner, get_code_runner  # noqa: E402

# ============================================================================
# IN-MEMORY DATABASE FOR TESTING
# ============================================================================

test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # all connections share the same in-memory database
)

SANDBOX_URL = "http://sandbox.test/api/v2/execute"


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create all tables in the test database once per session."""
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(autouse=True)
def cleanup_db_between_tests():
    """Clean up test data after each test."""
    yield
    with Session(test_engine) as session:
        session.exec(text("DELETE FROM examresult"))
        session.exec(text("DELETE FROM exam"))
        session.exec(text("DELETE FROM user"))
        session.commit()


@pytest.fixture
def session():
    """Provide a database session for tests."""
    with Session(test_engine) as session:
        yield session


# ============================================================================
# FAKE CODE EXECUTION SANDBOX
# ============================================================================


class FakeGateway:
    """Stands in for the sandbox behind an httpx.MockTransport.

    ``replies`` are consumed one per request: a string is returned as
    ``run.stdout``, an int as an error status, an exception is raised by the
    transport. Once exhausted, ``default`` is used.
    """

    def __init__(self, default=""):
        self.default = default
        self.replies = []
        self.requests = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, int):
            return httpx.Response(reply, json={"message": "sandbox error"})
        return httpx.Response(200, json={"language": "javascript", "run": {"stdout": reply, "stderr": "", "code": 0}})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    def runner(self) -> CodeRunner:
        return CodeRunner(self.client(), url=SANDBOX_URL)


@pytest.fixture
def gateway():
    return FakeGateway()


# ============================================================================
# FASTAPI APP & TEST CLIENT
# ============================================================================


def _override_get_session():
    with Session(test_engine) as session:
        yield session


@pytest.fixture
def override_dependencies(gateway):
    async def override_get_code_runner():
        async with gateway.client() as http:
            yield CodeRunner(http, url=SANDBOX_URL)

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_code_runner] = override_get_code_runner
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(override_dependencies):
    """Synchronous test client with the test database and fake sandbox wired in."""
    return TestClient(override_dependencies)


# ============================================================================
# ENTITY FIXTURES
# ============================================================================


def create_exam(**fields) -> Exam:
    """Insert an exam directly and return a detached copy."""
    fields.setdefault("title", "Sample Exam")
    with Session(test_engine) as session:
        exam = Exam(**fields)
        session.add(exam)
        session.commit()
        session.refresh(exam)
        return exam


@pytest.fixture
def mcq_exam():
    return create_exam(
        title="Arithmetic",
        exam_type="mcq",
        questions=[
            {"question": "1 + 1?", "options": ["1", "2", "3"], "correctAnswer": 1},
            {"question": "2 + 2?", "options": ["4", "5"], "correctAnswer": 0},
            {"question": "3 + 3?", "options": ["5", "6", "7"], "correctAnswer": 1},
        ],
    )


@pytest.fixture
def theory_exam():
    return create_exam(
        title="Essays",
        exam_type="theory",
        questions=[{"question": "Explain recursion."}, {"question": "Explain closures."}],
    )


@pytest.fixture
def coding_exam():
    return create_exam(
        title="Doubling",
        exam_type="coding",
        allowed_languages=["javascript", "python"],
        questions=[
            {
                "question": "Return twice the input.",
                "starterCode": "function solve(input){\n  return input;\n}",
                "testcases": [{"input": "2", "expected": "4"}],
            }
        ],
    )
