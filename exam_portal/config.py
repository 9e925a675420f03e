"""Configuration settings for the Exam Portal."""

import os
from typing import Optional


def _env_flag(name: str, default: str = "true") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


def _env_float(name: str) -> Optional[float]:
    value = os.environ.get(name)
    return float(value) if value else None


class Settings:
    """Application settings loaded from environment."""

    # Database
    DATABASE_URL: str = os.environ.get("EXAM_PORTAL_DATABASE_URL", "sqlite:///./exam_portal.db")

    # Cookie sessions
    SESSION_SECRET: str = os.environ.get("EXAM_PORTAL_SESSION_SECRET", "CHANGE_ME_TO_A_RANDOM_SECRET")

    # Code execution sandbox (Piston-compatible)
    CODE_RUNNER_URL: str = os.environ.get(
        "EXAM_PORTAL_CODE_RUNNER_URL", "https://emkc.org/api/v2/piston/execute"
    )
    # None leaves the transport's own timeout in charge
    CODE_RUNNER_TIMEOUT: Optional[float] = _env_float("EXAM_PORTAL_CODE_RUNNER_TIMEOUT")

    # Grading
    MAX_GRADED_TESTCASES: int = 20
    MAX_SAMPLE_TESTCASES: int = 10

    # Proctoring
    MAX_VIOLATIONS: int = 4

    # Startup
    SEED_ADMIN: bool = _env_flag("EXAM_PORTAL_SEED_ADMIN")
    SEED_ADMIN_EMAIL: str = os.environ.get("EXAM_PORTAL_ADMIN_EMAIL", "admin@example.com")
    SEED_ADMIN_PASSWORD: str = os.environ.get("EXAM_PORTAL_ADMIN_PASSWORD", "admin123")

    # Logging
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
