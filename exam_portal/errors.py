"""Error taxonomy shared by the services, the HTTP layer and the exam client.

Every error carries the HTTP status it maps to. Routers never build error
responses themselves; the handlers registered in ``exam_portal.main`` turn
these into ``{"detail": message}`` JSON bodies.
"""

from fastapi import status


class PortalError(Exception):
    """Base class for all application errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# --- 4xx: caller mistakes, never retried automatically ---


class ValidationError(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class MissingField(ValidationError):
    default_message = "examId, studentId and answers are required"


class InvalidAnswerFormat(ValidationError):
    default_message = "Invalid answers format"


class MissingCode(ValidationError):
    default_message = "Code is required"


class NotFoundError(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ExamNotFound(NotFoundError):
    default_message = "Exam not found"


class ResultNotFound(NotFoundError):
    default_message = "Result not found"


class LockedError(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource is locked"


class ExamLocked(LockedError):
    default_message = "Cannot edit: exam already started"


# --- infrastructure ---


class GatewayError(PortalError):
    """The code execution sandbox failed, timed out or answered garbage.

    Grading recovers from this per test case; it only reaches a client from
    the interactive run endpoint.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Code execution service unavailable"


class StorageError(PortalError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"
