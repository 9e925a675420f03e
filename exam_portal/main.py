"""FastAPI entrypoint for the Exam Portal."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlmodel import Session, select
from starlette.middleware.sessions import SessionMiddleware

from exam_portal.auth_utils import hash_password
from exam_portal.config import settings
from exam_portal.database import create_db_and_tables, engine
from exam_portal.errors import ExamNotFound, NotFoundError, PortalError, ResultNotFound
from exam_portal.models import User
from exam_portal.routers import auth as auth_router_module
from exam_portal.routers import exams as exams_router_module
from exam_portal.routers import results as results_router_module

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Exam Portal")


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    """Render application errors as ``{"detail": message}`` with their mapped status."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %r", request.method, request.url.path, exc.__cause__ or exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return readable 400 errors instead of FastAPI's 422 payload.

    An id in the path that is not an integer cannot name any record, so it is
    answered like a missing one.
    """
    if any(error.get("loc", ("",))[0] == "path" for error in exc.errors()):
        path = request.url.path
        if path.startswith("/exams"):
            error = ExamNotFound()
        elif path.startswith("/results/detail"):
            error = ResultNotFound()
        else:
            error = NotFoundError()
        return JSONResponse(status_code=error.status_code, content={"detail": error.message})

    messages = []
    for error in exc.errors():
        # Drop the leading "body"/"path" marker from the location
        location = [str(part) for part in error.get("loc", [])[1:]]
        field_name = ".".join(location) or "request"
        if error.get("type") == "missing":
            messages.append(f"{field_name} is required.")
        else:
            messages.append(f"{field_name}: {error.get('msg', 'Invalid input')}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": " ".join(messages) or "Invalid request"},
    )


# Session middleware for simple cookie-based authentication
app.add_middleware(SessionMiddleware, secret_key=settings.SESSION_SECRET)

# Routers
app.include_router(auth_router_module.router, prefix="/auth", tags=["auth"])
app.include_router(exams_router_module.router, prefix="/exams", tags=["exams"])
app.include_router(results_router_module.router, prefix="/results", tags=["results"])


@app.on_event("startup")
def on_startup():
    """Initialize database schema and seed a default admin account."""
    create_db_and_tables()
    if not settings.SEED_ADMIN:
        return
    with Session(engine) as session:
        existing_admin = session.exec(select(User).where(User.role == "admin")).first()
        if not existing_admin:
            admin_user = User(
                name="System Admin",
                email=settings.SEED_ADMIN_EMAIL,
                password_hash=hash_password(settings.SEED_ADMIN_PASSWORD),
                role="admin",
            )
            session.add(admin_user)
            session.commit()
            logger.info("Seeded default admin user: %s", settings.SEED_ADMIN_EMAIL)
