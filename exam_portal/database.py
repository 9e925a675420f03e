"""Database configuration and session dependency."""

from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from exam_portal.config import settings
from exam_portal.errors import StorageError

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

# echo=False to avoid noisy logs; toggle for debugging
engine = create_engine(settings.DATABASE_URL, echo=False, connect_args=_connect_args)


def create_db_and_tables() -> None:
    """Create database tables based on SQLModel metadata."""
    SQLModel.metadata.create_all(engine)


def get_session() -> Iterator[Session]:
    """FastAPI dependency that yields a database session."""
    with Session(engine) as session:
        yield session


def commit_or_raise(session: Session) -> None:
    """Commit the session, turning driver failures into a StorageError."""
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise StorageError() from exc
