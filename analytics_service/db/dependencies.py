"""Database dependencies for FastAPI endpoints."""

from collections.abc import Generator

from sqlalchemy.orm import Session

from analytics_service.db.session import SessionLocal


def get_db_session() -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session for the duration of one request."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
