"""Engine and session factory for the read-only operational store."""

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from analytics_service.core.config import Settings, get_settings


def engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for :func:`create_engine` derived from settings.

    On PostgreSQL every connection carries ``statement_timeout`` so a report
    query abandoned by its caller is cancelled by the server.
    """

    options: dict[str, Any] = {
        "echo": settings.database_echo,
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
        "future": True,
    }
    timeout_ms = settings.database_statement_timeout_ms
    if timeout_ms > 0 and make_url(settings.database_url).get_backend_name() == "postgresql":
        options["connect_args"] = {"options": f"-c statement_timeout={timeout_ms}"}
    return options


settings = get_settings()

engine = create_engine(settings.database_url, **engine_options(settings))

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
