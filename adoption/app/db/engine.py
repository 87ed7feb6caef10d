"""Database engine and session factory."""

from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from adoption.app.config import Settings


def create_engine_from_settings(settings: Settings) -> Engine:
    """Create SQLAlchemy engine from settings.

    Store calls are bounded: PostgreSQL gets a server-side statement timeout
    and every backend waits at most ``store_timeout_seconds`` for a pooled
    connection.

    Raises:
        ValueError: If DATABASE_URL is unset or empty.
    """
    database_url = settings.database_url

    if not database_url:
        raise ValueError(
            "DATABASE_URL must be set to a valid connection string. "
            "Please configure the database_url setting."
        )

    timeout_ms = int(settings.store_timeout_seconds * 1000)
    kwargs: dict[str, Any] = {"pool_pre_ping": True, "echo": False}

    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.store_timeout_seconds,
        }
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            # One shared connection so every session sees the same in-memory database
            kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_timeout"] = settings.store_timeout_seconds
    else:
        kwargs["pool_timeout"] = settings.store_timeout_seconds
        if database_url.startswith("postgresql"):
            kwargs["connect_args"] = {"options": f"-c statement_timeout={timeout_ms}"}

    return create_engine(database_url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create sessionmaker for creating database sessions.

    Args:
        engine: SQLAlchemy engine

    Returns:
        Sessionmaker bound to the engine
    """
    return sessionmaker(bind=engine, expire_on_commit=False)
