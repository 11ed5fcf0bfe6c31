from __future__ import annotations

from collections.abc import Callable
from typing import Any, Dict

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

SessionFactory = Callable[[], Session]


def create_store_engine(database_url: str, timeout_seconds: float) -> Engine:
    """Create an engine whose connection checkout and statements are bounded.

    PostgreSQL gets a server-side statement timeout; SQLite only honours the
    busy timeout on its file lock.
    """

    connect_args: Dict[str, Any] = {}
    if database_url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={int(timeout_seconds * 1000)}"
    elif database_url.startswith("sqlite"):
        connect_args["timeout"] = timeout_seconds
        connect_args["check_same_thread"] = False

    kwargs: Dict[str, Any] = {"connect_args": connect_args, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        kwargs["pool_timeout"] = timeout_seconds
    return create_engine(database_url, **kwargs)


def create_sqlalchemy_session_factory(engine: Engine) -> SessionFactory:
    """Create a SessionFactory producing SQLAlchemy sessions bound to ``engine``."""

    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session)

    def _factory() -> Session:
        return SessionLocal()

    return _factory
