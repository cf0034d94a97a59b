from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter
from typing import Any, Generator

from anyio import to_thread
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tripline.core.settings import settings

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        connect_args: dict[str, Any] = {}
        if settings.database_url.startswith("sqlite"):
            # store calls run in worker threads
            connect_args["check_same_thread"] = False
        elif settings.database_url.startswith("postgresql"):
            connect_args["connect_timeout"] = 1
        _engine = create_engine(
            settings.database_url,
            connect_args=connect_args,
            pool_pre_ping=True,
            future=True,
        )
    return _engine


def _get_session_factory() -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            future=True,
        )
    return _session_factory


def get_session() -> Session:
    """Return a new SQLAlchemy session bound to the shared engine."""

    return _get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Provide transactional scope for DB interactions."""

    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    from tripline.models import Base
    from tripline.models import orm  # noqa: F401

    Base.metadata.create_all(get_engine())


def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        _engine = None
    _session_factory = None


async def check_db_health() -> dict[str, Any]:
    def _run() -> dict[str, Any]:
        start = perf_counter()
        try:
            with get_engine().connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            return {"status": "fail", "error": str(exc)}
        latency = (perf_counter() - start) * 1000
        return {"status": "ok", "latency_ms": round(latency, 3), "error": None}

    return await to_thread.run_sync(_run)
