"""Process-wide SQLAlchemy engine and session helpers for the tracker tables.

One engine per process, bound to the first database URL it is asked for
(explicit argument or ``DATABASE_URL``). The transaction store runs its
queries on a worker thread, so SQLite connections are opened with
``check_same_thread=False``.

Usage
-----
from db.client import session_scope

with session_scope(database_url=url) as s:
    s.add(row)
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

_ENGINE: Engine | None = None
_SESSION_MAKER: sessionmaker[Session] | None = None
_BOUND_URL: str | None = None


def resolve_database_url(override: str | None = None) -> str:
    """Return ``override`` or ``DATABASE_URL``; ``RuntimeError`` when neither is set."""

    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    return options


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the shared engine, creating it on first use.

    Asking for a different URL once an engine exists is a programming error;
    call :func:`reset_engine` first (tests do this between cases).
    """

    global _ENGINE, _SESSION_MAKER, _BOUND_URL
    url = resolve_database_url(database_url)
    if _ENGINE is not None:
        if url != _BOUND_URL:
            raise RuntimeError(
                f"database client is bound to {_BOUND_URL!r}; "
                "call reset_engine() before switching databases"
            )
        return _ENGINE

    _ENGINE = create_engine(url, **_engine_options(url))
    _SESSION_MAKER = sessionmaker(bind=_ENGINE, expire_on_commit=False, class_=Session)
    _BOUND_URL = url
    return _ENGINE


def reset_engine() -> None:
    """Dispose the shared engine so the next call may bind a different URL."""

    global _ENGINE, _SESSION_MAKER, _BOUND_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _SESSION_MAKER = None
    _BOUND_URL = None


def get_session(*, database_url: str | None = None) -> Session:
    get_engine(database_url=database_url)
    assert _SESSION_MAKER is not None  # bound by get_engine
    return _SESSION_MAKER()


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Commit on success, roll back on any exception, always close."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "get_engine",
    "get_session",
    "reset_engine",
    "resolve_database_url",
    "session_scope",
]
