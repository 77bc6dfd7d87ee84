"""DB helpers for tests: bootstrap a temporary SQLite DB and seed documents."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from db import Base
from db.client import get_engine, session_scope
from db.models.tracker import EtTransaction


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    A file-backed DB lets the store's worker thread and the test thread share
    state (in-memory SQLite databases are per-connection).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    return url


def insert_raw_documents(
    database_url: str, uid: str, docs: Iterable[Mapping[str, Any]]
) -> list[str]:
    """Insert rows as-is, bypassing client validation (malformed data welcome).

    Each document may carry its own ``id``; otherwise ``raw-<n>`` is used.
    ``created_at`` increases with insertion order.
    """

    base = datetime(2025, 1, 1, tzinfo=UTC)
    ids: list[str] = []
    with session_scope(database_url=database_url) as session:
        for n, doc in enumerate(docs):
            tx_id = str(doc.get("id") or f"raw-{n}")
            session.add(
                EtTransaction(
                    id=tx_id,
                    uid=uid,
                    type=doc.get("type"),
                    category=doc.get("category"),
                    amount=doc.get("amount"),
                    date=doc.get("date"),
                    created_at=base + timedelta(seconds=n),
                )
            )
            ids.append(tx_id)
    return ids
