# ruff: noqa: I001
"""Authoritative transaction store: interface and SQL-backed implementation.

``TransactionStore`` is the seam the core talks to. It models a realtime
document store: per-identity collections keyed by id, an ordered live
subscription that re-delivers the complete collection after every change,
and a profile document per identity.

``SqlTransactionStore`` implements it on the shared ``db`` library
(SQLAlchemy). Blocking database work runs on a single dedicated worker thread,
which serializes all store operations; deliveries are handed back to the
subscriber's event loop with ``call_soon_threadsafe``, preserving emission
order. Documents are returned as plain dicts; validating them is the
subscriber's job.
"""

from __future__ import annotations

import asyncio
import threading
import uuid
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db.client import session_scope
from db.models.tracker import EtProfile, EtTransaction

from .errors import NotFoundError
from .logging_setup import get_logger

type Document = dict[str, Any]
type OnSnapshot = Callable[[list[Document]], None]
type OnError = Callable[[BaseException], None]
type Unsubscribe = Callable[[], None]

_logger = get_logger("expense_tracker.store")

# Fields a client may write on a transaction document.
WRITABLE_FIELDS = frozenset({"type", "category", "amount", "date"})


class TransactionStore(Protocol):
    """Interface to the authoritative store, scoped by identity ``uid``."""

    def subscribe(self, uid: str, on_snapshot: OnSnapshot, on_error: OnError) -> Unsubscribe:
        """Start a live subscription ordered ascending by ``date``.

        ``on_snapshot`` receives the complete collection once right away and
        again after every change. ``on_error`` is called at most once, when
        the subscription terminates; nothing is delivered after that.
        """
        ...

    async def add(self, uid: str, document: Mapping[str, Any]) -> str: ...

    async def update(self, uid: str, tx_id: str, fields: Mapping[str, Any]) -> None:
        """Merge ``fields`` into an existing document; ``NotFoundError`` if absent."""
        ...

    async def delete(self, uid: str, tx_id: str) -> None: ...

    async def list_ids(self, uid: str) -> list[str]: ...

    async def get_profile(self, uid: str) -> Document | None: ...

    async def set_profile(self, uid: str, document: Mapping[str, Any]) -> None: ...


class _Listener:
    """One live subscription; delivers on the loop it was created on."""

    __slots__ = ("uid", "loop", "on_snapshot", "on_error", "active")

    def __init__(
        self,
        uid: str,
        loop: asyncio.AbstractEventLoop,
        on_snapshot: OnSnapshot,
        on_error: OnError,
    ) -> None:
        self.uid = uid
        self.loop = loop
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True

    def _deliver(self, docs: list[Document]) -> None:
        if self.active:
            self.on_snapshot(docs)

    def _fail(self, exc: BaseException) -> None:
        if self.active:
            self.active = False
            self.on_error(exc)

    def post(self, docs: list[Document]) -> None:
        if self.active and not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self._deliver, docs)

    def post_error(self, exc: BaseException) -> None:
        if self.active and not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self._fail, exc)


def _to_document(row: EtTransaction) -> Document:
    return {
        "id": row.id,
        "type": row.type,
        "category": row.category,
        "amount": row.amount,
        "date": row.date,
        "created_at": row.created_at,
    }


def _profile_document(row: EtProfile) -> Document:
    return {
        "uid": row.uid,
        "display_name": row.display_name,
        "email": row.email,
        "photo_url": row.photo_url,
        "balance": row.balance,
        "totals": {
            "income": row.total_income,
            "expenses": row.total_expenses,
            "savings": row.total_savings,
        },
    }


class SqlTransactionStore:
    """``TransactionStore`` backed by SQLAlchemy tables ``et_transactions``/``et_profiles``."""

    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="et-store")
        self._listeners: dict[str, list[_Listener]] = {}
        self._lock = threading.Lock()
        self._last_created_at: datetime | None = None

    # ---- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        """Stop all subscriptions and the worker thread."""

        with self._lock:
            listeners = [lst for group in self._listeners.values() for lst in group]
            self._listeners.clear()
        for lst in listeners:
            lst.active = False
        self._executor.shutdown(wait=True)

    # ---- subscriptions ------------------------------------------------------

    def subscribe(self, uid: str, on_snapshot: OnSnapshot, on_error: OnError) -> Unsubscribe:
        listener = _Listener(uid, asyncio.get_running_loop(), on_snapshot, on_error)
        with self._lock:
            self._listeners.setdefault(uid, []).append(listener)

        def _unsubscribe() -> None:
            listener.active = False
            with self._lock:
                group = self._listeners.get(uid, [])
                if listener in group:
                    group.remove(listener)
                if not group:
                    self._listeners.pop(uid, None)

        try:
            self._executor.submit(self._publish_initial, listener)
        except RuntimeError:
            # Executor already shut down by close().
            _unsubscribe()
            raise
        return _unsubscribe

    def _listeners_for(self, uid: str) -> list[_Listener]:
        with self._lock:
            return [lst for lst in self._listeners.get(uid, []) if lst.active]

    def _publish_initial(self, listener: _Listener) -> None:
        try:
            docs = self._fetch(listener.uid)
        except Exception as exc:  # noqa: BLE001
            _logger.error("subscribe:initial_fetch_failed uid=%s", listener.uid, exc_info=True)
            listener.post_error(exc)
            return
        listener.post(docs)

    def _publish(self, uid: str) -> None:
        listeners = self._listeners_for(uid)
        if not listeners:
            return
        try:
            docs = self._fetch(uid)
        except Exception as exc:  # noqa: BLE001
            _logger.error("subscribe:fetch_failed uid=%s", uid, exc_info=True)
            for lst in listeners:
                lst.post_error(exc)
            return
        for lst in listeners:
            # Each listener gets its own list; subscribers may keep it.
            lst.post([dict(d) for d in docs])

    def _fetch(self, uid: str) -> list[Document]:
        with session_scope(database_url=self._database_url) as session:
            rows = session.scalars(
                select(EtTransaction)
                .where(EtTransaction.uid == uid)
                .order_by(
                    EtTransaction.date.asc(),
                    EtTransaction.created_at.asc(),
                    EtTransaction.id.asc(),
                )
            ).all()
            return [_to_document(r) for r in rows]

    # ---- worker plumbing ----------------------------------------------------

    async def _run[T](self, fn: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn)

    def _next_created_at(self) -> datetime:
        # Strictly increasing within this process, even for same-tick inserts.
        now = datetime.now(UTC)
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now

    # ---- transactions -------------------------------------------------------

    async def add(self, uid: str, document: Mapping[str, Any]) -> str:
        fields = {k: v for k, v in document.items() if k in WRITABLE_FIELDS}

        def _work() -> str:
            tx_id = uuid.uuid4().hex
            with session_scope(database_url=self._database_url) as session:
                session.add(
                    EtTransaction(
                        id=tx_id, uid=uid, created_at=self._next_created_at(), **fields
                    )
                )
            self._publish(uid)
            return tx_id

        tx_id = await self._run(_work)
        _logger.debug("store:add uid=%s id=%s", uid, tx_id)
        return tx_id

    async def update(self, uid: str, tx_id: str, fields: Mapping[str, Any]) -> None:
        changes = {k: v for k, v in fields.items() if k in WRITABLE_FIELDS}

        def _work() -> None:
            with session_scope(database_url=self._database_url) as session:
                row = self._get_row(session, uid, tx_id)
                if row is None:
                    raise NotFoundError(tx_id)
                for name, value in changes.items():
                    setattr(row, name, value)
            self._publish(uid)

        await self._run(_work)

    async def delete(self, uid: str, tx_id: str) -> None:
        def _work() -> None:
            with session_scope(database_url=self._database_url) as session:
                # Deleting an absent id is a no-op, as in document stores.
                session.execute(
                    delete(EtTransaction).where(
                        EtTransaction.uid == uid, EtTransaction.id == tx_id
                    )
                )
            self._publish(uid)

        await self._run(_work)

    async def list_ids(self, uid: str) -> list[str]:
        def _work() -> list[str]:
            with session_scope(database_url=self._database_url) as session:
                return list(
                    session.scalars(
                        select(EtTransaction.id)
                        .where(EtTransaction.uid == uid)
                        .order_by(EtTransaction.date.asc(), EtTransaction.created_at.asc())
                    )
                )

        return await self._run(_work)

    @staticmethod
    def _get_row(session: Session, uid: str, tx_id: str) -> EtTransaction | None:
        row = session.get(EtTransaction, tx_id)
        if row is None or row.uid != uid:
            return None
        return row

    # ---- profiles -----------------------------------------------------------

    async def get_profile(self, uid: str) -> Document | None:
        def _work() -> Document | None:
            with session_scope(database_url=self._database_url) as session:
                row = session.get(EtProfile, uid)
                return _profile_document(row) if row is not None else None

        return await self._run(_work)

    async def set_profile(self, uid: str, document: Mapping[str, Any]) -> None:
        totals = document.get("totals") or {}

        def _work() -> None:
            with session_scope(database_url=self._database_url) as session:
                row = session.get(EtProfile, uid)
                if row is None:
                    row = EtProfile(uid=uid)
                    session.add(row)
                row.display_name = document.get("display_name")
                row.email = document.get("email")
                row.photo_url = document.get("photo_url")
                row.balance = Decimal(str(document.get("balance") or 0))
                row.total_income = Decimal(str(totals.get("income") or 0))
                row.total_expenses = Decimal(str(totals.get("expenses") or 0))
                row.total_savings = Decimal(str(totals.get("savings") or 0))

        await self._run(_work)


__all__ = [
    "Document",
    "OnError",
    "OnSnapshot",
    "SqlTransactionStore",
    "TransactionStore",
    "Unsubscribe",
    "WRITABLE_FIELDS",
]
