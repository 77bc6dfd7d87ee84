"""Remote synchronization channel and the document parse boundary.

The channel owns at most one live store subscription. Every delivery is a
complete, ordered snapshot that replaces the previous one; the channel never
diffs, reorders or coalesces deliveries.

Raw store documents are duck-typed. ``parse_snapshot`` turns them into the
closed :class:`~expense_tracker.models.Transaction` shape before anything
downstream sees them:

- a missing id, an unknown ``type`` or a missing/non-positive/non-finite
  ``amount`` rejects the record (dropped and logged);
- a missing or blank ``category`` is coerced to ``"Uncategorized"``;
- an unparseable ``date`` is coerced to ``None`` (bucketed on day 1).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .errors import SubscriptionError
from .logging_setup import get_logger
from .models import Snapshot, Transaction, parse_timestamp
from .store import Document, TransactionStore, Unsubscribe

UNCATEGORIZED = "Uncategorized"

_logger = get_logger("expense_tracker.sync")


def parse_transaction(doc: Mapping[str, Any]) -> Transaction | None:
    """Validate one store document; ``None`` when it must be rejected."""

    category = doc.get("category")
    if not isinstance(category, str) or not category.strip():
        category = UNCATEGORIZED
    candidate = {
        "id": doc.get("id"),
        "type": doc.get("type"),
        "category": category,
        "amount": doc.get("amount"),
        "date": parse_timestamp(doc.get("date")),
        "created_at": parse_timestamp(doc.get("created_at")),
    }
    try:
        return Transaction.model_validate(candidate)
    except PydanticValidationError as e:
        _logger.warning(
            "snapshot:rejected_record id=%r errors=%s",
            doc.get("id"),
            "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()),
        )
        return None


def parse_snapshot(docs: Iterable[Mapping[str, Any]]) -> Snapshot:
    """Validate a delivered collection, keeping the store's order."""

    out: list[Transaction] = []
    for doc in docs:
        tx = parse_transaction(doc)
        if tx is not None:
            out.append(tx)
    return tuple(out)


class SyncChannel:
    """Live, replace-not-patch view of one identity's transactions.

    Parameters
    ----------
    store:
        The authoritative store to subscribe to.
    on_snapshot:
        Called with each parsed :data:`Snapshot`, in delivery order.
    on_failure:
        Called once with a :class:`SubscriptionError` when the subscription
        cannot be opened or terminates unexpectedly. The channel is inactive
        afterwards.
    """

    def __init__(
        self,
        store: TransactionStore,
        *,
        on_snapshot: Callable[[Snapshot], None],
        on_failure: Callable[[SubscriptionError], None] | None = None,
    ) -> None:
        self._store = store
        self._on_snapshot = on_snapshot
        self._on_failure = on_failure
        self._uid: str | None = None
        self._unsubscribe: Unsubscribe | None = None
        # Bumped on every open/cancel; callbacks from older subscriptions
        # compare against it and drop themselves.
        self._token = 0
        self.failure: SubscriptionError | None = None

    @property
    def uid(self) -> str | None:
        return self._uid

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def open(self, uid: str) -> None:
        """Subscribe to ``uid``'s transactions, replacing any other subscription."""

        if self.active and self._uid == uid:
            return
        self.cancel()
        self._token += 1
        token = self._token
        self._uid = uid
        self.failure = None
        _logger.info("channel:open uid=%s", uid)
        try:
            self._unsubscribe = self._store.subscribe(
                uid,
                lambda docs: self._deliver(token, docs),
                lambda exc: self._fail(token, exc),
            )
        except Exception as exc:
            self._fail(token, exc)

    def cancel(self) -> None:
        """Stop delivery. Idempotent; a no-op when nothing is open."""

        unsubscribe, self._unsubscribe = self._unsubscribe, None
        self._token += 1
        if unsubscribe is None:
            return
        _logger.info("channel:cancel uid=%s", self._uid)
        unsubscribe()

    def _deliver(self, token: int, docs: list[Document]) -> None:
        if token != self._token:
            return
        snapshot = parse_snapshot(docs)
        _logger.debug(
            "channel:snapshot uid=%s received=%d accepted=%d",
            self._uid,
            len(docs),
            len(snapshot),
        )
        self._on_snapshot(snapshot)

    def _fail(self, token: int, exc: BaseException) -> None:
        if token != self._token:
            return
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        self._token += 1
        if unsubscribe is not None:
            unsubscribe()
        err = SubscriptionError(f"transaction subscription for {self._uid} terminated: {exc}")
        err.__cause__ = exc
        self.failure = err
        _logger.error("channel:failed uid=%s error=%s", self._uid, exc)
        if self._on_failure is not None:
            self._on_failure(err)


__all__ = ["SyncChannel", "UNCATEGORIZED", "parse_snapshot", "parse_transaction"]
