"""Error taxonomy for the tracker core.

Validation failures are raised locally before any remote call. Remote
failures are surfaced verbatim with the original exception chained as
``__cause__``; nothing here is retried automatically.
"""

from __future__ import annotations

from collections.abc import Sequence


class ExpenseTrackerError(Exception):
    """Base class for every error raised by ``expense_tracker``."""


class ValidationError(ExpenseTrackerError, ValueError):
    """A draft or patch violates the transaction invariants.

    ``fields`` names the offending fields when they are known.
    """

    def __init__(self, message: str, *, fields: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.fields: tuple[str, ...] = tuple(fields)


class NotFoundError(ExpenseTrackerError, LookupError):
    """The authoritative store has no record with the requested id."""

    def __init__(self, tx_id: str) -> None:
        super().__init__(f"transaction not found: {tx_id}")
        self.tx_id = tx_id


class UpdateFailed(ExpenseTrackerError):
    """The authoritative store rejected a create/update/delete."""


class SubscriptionError(ExpenseTrackerError):
    """The live transaction subscription terminated unexpectedly."""


# Provider codes meaning "the popup never completed"; a redirect may work.
POPUP_BLOCKED_CODES = frozenset({"popup-blocked", "popup-closed-by-user"})


class AuthError(ExpenseTrackerError):
    """Sign-in or sign-out failed.

    ``code`` is the provider-specific reason (e.g. ``"popup-blocked"``).
    """

    def __init__(self, message: str, *, code: str = "") -> None:
        super().__init__(message)
        self.code = code

    @property
    def popup_blocked(self) -> bool:
        return self.code in POPUP_BLOCKED_CODES


__all__ = [
    "AuthError",
    "ExpenseTrackerError",
    "NotFoundError",
    "POPUP_BLOCKED_CODES",
    "SubscriptionError",
    "UpdateFailed",
    "ValidationError",
]
