"""Public interface for the ``expense_tracker`` package.

Re-exports the engine's stable import surface: the aggregation function, the
synchronization/mutation/session components, the store and cache adapters,
the models and the error taxonomy. There is no runtime logic here.
"""

from .analytics import SERIES_DAYS, day_labels, derive
from .cache import LocalCacheStore
from .errors import (
    AuthError,
    ExpenseTrackerError,
    NotFoundError,
    SubscriptionError,
    UpdateFailed,
    ValidationError,
)
from .gateway import MutationGateway
from .identity import LocalIdentityProvider
from .models import (
    DailySeries,
    DeleteAllResult,
    DerivedAnalytics,
    Identity,
    Profile,
    Snapshot,
    Totals,
    Transaction,
    TransactionDraft,
    TransactionPatch,
    TransactionType,
)
from .session import AuthState, IdentityProvider, SessionGate, TrackerSession
from .store import SqlTransactionStore, TransactionStore
from .sync import SyncChannel, parse_snapshot

__all__ = [
    # Engine
    "SERIES_DAYS",
    "day_labels",
    "derive",
    "LocalCacheStore",
    "MutationGateway",
    "SyncChannel",
    "parse_snapshot",
    "AuthState",
    "IdentityProvider",
    "SessionGate",
    "TrackerSession",
    # Adapters
    "LocalIdentityProvider",
    "SqlTransactionStore",
    "TransactionStore",
    # Models / types
    "DailySeries",
    "DeleteAllResult",
    "DerivedAnalytics",
    "Identity",
    "Profile",
    "Snapshot",
    "Totals",
    "Transaction",
    "TransactionDraft",
    "TransactionPatch",
    "TransactionType",
    # Errors
    "AuthError",
    "ExpenseTrackerError",
    "NotFoundError",
    "SubscriptionError",
    "UpdateFailed",
    "ValidationError",
]
