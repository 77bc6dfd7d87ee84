"""Data models and type aliases for ``expense_tracker``.

Remote documents are duck-typed; everything in this module is the closed,
validated shape the rest of the package works with. Pydantic models cover
what crosses a boundary (drafts and patches from callers, documents from the
store, JSON in the local cache); plain frozen dataclasses cover what the core
computes for itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    model_validator,
)

# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


class TransactionType(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"
    SAVINGS = "savings"


_CENT = Decimal("0.01")


def quantize_amount(value: Decimal) -> Decimal:
    """Round to whole cents (half-up), the precision the store keeps."""

    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp (or a ``date``/``datetime``) leniently.

    Returns ``None`` for anything that cannot be read as a point in time.
    Date-only values map to midnight; naive values are kept naive so the
    day-of-month the user wrote is the day-of-month we bucket on.
    """

    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    if not isinstance(raw, str):
        return None
    s = raw.strip()
    if not s:
        return None
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def _reject_bool(v: Any) -> Any:
    # bool is an int subclass; True must not become an amount of 1.
    if isinstance(v, bool):
        raise ValueError("amount must be a number, not a boolean")
    return v


def _checked_amount(v: Decimal) -> Decimal:
    q = quantize_amount(v)
    if q <= 0:
        raise ValueError("amount must be at least 0.01")
    return q


def _strict_timestamp(v: Any) -> Any:
    if v is None:
        return None
    parsed = parse_timestamp(v)
    if parsed is None:
        raise ValueError(f"date is not an ISO-8601 timestamp: {v!r}")
    return parsed


Category = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Amount = Annotated[Decimal, BeforeValidator(_reject_bool), Field(gt=0, allow_inf_nan=False)]
# Caller input: rounded to cents, and must still be positive afterwards.
AmountInput = Annotated[Amount, AfterValidator(_checked_amount)]
TimestampInput = Annotated[datetime | None, BeforeValidator(_strict_timestamp)]


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class Transaction(BaseModel):
    """A validated transaction as delivered by the synchronization channel.

    ``date`` is ``None`` only when the stored value could not be parsed;
    ``created_at`` is the store's ordering token and is never displayed.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    type: TransactionType
    category: Category
    amount: Amount
    date: datetime | None = None
    created_at: datetime | None = None


type Snapshot = tuple[Transaction, ...]
"""The complete, ordered transaction set for one identity at a point in time."""


class TransactionDraft(BaseModel):
    """Caller-supplied proposal for a new transaction.

    Validation happens entirely on construction; a draft that exists is one
    the store may be asked to create.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: TransactionType
    category: Category
    amount: AmountInput
    date: TimestampInput = None

    def to_document(self, *, now: datetime | None = None) -> dict[str, Any]:
        when = self.date or now or datetime.now(UTC)
        return {
            "type": self.type.value,
            "category": self.category,
            "amount": self.amount,
            "date": when.isoformat(),
        }


class TransactionPatch(BaseModel):
    """Partial change to an existing transaction.

    At least one field must be supplied and none of the supplied fields may be
    null. Amounts given as strings are coerced to numbers.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: TransactionType | None = None
    category: Category | None = None
    amount: AmountInput | None = None
    date: TimestampInput = None

    @model_validator(mode="after")
    def _non_empty(self) -> TransactionPatch:
        if not self.model_fields_set:
            raise ValueError("patch must change at least one field")
        nulls = sorted(n for n in self.model_fields_set if getattr(self, n) is None)
        if nulls:
            raise ValueError(f"fields cannot be cleared: {', '.join(nulls)}")
        return self

    def to_document(self) -> dict[str, Any]:
        body: dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if isinstance(value, TransactionType):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat()
            body[name] = value
        return body


# ---------------------------------------------------------------------------
# Identity and profile
# ---------------------------------------------------------------------------


class Identity(BaseModel):
    """The minimal identity record kept in the local cache."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    uid: Annotated[str, StringConstraints(min_length=1)]
    display_name: str | None = None
    email: str | None = None
    photo_url: str | None = None

    @property
    def first_name(self) -> str:
        parts = (self.display_name or "").split()
        return parts[0] if parts else "User"


class ProfileTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    savings: Decimal = Decimal("0")


class Profile(BaseModel):
    """Per-identity profile document.

    ``balance`` and ``totals`` are denormalized and informational only; figures
    shown to the user are always recomputed from the live snapshot.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    uid: str
    display_name: str | None = None
    email: str | None = None
    photo_url: str | None = None
    balance: Decimal = Decimal("0")
    totals: ProfileTotals = Field(default_factory=ProfileTotals)

    @classmethod
    def blank(cls, identity: Identity) -> Profile:
        return cls(
            uid=identity.uid,
            display_name=identity.display_name,
            email=identity.email,
            photo_url=identity.photo_url,
        )


# ---------------------------------------------------------------------------
# Derived figures
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Totals:
    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    savings: Decimal = Decimal("0")

    @property
    def balance(self) -> Decimal:
        return self.income - self.expenses - self.savings


@dataclass(frozen=True, slots=True)
class DailySeries:
    """Cumulative per-day sums, one tuple per transaction type."""

    income: tuple[Decimal, ...]
    expenses: tuple[Decimal, ...]
    savings: tuple[Decimal, ...]


@dataclass(frozen=True, slots=True)
class DerivedAnalytics:
    """Figures derived from one snapshot; recomputed on every delivery."""

    totals: Totals
    balance: Decimal
    peak_expense: Transaction | None
    lowest_expense: Transaction | None
    series: DailySeries
    labels: tuple[str, ...]


# ---------------------------------------------------------------------------
# Mutation results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DeleteAllResult:
    """Outcome of a non-transactional delete-everything run.

    ``unconfirmed`` maps each id whose deletion the store did not confirm to
    the error it reported.
    """

    deleted: tuple[str, ...] = ()
    unconfirmed: Mapping[str, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.unconfirmed

    @property
    def unconfirmed_ids(self) -> tuple[str, ...]:
        return tuple(self.unconfirmed)


__all__ = [
    "DailySeries",
    "DeleteAllResult",
    "DerivedAnalytics",
    "Identity",
    "Profile",
    "ProfileTotals",
    "Snapshot",
    "Totals",
    "Transaction",
    "TransactionDraft",
    "TransactionPatch",
    "TransactionType",
    "parse_timestamp",
    "quantize_amount",
]
