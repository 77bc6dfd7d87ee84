"""Aggregation engine: snapshot in, dashboard figures out.

``derive`` is a pure function. Identical snapshots and windows always yield
identical (and equal) results; nothing is cached between calls, so it is safe
to call on every snapshot delivery.

Series bucketing is by calendar day-of-month, not by a rolling date window:
transactions from different months share a slot, and day 31 folds into the
last slot. Dashboards label the slots ``"01"`` to ``"30"``.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from .models import (
    DailySeries,
    DerivedAnalytics,
    Snapshot,
    Totals,
    Transaction,
    TransactionType,
)

SERIES_DAYS = 30

_ZERO = Decimal("0")


def day_labels(window: int = SERIES_DAYS) -> tuple[str, ...]:
    """Return zero-padded day labels ``("01", ..., "<window>")``."""

    return tuple(f"{n:02d}" for n in range(1, window + 1))


def _amount_of(tx: Transaction) -> Decimal:
    # Snapshots are validated at the channel boundary; guard anyway so a
    # model_construct()ed record cannot poison the sums.
    amt = tx.amount
    if not isinstance(amt, Decimal) or not amt.is_finite():
        return _ZERO
    return amt


def _slot_of(tx: Transaction, window: int) -> int:
    day = tx.date.day if tx.date is not None else 1
    return min(max(day, 1), window) - 1


def _cumulative(items: Iterable[Transaction], window: int) -> tuple[Decimal, ...]:
    slots = [_ZERO] * window
    for tx in items:
        slots[_slot_of(tx, window)] += _amount_of(tx)
    running = _ZERO
    out: list[Decimal] = []
    for value in slots:
        running += value
        out.append(running)
    return tuple(out)


def derive(snapshot: Snapshot, window: int = SERIES_DAYS) -> DerivedAnalytics:
    """Compute totals, balance, peak/lowest expense and cumulative daily series.

    Parameters
    ----------
    snapshot:
        The complete transaction set for one identity, as last delivered.
    window:
        Number of day slots in each series (30 for the dashboard chart).
    """

    if window < 1:
        raise ValueError("window must be a positive number of days")

    by_type: dict[TransactionType, list[Transaction]] = {t: [] for t in TransactionType}
    sums: dict[TransactionType, Decimal] = dict.fromkeys(TransactionType, _ZERO)
    for tx in snapshot:
        by_type[tx.type].append(tx)
        sums[tx.type] += _amount_of(tx)

    totals = Totals(
        income=sums[TransactionType.INCOME],
        expenses=sums[TransactionType.EXPENSE],
        savings=sums[TransactionType.SAVINGS],
    )

    expenses = by_type[TransactionType.EXPENSE]
    # max()/min() keep the first of equal amounts, so ties resolve to the
    # earliest record in snapshot order.
    peak = max(expenses, key=_amount_of) if expenses else None
    lowest = min(expenses, key=_amount_of) if expenses else None

    series = DailySeries(
        income=_cumulative(by_type[TransactionType.INCOME], window),
        expenses=_cumulative(expenses, window),
        savings=_cumulative(by_type[TransactionType.SAVINGS], window),
    )

    return DerivedAnalytics(
        totals=totals,
        balance=totals.balance,
        peak_expense=peak,
        lowest_expense=lowest,
        series=series,
        labels=day_labels(window),
    )


__all__ = ["SERIES_DAYS", "day_labels", "derive"]
