from __future__ import annotations

import io
from decimal import Decimal

import pytest
from rich.console import Console

from expense_tracker.analytics import derive
from expense_tracker.models import Identity, Transaction, TransactionType, parse_timestamp
from expense_tracker.render import (
    format_date,
    format_inr,
    format_signed,
    render_history,
    render_summary,
    render_trend,
)


def _tx(tx_id: str, type_: TransactionType, amount: str, category: str, date: str | None):
    return Transaction(
        id=tx_id, type=type_, category=category, amount=Decimal(amount), date=parse_timestamp(date)
    )


def _text(renderable) -> str:
    buf = io.StringIO()
    Console(file=buf, width=120, color_system=None).print(renderable)
    return buf.getvalue()


@pytest.mark.parametrize(
    "amount,places,expected",
    [
        (Decimal("0"), 0, "₹0"),
        (Decimal("999"), 0, "₹999"),
        (Decimal("1000"), 0, "₹1,000"),
        (Decimal("100000"), 0, "₹1,00,000"),
        (Decimal("1234567.4"), 0, "₹12,34,567"),
        (Decimal("1234567.5"), 0, "₹12,34,568"),
        (Decimal("-2500"), 0, "-₹2,500"),
        (Decimal("-0.4"), 0, "₹0"),
        (Decimal("99.5"), 2, "₹99.50"),
        (12345678, 2, "₹1,23,45,678.00"),
    ],
)
def test_format_inr(amount, places, expected):
    assert format_inr(amount, places=places) == expected


def test_format_signed_and_date():
    salary = _tx("a", TransactionType.INCOME, "1000", "Salary", "2025-03-05T10:00:00")
    tea = _tx("b", TransactionType.EXPENSE, "20.50", "Tea", None)
    fd = _tx("c", TransactionType.SAVINGS, "500", "FD", "2025-03-06")
    assert format_signed(salary) == "+₹1,000"
    assert format_signed(tea) == "-₹20.50"
    assert format_signed(fd) == "+₹500"
    assert format_date(salary) == "2025-03-05"
    assert format_date(tea) == ""


def test_render_summary_greets_by_first_name():
    snap = (
        _tx("a", TransactionType.INCOME, "5000", "Salary", "2025-03-01"),
        _tx("b", TransactionType.EXPENSE, "1200", "Rent", "2025-03-02"),
        _tx("c", TransactionType.EXPENSE, "80", "Tea", "2025-03-03"),
    )
    out = _text(render_summary(Identity(uid="u", display_name="Priya Shah"), derive(snap)))
    assert "Hi, Priya" in out
    assert "₹3,720" in out
    assert "Peak expense: Rent ₹1,200" in out
    assert "Lowest expense: Tea ₹80" in out


def test_render_summary_without_identity_or_expenses():
    out = _text(render_summary(None, derive(())))
    assert "Summary" in out
    assert "Peak expense: ₹0" in out


def test_render_history_lists_newest_first():
    snap = (
        _tx("first", TransactionType.INCOME, "10", "Pay", "2025-01-01"),
        _tx("second", TransactionType.EXPENSE, "3", "Snacks", "2025-01-02"),
    )
    out = _text(render_history(snap))
    assert out.index("second") < out.index("first")
    assert "-₹3" in out


def test_render_trend_has_one_row_per_day():
    snap = (_tx("a", TransactionType.INCOME, "7", "Pay", "2025-01-30"),)
    out = _text(render_trend(derive(snap)))
    rows = [ln for ln in out.splitlines() if "₹" in ln]
    assert len(rows) == 30
    assert "₹7" not in rows[0]
    assert "₹7" in rows[-1]
