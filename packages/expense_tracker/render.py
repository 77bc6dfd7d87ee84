"""Terminal rendering of dashboard figures (``rich``).

Pure formatting helpers live at the top so they can be tested without a
console; the ``render_*`` functions build ``rich`` renderables from a snapshot
and its derived analytics.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import DerivedAnalytics, Identity, Snapshot, Transaction, TransactionType

CURRENCY_SYMBOL = "₹"

_TYPE_STYLES = {
    TransactionType.INCOME: "green",
    TransactionType.EXPENSE: "red",
    TransactionType.SAVINGS: "blue",
}


def _group_indian(digits: str) -> str:
    # 1234567 -> 12,34,567: last three digits, then pairs.
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs: list[str] = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs) + "," + tail


def format_inr(amount: Decimal | int, *, places: int = 0) -> str:
    """Format ``amount`` as rupees with Indian digit grouping.

    >>> format_inr(Decimal("1234567.4"))
    '₹12,34,567'
    """

    value = Decimal(amount)
    quantum = Decimal(1).scaleb(-places)
    q = abs(value).quantize(quantum, rounding=ROUND_HALF_UP)
    whole, _, frac = f"{q:f}".partition(".")
    body = _group_indian(whole) + (f".{frac}" if frac else "")
    sign = "-" if value < 0 and q != 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{body}"


def format_signed(tx: Transaction) -> str:
    """``-₹200`` for expenses, ``+₹1,000`` otherwise, as in the history list."""

    sign = "-" if tx.type is TransactionType.EXPENSE else "+"
    return f"{sign}{format_inr(tx.amount, places=2 if tx.amount % 1 else 0)}"


def format_date(tx: Transaction) -> str:
    return tx.date.date().isoformat() if tx.date is not None else ""


def _expense_line(label: str, tx: Transaction | None) -> Text:
    line = Text(f"{label}: ", style="bold")
    if tx is None:
        line.append(format_inr(0))
    else:
        line.append(f"{tx.category} {format_inr(tx.amount)}")
    return line


def render_summary(identity: Identity | None, analytics: DerivedAnalytics) -> Panel:
    """Balance, totals and peak/lowest expense."""

    totals = analytics.totals
    grid = Table.grid(padding=(0, 3))
    grid.add_column(justify="left")
    grid.add_column(justify="right")
    grid.add_row(Text("Income", style="green"), format_inr(totals.income))
    grid.add_row(Text("Expenses", style="red"), format_inr(totals.expenses))
    grid.add_row(Text("Savings", style="blue"), format_inr(totals.savings))
    grid.add_row(Text("Balance", style="bold"), Text(format_inr(analytics.balance), style="bold"))

    body = Group(
        grid,
        Text(""),
        _expense_line("Peak expense", analytics.peak_expense),
        _expense_line("Lowest expense", analytics.lowest_expense),
    )
    title = f"Hi, {identity.first_name}" if identity is not None else "Summary"
    return Panel(body, title=title, expand=False)


def render_history(snapshot: Snapshot) -> Table:
    """Transaction history, newest first."""

    table = Table(title="Transactions", show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Category")
    table.add_column("Amount", justify="right")
    for tx in reversed(snapshot):
        style = _TYPE_STYLES[tx.type]
        table.add_row(
            tx.id,
            format_date(tx),
            Text(tx.type.value, style=style),
            tx.category,
            Text(format_signed(tx), style=style),
        )
    return table


def render_trend(analytics: DerivedAnalytics) -> Table:
    """The cumulative 30-day series as a table, one row per day slot."""

    table = Table(title="Cumulative by day of month")
    table.add_column("Day", justify="right")
    table.add_column("Income", justify="right", style="green")
    table.add_column("Expenses", justify="right", style="red")
    table.add_column("Savings", justify="right", style="blue")
    series = analytics.series
    for i, label in enumerate(analytics.labels):
        table.add_row(
            label,
            format_inr(series.income[i]),
            format_inr(series.expenses[i]),
            format_inr(series.savings[i]),
        )
    return table


__all__ = [
    "CURRENCY_SYMBOL",
    "format_date",
    "format_inr",
    "format_signed",
    "render_history",
    "render_summary",
    "render_trend",
]
