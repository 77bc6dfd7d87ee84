from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: et_transactions
# ---------------------------


class EtTransaction(Base):
    """One user-owned transaction document.

    Rows behave like documents in a schemaless store: ``type``, ``amount`` and
    ``date`` are not constrained here. The client validates documents at its
    snapshot boundary and rejects malformed ones there.
    """

    __tablename__ = "et_transactions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    # Owning identity; every query is scoped by this column.
    uid: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str | None] = mapped_column(String, nullable=True)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    # ISO-8601 text, kept as written by the client. Lexicographic order equals
    # chronological order for the UTC timestamps the gateway writes.
    date: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (Index("ix_et_transactions_uid_date", "uid", "date"),)


# ---------------------------
# Reference: et_profiles
# ---------------------------


class EtProfile(Base):
    __tablename__ = "et_profiles"

    uid: Mapped[str] = mapped_column(String, primary_key=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Denormalized figures; informational only; clients recompute from the
    # live transaction set.
    balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    total_income: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    total_expenses: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    total_savings: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )
