# ruff: noqa: I001
"""Tracker core tables: transactions and profiles.

Revision ID: 0001_et_core
Revises: None
Create Date: 2025-11-02
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_et_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # et_transactions: document-like rows, validated client-side
    op.create_table(
        "et_transactions",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("uid", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("date", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_et_transactions_uid_date", "et_transactions", ["uid", "date"])

    # et_profiles: one row per identity, created on first sign-in
    op.create_table(
        "et_profiles",
        sa.Column("uid", sa.String(), primary_key=True),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("total_income", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("total_expenses", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("total_savings", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )


def downgrade() -> None:
    op.drop_table("et_profiles")
    op.drop_index("ix_et_transactions_uid_date", table_name="et_transactions")
    op.drop_table("et_transactions")
