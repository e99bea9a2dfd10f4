# ruff: noqa: I001
"""Care audit core tables: transactions, decisions and decision memory.

Revision ID: 0001_ca_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ca_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ca_transactions
    op.create_table(
        "ca_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("session_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("date", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("govt_contribution", sa.Numeric(18, 2), nullable=True),
        sa.Column("client_contribution", sa.Numeric(18, 2), nullable=True),
        sa.Column("unit_cost", sa.Numeric(18, 2), nullable=True),
        sa.Column("rate_units", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="new"),
        sa.Column("file_name", sa.String(), nullable=True),
        sa.Column("seq", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status in ('new','in-progress','resolved','escalated')",
            name="ck_ca_tx_status",
        ),
    )
    op.create_index("ix_ca_transactions_session_id", "ca_transactions", ["session_id"])
    op.create_index("ix_ca_transactions_user_id", "ca_transactions", ["user_id"])
    op.create_index("ix_ca_tx_user_session", "ca_transactions", ["user_id", "session_id"])

    # ca_transaction_decisions
    op.create_table(
        "ca_transaction_decisions",
        sa.Column(
            "transaction_id",
            sa.String(36),
            sa.ForeignKey("ca_transactions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column("decision", sa.String(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "decision in ('approve','dispute','not-sure')",
            name="ck_ca_decision_value",
        ),
    )

    # ca_decision_memory
    op.create_table(
        "ca_decision_memory",
        sa.Column("user_id", sa.String(), primary_key=True),
        sa.Column("category", sa.String(), primary_key=True),
        sa.Column("preferred_decision", sa.String(), nullable=False),
        sa.Column("occurrence_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "preferred_decision in ('approve','dispute','not-sure')",
            name="ck_ca_memory_decision",
        ),
        sa.CheckConstraint("occurrence_count >= 0", name="ck_ca_memory_count"),
    )


def downgrade() -> None:
    op.drop_table("ca_decision_memory")
    op.drop_table("ca_transaction_decisions")
    op.drop_index("ix_ca_tx_user_session", table_name="ca_transactions")
    op.drop_index("ix_ca_transactions_user_id", table_name="ca_transactions")
    op.drop_index("ix_ca_transactions_session_id", table_name="ca_transactions")
    op.drop_table("ca_transactions")
