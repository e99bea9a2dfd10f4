from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: ca_transactions
# ---------------------------


class CaTransaction(Base):
    __tablename__ = "ca_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    # Canonical YYYY-MM-DD when the source parsed; otherwise the raw text.
    date: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    govt_contribution: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    client_contribution: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    unit_cost: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    rate_units: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, server_default="new")
    file_name: Mapped[str | None] = mapped_column(String, nullable=True)
    # Position within the upload; breaks ties when ordering by date.
    seq: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('new','in-progress','resolved','escalated')",
            name="ck_ca_tx_status",
        ),
        Index("ix_ca_tx_user_session", "user_id", "session_id"),
    )


# ---------------------------
# User annotations
# ---------------------------


class CaTransactionDecision(Base):
    __tablename__ = "ca_transaction_decisions"

    transaction_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("ca_transactions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    decision: Mapped[str] = mapped_column(String, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "decision in ('approve','dispute','not-sure')",
            name="ck_ca_decision_value",
        ),
    )


class CaDecisionMemory(Base):
    __tablename__ = "ca_decision_memory"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    category: Mapped[str] = mapped_column(String, primary_key=True)
    preferred_decision: Mapped[str] = mapped_column(String, nullable=False)
    occurrence_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "preferred_decision in ('approve','dispute','not-sure')",
            name="ck_ca_memory_decision",
        ),
        CheckConstraint("occurrence_count >= 0", name="ck_ca_memory_count"),
    )


__all__ = [
    "Base",
    "CaTransaction",
    "CaTransactionDecision",
    "CaDecisionMemory",
]
