"""Data models and type aliases for ``care_audit``.

Transactions and alerts are frozen dataclasses so the detector can treat its
input as read-only and produce identical output for identical input. The
oracle's untrusted output is validated through pydantic models before any of
it becomes a :class:`Transaction`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

from .normalizers import parse_amount

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------

type TransactionStatus = Literal["new", "in-progress", "resolved", "escalated"]
type AlertType = Literal["duplicate", "unusual", "changed", "management-fee"]
type Severity = Literal["high", "medium", "low"]
type DecisionType = Literal["approve", "dispute", "not-sure"]

TRANSACTION_STATUSES: tuple[str, ...] = ("new", "in-progress", "resolved", "escalated")
DECISION_TYPES: tuple[str, ...] = ("approve", "dispute", "not-sure")

# Sentinel used when a row has no usable date or description.
UNKNOWN = "Unknown"

# ISO currency codes the oracle may leave around an amount ("AUD 30", "30 AUD").
_CURRENCY_CODE_RE = re.compile(r"^\s*[A-Z]{3}\s*|\s*[A-Z]{3}\s*$")


# ---------------------------------------------------------------------------
# Core records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """The canonical unit of financial activity.

    ``amount`` is signed: negative for expenses, non-negative for income or
    credits. ``date`` is ``YYYY-MM-DD`` when the source could be parsed and
    the raw source text (or ``"Unknown"``) otherwise. ``description`` is kept
    exactly as extracted.
    """

    id: str
    session_id: str
    date: str
    description: str
    amount: Decimal
    user_id: str | None = None
    govt_contribution: Decimal | None = None
    client_contribution: Decimal | None = None
    unit_cost: Decimal | None = None
    rate_units: str | None = None
    status: TransactionStatus = "new"
    file_name: str | None = None


@dataclass(frozen=True, slots=True)
class Alert:
    """A detector finding. Never persisted; recomputed on every view.

    ``transactions`` is never empty. For duplicate pairs the first entry is
    the earlier ("original") row.
    """

    type: AlertType
    severity: Severity
    title: str
    description: str
    transactions: tuple[Transaction, ...]

    def __post_init__(self) -> None:
        if not self.transactions:
            raise ValueError("Alert requires at least one transaction")


@dataclass(frozen=True, slots=True)
class TransactionDecision:
    """A user's disposition of a single transaction."""

    transaction_id: str
    user_id: str
    decision: DecisionType
    note: str | None = None


@dataclass(frozen=True, slots=True)
class MemorySuggestion:
    """Per-user, per-category aggregate of past decisions."""

    category: str
    preferred_decision: DecisionType
    occurrence_count: int


@dataclass(frozen=True, slots=True)
class StatementFile:
    """A persisted upload summarised for history listings."""

    session_id: str
    file_name: str
    transaction_count: int
    uploaded_at: str
    date_range: str


# ---------------------------------------------------------------------------
# Untrusted extraction output
# ---------------------------------------------------------------------------


class RawTransaction(BaseModel):
    """One ``{date, description, amount}`` tuple from an extraction source.

    Validation is lenient about formats (dates stay strings, amount strings
    go through :func:`~care_audit.normalizers.parse_amount` after any ISO
    currency code is removed) but strict about presence:
    rows without a date, a description, or a numeric amount are rejected and
    counted as invalid by the ingestion adapter.
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    date: str
    description: str
    amount: Decimal

    @field_validator("date", "description", mode="before")
    @classmethod
    def _non_empty_text(cls, v: Any) -> str:
        if v is None:
            raise ValueError("value is required")
        s = str(v).strip()
        if not s:
            raise ValueError("value must be non-empty")
        return s

    @field_validator("amount", mode="before")
    @classmethod
    def _numeric_amount(cls, v: Any) -> Decimal:
        if isinstance(v, bool) or v is None:
            raise ValueError("amount must be numeric")
        if isinstance(v, str):
            parsed = parse_amount(_CURRENCY_CODE_RE.sub("", v))
            if parsed is None:
                raise ValueError(f"amount must be numeric, got {v!r}")
            return parsed
        try:
            d = Decimal(str(v))
        except InvalidOperation as exc:
            raise ValueError(f"amount must be numeric, got {v!r}") from exc
        if not d.is_finite():
            raise ValueError("amount must be finite")
        return d


__all__ = [
    "TransactionStatus",
    "AlertType",
    "Severity",
    "DecisionType",
    "TRANSACTION_STATUSES",
    "DECISION_TYPES",
    "UNKNOWN",
    "Transaction",
    "Alert",
    "TransactionDecision",
    "MemorySuggestion",
    "StatementFile",
    "RawTransaction",
]
