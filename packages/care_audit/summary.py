"""Aggregations over transactions and detector alerts for presentation.

All functions are pure projections: they never classify text beyond calling
:func:`care_audit.categories.classify` and never mutate their inputs.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from .categories import (
    OTHER_SERVICES,
    SERVICE_TYPE_CODES,
    SERVICE_TYPE_LABELS,
    category_color,
    classify,
    view_entry,
)
from .config import DateOrder
from .models import Alert, Transaction
from .normalizers import parse_date

_ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class CategoryTotal:
    category: str
    total: Decimal
    count: int
    color: str


@dataclass(frozen=True, slots=True)
class MonthlyTotal:
    month: str  # YYYY-MM
    income: Decimal
    expenses: Decimal


@dataclass(frozen=True, slots=True)
class AlertSummary:
    duplicates: int
    anomalies: int
    fee_issues: int
    total: int


@dataclass(frozen=True, slots=True)
class StatementTotals:
    income: Decimal
    expenses: Decimal
    govt_contribution: Decimal
    client_contribution: Decimal


@dataclass(frozen=True, slots=True)
class ServiceTypeLine:
    label: str
    code: str
    total: Decimal
    count: int


def category_summary(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """Expense totals (absolute) per canonical category, largest first.

    Income rows (non-negative amounts) are excluded.
    """

    totals: dict[str, Decimal] = {}
    counts: Counter[str] = Counter()
    for tx in transactions:
        if tx.amount >= 0:
            continue
        cat = classify(tx.description)
        totals[cat] = totals.get(cat, _ZERO) + abs(tx.amount)
        counts[cat] += 1
    rows = [CategoryTotal(c, t, counts[c], category_color(c)) for c, t in totals.items()]
    rows.sort(key=lambda r: r.total, reverse=True)
    return rows


def monthly_totals(
    transactions: Iterable[Transaction], *, order: DateOrder = "fixed"
) -> list[MonthlyTotal]:
    """Income and expense totals per calendar month, oldest first.

    Rows whose date cannot be parsed are left out.
    """

    income: dict[str, Decimal] = {}
    expenses: dict[str, Decimal] = {}
    for tx in transactions:
        d = parse_date(tx.date, order=order)
        if d is None:
            continue
        key = f"{d.year:04d}-{d.month:02d}"
        income.setdefault(key, _ZERO)
        expenses.setdefault(key, _ZERO)
        if tx.amount >= 0:
            income[key] += tx.amount
        else:
            expenses[key] += abs(tx.amount)
    return [MonthlyTotal(k, income[k], expenses[k]) for k in sorted(income)]


def alert_summary(alerts: Sequence[Alert]) -> AlertSummary:
    by_type = Counter(a.type for a in alerts)
    return AlertSummary(
        duplicates=by_type["duplicate"],
        anomalies=by_type["unusual"],
        fee_issues=by_type["changed"] + by_type["management-fee"],
        total=len(alerts),
    )


def statement_totals(transactions: Iterable[Transaction]) -> StatementTotals:
    income = expenses = govt = client = _ZERO
    for tx in transactions:
        if tx.amount >= 0:
            income += tx.amount
        else:
            expenses += abs(tx.amount)
        if tx.govt_contribution is not None:
            govt += tx.govt_contribution
        if tx.client_contribution is not None:
            client += tx.client_contribution
    return StatementTotals(income, expenses, govt, client)


def statement_period(
    transactions: Iterable[Transaction], *, order: DateOrder = "fixed"
) -> tuple[str, str] | None:
    """Earliest and latest parseable dates as ISO strings, or ``None``."""

    dates = [d for d in (parse_date(t.date, order=order) for t in transactions) if d is not None]
    if not dates:
        return None
    return min(dates).isoformat(), max(dates).isoformat()


def service_type_summary(transactions: Iterable[Transaction]) -> list[ServiceTypeLine]:
    """Expenses grouped by Support at Home service type.

    Every service-type label appears (zero when unused) in statement order,
    followed by "Other services" when anything fell outside the mapping.
    """

    totals: dict[str, Decimal] = {label: _ZERO for label in SERVICE_TYPE_LABELS}
    counts: Counter[str] = Counter()
    for tx in transactions:
        if tx.amount >= 0:
            continue
        label = view_entry("service_type", classify(tx.description)).label
        totals[label] = totals.get(label, _ZERO) + abs(tx.amount)
        counts[label] += 1

    labels = list(SERVICE_TYPE_LABELS)
    if counts[OTHER_SERVICES]:
        labels.append(OTHER_SERVICES)
    return [
        ServiceTypeLine(label, SERVICE_TYPE_CODES[label], totals[label], counts[label])
        for label in labels
    ]


__all__ = [
    "CategoryTotal",
    "MonthlyTotal",
    "AlertSummary",
    "StatementTotals",
    "ServiceTypeLine",
    "category_summary",
    "monthly_totals",
    "alert_summary",
    "statement_totals",
    "statement_period",
    "service_type_summary",
]
