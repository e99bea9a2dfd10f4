"""Overcharge detection over a resident list of transactions.

Public API:
    - :class:`DetectOptions`
    - :func:`detect`

Four independent passes run in a fixed order (duplicates, outliers, fee
drift, management fees). Each pass reads the input list and returns its own
alerts; nothing is shared between passes. The merged list is stably sorted by
severity, so ties keep pass order. The function performs no I/O, never raises
for odd input, and returns identical output for identical input.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from .config import DateOrder, ManagementMode
from .logging_setup import get_logger
from .models import Alert, Severity, Transaction
from .normalizers import date_gap, parse_date
from .similarity import normalize_description, similarity

_logger = get_logger("care_audit.detector")

# ---- Thresholds --------------------------------------------------------------

_AMOUNT_TOLERANCE = Decimal("0.50")

_OUTLIER_MIN_COUNT = 3
_OUTLIER_IQR_FACTOR = Decimal("1.5")
_OUTLIER_FLOOR = Decimal("50")

_DRIFT_MIN_PCT = Decimal("10")
_DRIFT_MIN_DIFF = Decimal("5")
_DRIFT_HIGH_PCT = Decimal("50")

_SELF_MANAGED_MAX_RATIO = Decimal("0.10")
_SELF_MANAGED_LINE_LIMIT = Decimal("100")
_PROVIDER_LINE_LIMIT = Decimal("200")
_PROVIDER_AVG_SERVICE_RATIO = Decimal("0.5")

_MANAGEMENT_KEYWORDS: tuple[str, ...] = (
    "admin",
    "administration",
    "management",
    "case management",
    "care management",
    "package management",
    "plan management",
    "coordination",
    "coordinator",
    "on-cost",
    "on cost",
    "oncost",
)

_SEVERITY_RANK: dict[str, int] = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True, slots=True)
class DetectOptions:
    """Caller-supplied detection context.

    ``management_mode`` only affects the management-fee pass: ``"self"``
    applies the aggregate 10% rule, ``"provider"`` checks individual lines.
    """

    management_mode: ManagementMode = "provider"
    date_order: DateOrder = "fixed"


# ---- Helpers -----------------------------------------------------------------


def _money(d: Decimal) -> str:
    return f"${abs(d):.2f}"


def _is_management_line(description: str) -> bool:
    lower = description.lower()
    return any(kw in lower for kw in _MANAGEMENT_KEYWORDS)


def _date_sort_key(parsed: date | None, pos: int) -> tuple[bool, date, int]:
    # Unparseable dates sort after every real date, keeping input order.
    return (parsed is None, parsed or date.min, pos)


# ---- (a) Duplicates ----------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _DuplicateRule:
    label: str
    min_similarity: float
    same_day: bool
    min_days: int = 0
    max_days: int = 0


# Evaluated in order; the first matching rule flags the pair.
_DUPLICATE_RULES: tuple[_DuplicateRule, ...] = (
    _DuplicateRule("same day", 0.6, same_day=True),
    _DuplicateRule("within 3 days", 0.8, same_day=False, min_days=1, max_days=3),
    _DuplicateRule("repeated line item", 0.85, same_day=True),
)


def _match_duplicate_rule(score: float, gap: float) -> _DuplicateRule | None:
    for rule in _DUPLICATE_RULES:
        if score < rule.min_similarity:
            continue
        if rule.same_day:
            if gap == 0:
                return rule
        elif rule.min_days <= gap <= rule.max_days:
            return rule
    return None


def _find_duplicates(
    txs: Sequence[Transaction], dates: Sequence[date | None], _opts: DetectOptions
) -> list[Alert]:
    """Flag every pair of near-identical charges.

    Each unordered pair is visited exactly once (``i < j``). The later row is
    the similarity candidate and the earlier row the reference; the earlier
    row is listed first in the alert.
    """

    alerts: list[Alert] = []
    n = len(txs)
    for i in range(n):
        ref = txs[i]
        for j in range(i + 1, n):
            cand = txs[j]
            if abs(cand.amount - ref.amount) > _AMOUNT_TOLERANCE:
                continue
            gap = date_gap(dates[i], dates[j])
            score = similarity(cand.description, ref.description)
            rule = _match_duplicate_rule(score, gap)
            if rule is None:
                continue
            alerts.append(
                Alert(
                    type="duplicate",
                    severity="high",
                    title=f"Possible duplicate charge: {_money(ref.amount)}",
                    description=(
                        f'"{cand.description}" on {cand.date} matches '
                        f'"{ref.description}" on {ref.date} '
                        f"({rule.label}, {score:.0%} similar)"
                    ),
                    transactions=(ref, cand),
                )
            )
    return alerts


# ---- (b) Outliers ------------------------------------------------------------


def _find_outliers(
    txs: Sequence[Transaction], _dates: Sequence[date | None], _opts: DetectOptions
) -> list[Alert]:
    """Flag amounts above ``Q3 + 1.5 * IQR`` and above the $50 floor.

    Quartiles are plain sorted-index picks (no interpolation).
    """

    amounts = sorted(abs(t.amount) for t in txs if t.amount != 0)
    n = len(amounts)
    if n < _OUTLIER_MIN_COUNT:
        return []
    q1 = amounts[n // 4]
    q3 = amounts[(3 * n) // 4]
    upper = q3 + _OUTLIER_IQR_FACTOR * (q3 - q1)

    alerts: list[Alert] = []
    for tx in txs:
        value = abs(tx.amount)
        if value > upper and value > _OUTLIER_FLOOR:
            alerts.append(
                Alert(
                    type="unusual",
                    severity="medium",
                    title=f"Unusually high: {_money(value)}",
                    description=(
                        f'"{tx.description}" on {tx.date} is significantly higher than '
                        f"typical charges (upper range: ${upper:.2f})"
                    ),
                    transactions=(tx,),
                )
            )
    return alerts


# ---- (c) Fee drift -----------------------------------------------------------


def _find_fee_drift(
    txs: Sequence[Transaction], dates: Sequence[date | None], _opts: DetectOptions
) -> list[Alert]:
    """Flag recurring line items whose amount moved by >10% and >$5."""

    groups: dict[str, list[int]] = {}
    for pos, tx in enumerate(txs):
        key = normalize_description(tx.description)
        if not key:
            continue
        groups.setdefault(key, []).append(pos)

    alerts: list[Alert] = []
    for positions in groups.values():
        if len(positions) < 2:
            continue
        amounts = [abs(txs[p].amount) for p in positions]
        if len({a.quantize(Decimal("0.01")) for a in amounts}) < 2:
            continue
        low, high = min(amounts), max(amounts)
        diff = high - low
        pct = Decimal("Infinity") if low == 0 else diff / low * 100
        if not (pct > _DRIFT_MIN_PCT and diff > _DRIFT_MIN_DIFF):
            continue

        ordered = sorted(positions, key=lambda p: _date_sort_key(dates[p], p))
        first = txs[ordered[0]]
        change = "from nothing" if pct.is_infinite() else f"by {pct:.0f}%"
        severity: Severity = "high" if pct > _DRIFT_HIGH_PCT else "medium"
        alerts.append(
            Alert(
                type="changed",
                severity=severity,
                title=f"Fee changed: {_money(low)} → {_money(high)}",
                description=(
                    f'"{first.description}" varies {change} across {len(positions)} charges'
                ),
                transactions=tuple(txs[p] for p in ordered),
            )
        )
    return alerts


# ---- (d) Management fees -----------------------------------------------------


def _find_management_fees(
    txs: Sequence[Transaction], _dates: Sequence[date | None], opts: DetectOptions
) -> list[Alert]:
    """Compare management/admin lines against direct service charges."""

    management: list[int] = []
    service: list[int] = []
    for pos, tx in enumerate(txs):
        if tx.amount >= 0:
            continue
        (management if _is_management_line(tx.description) else service).append(pos)
    if not management:
        return []

    service_total = sum((abs(txs[p].amount) for p in service), Decimal("0"))
    alerts: list[Alert] = []

    if opts.management_mode == "self":
        management_total = sum((abs(txs[p].amount) for p in management), Decimal("0"))
        aggregated: set[int] = set()
        if service_total > 0 and management_total > service_total * _SELF_MANAGED_MAX_RATIO:
            rate = management_total / service_total * 100
            alerts.append(
                Alert(
                    type="management-fee",
                    severity="high",
                    title=f"Management fees at {rate:.1f}% of services",
                    description=(
                        f"Management and admin charges total {_money(management_total)}, "
                        f"{rate:.1f}% of {_money(service_total)} in service charges "
                        f"(limit {_SELF_MANAGED_MAX_RATIO * 100:.0f}%)"
                    ),
                    transactions=tuple(txs[p] for p in management),
                )
            )
            aggregated.update(management)
        for p in management:
            tx = txs[p]
            if p in aggregated or abs(tx.amount) <= _SELF_MANAGED_LINE_LIMIT:
                continue
            alerts.append(
                Alert(
                    type="management-fee",
                    severity="medium",
                    title=f"Large management charge: {_money(tx.amount)}",
                    description=(
                        f'"{tx.description}" on {tx.date} exceeds '
                        f"{_money(_SELF_MANAGED_LINE_LIMIT)} for a single admin line"
                    ),
                    transactions=(tx,),
                )
            )
        return alerts

    avg_service = service_total / len(service) if service else None
    for p in management:
        tx = txs[p]
        value = abs(tx.amount)
        over_limit = value > _PROVIDER_LINE_LIMIT
        over_avg = avg_service is not None and value > avg_service * _PROVIDER_AVG_SERVICE_RATIO
        if not (over_limit or over_avg):
            continue
        if over_limit:
            reason = f"exceeds {_money(_PROVIDER_LINE_LIMIT)}"
        else:
            reason = f"is more than half the average service charge ({_money(avg_service)})"
        alerts.append(
            Alert(
                type="management-fee",
                severity="medium",
                title=f"High management charge: {_money(value)}",
                description=f'"{tx.description}" on {tx.date} {reason}',
                transactions=(tx,),
            )
        )
    return alerts


# ---- Orchestration -----------------------------------------------------------

type _Pass = Callable[[Sequence[Transaction], Sequence[date | None], DetectOptions], list[Alert]]

_PASSES: tuple[_Pass, ...] = (
    _find_duplicates,
    _find_outliers,
    _find_fee_drift,
    _find_management_fees,
)


def detect(
    transactions: Sequence[Transaction], options: DetectOptions | None = None
) -> list[Alert]:
    """Run every detection pass and return alerts ordered by severity.

    Parameters
    ----------
    transactions:
        The complete, already-ingested set for a session. The detector should
        only be called once every ingestion task for the session finished.
    options:
        Detection context; defaults to provider-managed billing and the fixed
        date-format order.
    """

    opts = options or DetectOptions()
    txs = list(transactions)
    dates = [parse_date(t.date, order=opts.date_order) for t in txs]

    alerts: list[Alert] = []
    for run_pass in _PASSES:
        alerts.extend(run_pass(txs, dates, opts))
    # list.sort is stable: equal severities keep pass order.
    alerts.sort(key=lambda a: _SEVERITY_RANK[a.severity])

    _logger.debug(
        "detect:done transactions=%d alerts=%d mode=%s",
        len(txs),
        len(alerts),
        opts.management_mode,
    )
    return alerts


__all__ = ["DetectOptions", "detect"]
