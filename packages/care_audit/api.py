"""Public API and orchestration for the ``care_audit`` package.

Ties the pieces together for callers that want a whole session analysed at
once: ingest every file, run the detector over the complete transaction set,
then derive the summaries the report shows. The CLI is a thin wrapper over
these functions.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .categories import classify
from .config import ManagementMode, Settings
from .detector import DetectOptions, detect
from .ingest import IngestResult, StatementExtractor, ingest_files, new_session_id
from .logging_setup import get_logger
from .models import Alert, MemorySuggestion, Transaction
from .summary import (
    AlertSummary,
    CategoryTotal,
    MonthlyTotal,
    ServiceTypeLine,
    StatementTotals,
    alert_summary,
    category_summary,
    monthly_totals,
    service_type_summary,
    statement_period,
    statement_totals,
)

_logger = get_logger("care_audit.api")


@dataclass(frozen=True, slots=True)
class SessionReport:
    """Everything a session view needs, recomputed from the transactions."""

    session_id: str
    transactions: list[Transaction]
    alerts: list[Alert]
    alert_counts: AlertSummary
    categories: list[CategoryTotal]
    months: list[MonthlyTotal]
    service_types: list[ServiceTypeLine]
    totals: StatementTotals
    period: tuple[str, str] | None
    low_confidence_files: list[str] = field(default_factory=list)
    suggestions: dict[str, MemorySuggestion] = field(default_factory=dict)


def build_report(
    session_id: str,
    transactions: Sequence[Transaction],
    *,
    options: DetectOptions | None = None,
    low_confidence_files: Sequence[str] = (),
    suggestions: Mapping[str, MemorySuggestion] | None = None,
) -> SessionReport:
    opts = options or DetectOptions()
    txs = list(transactions)
    alerts = detect(txs, opts)
    return SessionReport(
        session_id=session_id,
        transactions=txs,
        alerts=alerts,
        alert_counts=alert_summary(alerts),
        categories=category_summary(txs),
        months=monthly_totals(txs, order=opts.date_order),
        service_types=service_type_summary(txs),
        totals=statement_totals(txs),
        period=statement_period(txs, order=opts.date_order),
        low_confidence_files=list(low_confidence_files),
        suggestions=dict(suggestions or {}),
    )


def analyze_files(
    files: Sequence[tuple[str, bytes]],
    *,
    settings: Settings | None = None,
    management_mode: ManagementMode | None = None,
    extractor: StatementExtractor | None = None,
    user_id: str | None = None,
    session_id: str | None = None,
) -> tuple[SessionReport, list[IngestResult]]:
    """Ingest ``files`` into a new session and analyse the combined result.

    Detection runs only after every file finished ingesting.
    """

    cfg = settings or Settings()
    sid = session_id or new_session_id()
    results = ingest_files(files, sid, extractor=extractor, settings=cfg, user_id=user_id)
    transactions = [tx for r in results for tx in r.transactions]
    options = DetectOptions(
        management_mode=management_mode or cfg.management_mode, date_order=cfg.date_order
    )
    report = build_report(
        sid,
        transactions,
        options=options,
        low_confidence_files=[r.file_name for r in results if r.low_confidence],
    )
    _logger.info(
        "analyze:done session=%s files=%d transactions=%d alerts=%d",
        sid,
        len(files),
        len(transactions),
        len(report.alerts),
    )
    return report, results


# ---- JSON projection ---------------------------------------------------------


def _money(d: Decimal | None) -> float | None:
    return float(d) if d is not None else None


def _tx_dict(tx: Transaction) -> dict[str, Any]:
    return {
        "id": tx.id,
        "date": tx.date,
        "description": tx.description,
        "amount": _money(tx.amount),
        "category": classify(tx.description),
        "status": tx.status,
        "file_name": tx.file_name,
        "govt_contribution": _money(tx.govt_contribution),
        "client_contribution": _money(tx.client_contribution),
    }


def report_to_dict(report: SessionReport) -> dict[str, Any]:
    """JSON-serializable view of ``report`` (amounts as numbers)."""

    return {
        "session_id": report.session_id,
        "period": list(report.period) if report.period else None,
        "low_confidence_files": report.low_confidence_files,
        "totals": {
            "income": _money(report.totals.income),
            "expenses": _money(report.totals.expenses),
            "govt_contribution": _money(report.totals.govt_contribution),
            "client_contribution": _money(report.totals.client_contribution),
        },
        "alert_counts": {
            "duplicates": report.alert_counts.duplicates,
            "anomalies": report.alert_counts.anomalies,
            "fee_issues": report.alert_counts.fee_issues,
            "total": report.alert_counts.total,
        },
        "alerts": [
            {
                "type": a.type,
                "severity": a.severity,
                "title": a.title,
                "description": a.description,
                "transaction_ids": [t.id for t in a.transactions],
            }
            for a in report.alerts
        ],
        "categories": [
            {"category": c.category, "total": _money(c.total), "count": c.count, "color": c.color}
            for c in report.categories
        ],
        "months": [
            {"month": m.month, "income": _money(m.income), "expenses": _money(m.expenses)}
            for m in report.months
        ],
        "service_types": [
            {"label": s.label, "code": s.code, "total": _money(s.total), "count": s.count}
            for s in report.service_types
        ],
        "suggestions": {
            tx_id: {
                "category": s.category,
                "preferred_decision": s.preferred_decision,
                "occurrence_count": s.occurrence_count,
            }
            for tx_id, s in report.suggestions.items()
        },
        "transactions": [_tx_dict(t) for t in report.transactions],
    }


__all__ = ["SessionReport", "build_report", "analyze_files", "report_to_dict"]
