"""CSV export of a session's transactions.

The output is a pure projection of transactions (plus decisions when given):
UTF-8 text starting with a BOM so spreadsheet tools detect the encoding.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Mapping

from .categories import classify
from .models import Transaction, TransactionDecision
from .normalizers import fmt_amount

BOM = "\ufeff"

BASE_COLUMNS: tuple[str, ...] = (
    "Date",
    "Category",
    "Description",
    "Govt Contribution",
    "Client Contribution",
    "Income",
    "Expense",
    "Status",
)
DECISION_COLUMNS: tuple[str, ...] = ("Decision", "Note")


def _row(tx: Transaction) -> list[str]:
    income = fmt_amount(tx.amount) if tx.amount >= 0 else ""
    expense = fmt_amount(abs(tx.amount)) if tx.amount < 0 else ""
    return [
        tx.date,
        classify(tx.description),
        tx.description,
        fmt_amount(tx.govt_contribution) if tx.govt_contribution is not None else "",
        fmt_amount(tx.client_contribution) if tx.client_contribution is not None else "",
        income,
        expense,
        tx.status,
    ]


def transactions_to_csv(
    transactions: Iterable[Transaction],
    decisions: Mapping[str, TransactionDecision] | None = None,
) -> str:
    """Render ``transactions`` as CSV text (BOM included).

    When ``decisions`` is given (keyed by transaction id), two extra columns
    carry the decision and note; transactions without one get empty cells.
    """

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\r\n")
    header = list(BASE_COLUMNS)
    if decisions is not None:
        header.extend(DECISION_COLUMNS)
    writer.writerow(header)
    for tx in transactions:
        row = _row(tx)
        if decisions is not None:
            d = decisions.get(tx.id)
            row.extend([d.decision, d.note or ""] if d is not None else ["", ""])
        writer.writerow(row)
    return BOM + buf.getvalue()


__all__ = ["BOM", "BASE_COLUMNS", "DECISION_COLUMNS", "transactions_to_csv"]
