"""Persistence integration for care_audit.

Functions here read and write statement transactions in the shared database
owned by ``libs/db``. They rely on SQLAlchemy ORM models defined in
``db.models.care`` and a session provided by ``db.client``; committing is the
caller's job (``session_scope`` does it).

Scope:
- Bulk insert of ingested transactions.
- Load a session's transactions in statement order.
- Statement history per user (one entry per uploaded file).
- Status-only updates, restricted to the owning user.
- Deletion by session (owner-scoped) or of everything a user uploaded.

Every ``SQLAlchemyError`` is re-raised as :class:`PersistenceError` so callers
can tell "your data may not have been saved" apart from programming errors.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.care import CaTransaction

from .logging_setup import get_logger
from .models import TRANSACTION_STATUSES, StatementFile, Transaction, TransactionStatus

_logger = get_logger("care_audit.persistence")

UNKNOWN_FILE = "Unknown file"


class PersistenceError(RuntimeError):
    """A database operation failed; the requested change may not be saved."""


@contextmanager
def db_errors(op: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        _logger.error("persistence:failed op=%s error=%s", op, e.__class__.__name__)
        raise PersistenceError(f"{op} failed: {e}") from e


def _to_decimal_2(d: Decimal | None) -> Decimal | None:
    if d is None:
        return None
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _to_row(tx: Transaction, seq: int) -> CaTransaction:
    return CaTransaction(
        id=tx.id,
        session_id=tx.session_id,
        user_id=tx.user_id,
        date=tx.date,
        description=tx.description,
        amount=_to_decimal_2(tx.amount),
        govt_contribution=_to_decimal_2(tx.govt_contribution),
        client_contribution=_to_decimal_2(tx.client_contribution),
        unit_cost=_to_decimal_2(tx.unit_cost),
        rate_units=tx.rate_units,
        status=tx.status,
        file_name=tx.file_name,
        seq=seq,
    )


def _from_row(row: CaTransaction) -> Transaction:
    return Transaction(
        id=row.id,
        session_id=row.session_id,
        date=row.date,
        description=row.description,
        amount=Decimal(row.amount),
        user_id=row.user_id,
        govt_contribution=row.govt_contribution,
        client_contribution=row.client_contribution,
        unit_cost=row.unit_cost,
        rate_units=row.rate_units,
        status=row.status,  # type: ignore[arg-type]
        file_name=row.file_name,
    )


def insert_transactions(session: Session, *, transactions: Iterable[Transaction]) -> int:
    """Insert freshly ingested transactions; returns the number of rows added.

    Upload position is recorded so that rows sharing a date keep their
    statement order when loaded back.
    """

    with db_errors("insert_transactions"):
        last = session.execute(select(func.max(CaTransaction.seq))).scalar_one()
        start = 0 if last is None else last + 1
        rows = [_to_row(tx, start + i) for i, tx in enumerate(transactions)]
        session.add_all(rows)
        session.flush()
    _logger.info("persistence:insert rows=%d", len(rows))
    return len(rows)


def load_session_transactions(session: Session, *, session_id: str) -> list[Transaction]:
    """All transactions of ``session_id``, ordered by date then upload position."""

    with db_errors("load_session_transactions"):
        rows = session.scalars(
            select(CaTransaction)
            .where(CaTransaction.session_id == session_id)
            .order_by(CaTransaction.date, CaTransaction.seq)
        ).all()
    return [_from_row(r) for r in rows]


def get_transaction(session: Session, *, transaction_id: str) -> Transaction | None:
    with db_errors("get_transaction"):
        row = session.get(CaTransaction, transaction_id)
    return _from_row(row) if row is not None else None


def _date_range(dates: list[str]) -> str:
    if not dates:
        return ""
    lo, hi = min(dates), max(dates)
    return lo if lo == hi else f"{lo} to {hi}"


def list_statement_files(session: Session, *, user_id: str) -> list[StatementFile]:
    """Upload history for ``user_id``: one entry per (session, file), newest first."""

    with db_errors("list_statement_files"):
        rows = session.execute(
            select(
                CaTransaction.session_id,
                CaTransaction.file_name,
                CaTransaction.date,
                CaTransaction.created_at,
            )
            .where(CaTransaction.user_id == user_id)
            .order_by(CaTransaction.created_at.desc(), CaTransaction.seq)
        ).all()

    groups: dict[tuple[str, str], dict] = {}
    for session_id, file_name, date, created_at in rows:
        key = (session_id, file_name or UNKNOWN_FILE)
        entry = groups.setdefault(key, {"count": 0, "uploaded_at": created_at, "dates": []})
        entry["count"] += 1
        if date:
            entry["dates"].append(date)

    return [
        StatementFile(
            session_id=session_id,
            file_name=file_name,
            transaction_count=entry["count"],
            uploaded_at=entry["uploaded_at"].isoformat() if entry["uploaded_at"] else "",
            date_range=_date_range(entry["dates"]),
        )
        for (session_id, file_name), entry in groups.items()
    ]


def update_status(
    session: Session, *, transaction_id: str, user_id: str, status: TransactionStatus
) -> bool:
    """Set ``status`` on one transaction owned by ``user_id``.

    Only the ``status`` column is touched. Returns ``False`` when no row
    matched (unknown id or owned by someone else).
    """

    if status not in TRANSACTION_STATUSES:
        raise ValueError(f"invalid status {status!r}; expected one of {TRANSACTION_STATUSES}")
    with db_errors("update_status"):
        result = session.execute(
            update(CaTransaction)
            .where(
                (CaTransaction.id == transaction_id) & (CaTransaction.user_id == user_id)
            )
            .values(status=status)
        )
    updated = (result.rowcount or 0) > 0
    _logger.info(
        "persistence:update_status id=%s status=%s updated=%s", transaction_id, status, updated
    )
    return updated


def delete_session(session: Session, *, session_id: str, user_id: str) -> int:
    """Delete the rows of ``session_id`` owned by ``user_id``; returns the count."""

    with db_errors("delete_session"):
        result = session.execute(
            delete(CaTransaction).where(
                (CaTransaction.session_id == session_id) & (CaTransaction.user_id == user_id)
            )
        )
    count = result.rowcount or 0
    _logger.info("persistence:delete_session session=%s rows=%d", session_id, count)
    return count


def delete_user_transactions(session: Session, *, user_id: str) -> int:
    """Delete every transaction uploaded by ``user_id``; returns the count."""

    with db_errors("delete_user_transactions"):
        result = session.execute(delete(CaTransaction).where(CaTransaction.user_id == user_id))
    count = result.rowcount or 0
    _logger.info("persistence:delete_user rows=%d", count)
    return count


__all__ = [
    "PersistenceError",
    "db_errors",
    "insert_transactions",
    "load_session_transactions",
    "get_transaction",
    "list_statement_files",
    "update_status",
    "delete_session",
    "delete_user_transactions",
]
