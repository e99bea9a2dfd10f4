"""User decisions on transactions and the per-category decision memory.

A decision (approve / dispute / not-sure, plus an optional note) is stored
per ``(transaction, user)``. Every recorded decision also bumps the user's
memory for the transaction's category: the count grows by one and the
preferred decision becomes the latest one. Once a category's count reaches
:data:`SUGGESTION_MIN_COUNT`, new transactions in that category get the
preferred decision as a suggestion.

The pure helpers (:func:`bump_memory`, :func:`suggest_decision`) take the
memory mapping explicitly; the database functions take the user id
explicitly. Nothing here reads ambient user state.

Memory updates are read-modify-write without isolation; concurrent decisions
on one category by one user may lose an increment.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db.models.care import CaDecisionMemory, CaTransactionDecision

from .categories import classify
from .logging_setup import get_logger
from .models import (
    DECISION_TYPES,
    DecisionType,
    MemorySuggestion,
    Transaction,
    TransactionDecision,
)
from .persistence import db_errors

_logger = get_logger("care_audit.decisions")

SUGGESTION_MIN_COUNT = 2

type DecisionMemory = Mapping[str, MemorySuggestion]


# ---- Pure helpers ------------------------------------------------------------


def bump_memory(
    previous: MemorySuggestion | None, *, category: str, decision: DecisionType
) -> MemorySuggestion:
    count = previous.occurrence_count if previous is not None else 0
    return MemorySuggestion(
        category=category, preferred_decision=decision, occurrence_count=count + 1
    )


def suggest_decision(
    memory: DecisionMemory,
    transaction: Transaction,
    *,
    min_count: int = SUGGESTION_MIN_COUNT,
) -> MemorySuggestion | None:
    """Return the remembered decision for the transaction's category, if any."""

    mem = memory.get(classify(transaction.description))
    if mem is not None and mem.occurrence_count >= min_count:
        return mem
    return None


# ---- Database operations -----------------------------------------------------


def _validate_decision(decision: str) -> None:
    if decision not in DECISION_TYPES:
        raise ValueError(f"invalid decision {decision!r}; expected one of {DECISION_TYPES}")


def record_decision(
    session: Session,
    *,
    user_id: str,
    transaction: Transaction,
    decision: DecisionType,
    note: str | None = None,
) -> MemorySuggestion:
    """Upsert the decision and update the category memory.

    Returns the memory entry after the update.
    """

    _validate_decision(decision)
    category = classify(transaction.description)
    with db_errors("record_decision"):
        row = session.get(CaTransactionDecision, (transaction.id, user_id))
        if row is None:
            session.add(
                CaTransactionDecision(
                    transaction_id=transaction.id,
                    user_id=user_id,
                    decision=decision,
                    note=note or None,
                )
            )
        else:
            row.decision = decision
            row.note = note or None

        mem_row = session.get(CaDecisionMemory, (user_id, category))
        previous = _memory_from_row(mem_row) if mem_row is not None else None
        updated = bump_memory(previous, category=category, decision=decision)
        if mem_row is None:
            session.add(
                CaDecisionMemory(
                    user_id=user_id,
                    category=category,
                    preferred_decision=updated.preferred_decision,
                    occurrence_count=updated.occurrence_count,
                )
            )
        else:
            mem_row.preferred_decision = updated.preferred_decision
            mem_row.occurrence_count = updated.occurrence_count
        session.flush()

    _logger.info(
        "decisions:record tx=%s decision=%s category=%s count=%d",
        transaction.id,
        decision,
        category,
        updated.occurrence_count,
    )
    return updated


def load_decisions(
    session: Session, *, user_id: str, transaction_ids: Iterable[str]
) -> dict[str, TransactionDecision]:
    """Decisions by ``user_id`` for the given transactions, keyed by transaction id."""

    ids = list(transaction_ids)
    if not ids:
        return {}
    with db_errors("load_decisions"):
        rows = session.scalars(
            select(CaTransactionDecision).where(
                (CaTransactionDecision.user_id == user_id)
                & (CaTransactionDecision.transaction_id.in_(ids))
            )
        ).all()
    return {
        r.transaction_id: TransactionDecision(
            transaction_id=r.transaction_id,
            user_id=r.user_id,
            decision=r.decision,  # type: ignore[arg-type]
            note=r.note,
        )
        for r in rows
    }


def _memory_from_row(row: CaDecisionMemory) -> MemorySuggestion:
    return MemorySuggestion(
        category=row.category,
        preferred_decision=row.preferred_decision,  # type: ignore[arg-type]
        occurrence_count=row.occurrence_count,
    )


def load_memory(session: Session, *, user_id: str) -> dict[str, MemorySuggestion]:
    with db_errors("load_memory"):
        rows = session.scalars(
            select(CaDecisionMemory).where(CaDecisionMemory.user_id == user_id)
        ).all()
    return {r.category: _memory_from_row(r) for r in rows}


def clear_memory(session: Session, *, user_id: str) -> int:
    """Forget every remembered category for ``user_id``; returns rows removed.

    Recorded decisions themselves are kept.
    """

    with db_errors("clear_memory"):
        result = session.execute(
            delete(CaDecisionMemory).where(CaDecisionMemory.user_id == user_id)
        )
    count = result.rowcount or 0
    _logger.info("decisions:clear_memory rows=%d", count)
    return count


__all__ = [
    "SUGGESTION_MIN_COUNT",
    "DecisionMemory",
    "bump_memory",
    "suggest_decision",
    "record_decision",
    "load_decisions",
    "load_memory",
    "clear_memory",
]
