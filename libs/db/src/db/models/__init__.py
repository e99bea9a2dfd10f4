"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the care statement models used by ``care_audit``.
"""

from .care import Base, CaDecisionMemory, CaTransaction, CaTransactionDecision

__all__ = [
    "Base",
    "CaTransaction",
    "CaTransactionDecision",
    "CaDecisionMemory",
]
