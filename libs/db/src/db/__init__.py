"""db: shared database library (SQLAlchemy).

Public exports
--------------
- ``Base`` and ``metadata`` for schema creation
- ORM models in ``db.models.care`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models.care import Base, CaDecisionMemory, CaTransaction, CaTransactionDecision

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "CaTransaction",
    "CaTransactionDecision",
    "CaDecisionMemory",
]
