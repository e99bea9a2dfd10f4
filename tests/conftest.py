"""Pytest configuration for test isolation.

Settings are read from ``CARE_AUDIT_*`` variables, ``DATABASE_URL`` and
``OPENAI_API_KEY``. A developer's shell or ``.env`` must never leak into a
test, so an autouse fixture clears them; tests that need a value set it with
``monkeypatch`` themselves.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from decimal import Decimal
from itertools import count

import pytest

from care_audit.models import Transaction

_SESSION = "7f1c2a3b-4d5e-4f60-8a7b-9c0d1e2f3a4b"


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("CARE_AUDIT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


@pytest.fixture
def make_tx() -> Iterator:
    """Factory for transactions with sequential ids within one session."""

    ids = count(1)

    def _make(date: str, description: str, amount: str | float, **kw) -> Transaction:
        return Transaction(
            id=kw.pop("id", f"tx-{next(ids)}"),
            session_id=kw.pop("session_id", _SESSION),
            date=date,
            description=description,
            amount=Decimal(str(amount)),
            **kw,
        )

    yield _make
