"""Environment-backed settings for ``care_audit``.

Values are read from the process environment only; entrypoints are expected
to call ``load_dotenv`` first (the CLI does). Nothing here runs at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, cast

type DateOrder = Literal["fixed", "dmy", "mdy", "auto"]
type ManagementMode = Literal["provider", "self"]

_DATE_ORDERS: frozenset[str] = frozenset({"fixed", "dmy", "mdy", "auto"})
_MANAGEMENT_MODES: frozenset[str] = frozenset({"provider", "self"})

DEFAULT_ORACLE_MODEL = "gpt-5-mini"
DEFAULT_ORACLE_TIMEOUT_SEC = 60.0
DEFAULT_ORACLE_MAX_CHARS = 15_000
DEFAULT_INGEST_WORKERS = 4
MAX_INGEST_WORKERS = 16


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_positive_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_choice(name: str, default: str, allowed: frozenset[str]) -> str:
    value = _env_str(name, default).lower()
    if value not in allowed:
        raise ValueError(f"{name} must be one of {sorted(allowed)}, got {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime settings resolved from ``CARE_AUDIT_*`` environment variables."""

    oracle_model: str = DEFAULT_ORACLE_MODEL
    oracle_timeout: float = DEFAULT_ORACLE_TIMEOUT_SEC
    oracle_max_chars: int = DEFAULT_ORACLE_MAX_CHARS
    date_order: DateOrder = "fixed"
    management_mode: ManagementMode = "provider"
    ingest_workers: int = DEFAULT_INGEST_WORKERS
    database_url: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            oracle_model=_env_str("CARE_AUDIT_ORACLE_MODEL", DEFAULT_ORACLE_MODEL),
            oracle_timeout=_env_positive_float(
                "CARE_AUDIT_ORACLE_TIMEOUT", DEFAULT_ORACLE_TIMEOUT_SEC
            ),
            oracle_max_chars=_env_positive_int(
                "CARE_AUDIT_ORACLE_MAX_CHARS", DEFAULT_ORACLE_MAX_CHARS
            ),
            date_order=cast(
                DateOrder, _env_choice("CARE_AUDIT_DATE_ORDER", "fixed", _DATE_ORDERS)
            ),
            management_mode=cast(
                ManagementMode,
                _env_choice("CARE_AUDIT_MANAGEMENT_MODE", "provider", _MANAGEMENT_MODES),
            ),
            ingest_workers=min(
                _env_positive_int("CARE_AUDIT_INGEST_WORKERS", DEFAULT_INGEST_WORKERS),
                MAX_INGEST_WORKERS,
            ),
            database_url=os.getenv("DATABASE_URL") or None,
        )


__all__ = ["DateOrder", "ManagementMode", "Settings"]
