from __future__ import annotations

import logging

import pytest

from care_audit.config import DEFAULT_ORACLE_MODEL, MAX_INGEST_WORKERS, Settings
from care_audit.logging_setup import get_logger


def test_defaults_without_environment() -> None:
    s = Settings.from_env()
    assert s.oracle_model == DEFAULT_ORACLE_MODEL
    assert s.date_order == "fixed"
    assert s.management_mode == "provider"
    assert s.database_url is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CARE_AUDIT_ORACLE_MODEL", "gpt-test")
    monkeypatch.setenv("CARE_AUDIT_ORACLE_TIMEOUT", "2.5")
    monkeypatch.setenv("CARE_AUDIT_ORACLE_MAX_CHARS", "500")
    monkeypatch.setenv("CARE_AUDIT_DATE_ORDER", "MDY")
    monkeypatch.setenv("CARE_AUDIT_MANAGEMENT_MODE", "self")
    monkeypatch.setenv("CARE_AUDIT_INGEST_WORKERS", "99")
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///x.db")

    s = Settings.from_env()

    assert (s.oracle_model, s.oracle_timeout, s.oracle_max_chars) == ("gpt-test", 2.5, 500)
    assert (s.date_order, s.management_mode) == ("mdy", "self")
    assert s.ingest_workers == MAX_INGEST_WORKERS
    assert s.database_url == "sqlite+pysqlite:///x.db"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("CARE_AUDIT_ORACLE_TIMEOUT", "soon"),
        ("CARE_AUDIT_ORACLE_TIMEOUT", "0"),
        ("CARE_AUDIT_ORACLE_MAX_CHARS", "-1"),
        ("CARE_AUDIT_INGEST_WORKERS", "four"),
        ("CARE_AUDIT_DATE_ORDER", "ymd"),
        ("CARE_AUDIT_MANAGEMENT_MODE", "family"),
    ],
)
def test_invalid_values_raise(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        Settings.from_env()


def test_library_loggers_live_under_package_root() -> None:
    logger = get_logger("care_audit.detector")
    assert logger.name == "care_audit.detector"
    assert logging.getLogger("care_audit").handlers


def test_auto_date_order_is_accepted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CARE_AUDIT_DATE_ORDER", "Auto")
    assert Settings.from_env().date_order == "auto"
