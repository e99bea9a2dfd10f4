from __future__ import annotations

from pathlib import Path

from care_audit import classify
from care_audit.api import analyze_files, build_report
from care_audit.decisions import load_memory, record_decision, suggest_decision
from care_audit.persistence import insert_transactions, load_session_transactions
from db.client import session_scope
from tests.helpers.db import bootstrap_sqlite_db

SAMPLE = (
    b"Date,Description,Amount\n"
    b"2025-01-15,Grocery Store,-45.67\n"
    b"2025-01-16,Direct Deposit,2500.00\n"
    b"2025-01-15,Grocery Store,-45.67\n"
)


def test_e2e_csv_statement_to_alerts_and_decisions(tmp_path: Path) -> None:
    # -------------------------
    # Ingest + detect
    # -------------------------
    report, results = analyze_files([("statement.csv", SAMPLE)], user_id="u1")

    (result,) = results
    assert not result.low_confidence
    assert len(report.transactions) == 3

    (alert,) = report.alerts
    assert (alert.type, alert.severity) == ("duplicate", "high")
    grocery = [t for t in report.transactions if t.description == "Grocery Store"]
    assert alert.transactions == tuple(grocery)

    assert classify("Grocery Store") == "Other"
    assert classify("Direct Deposit") == "Other"

    # -------------------------
    # Persist and reload
    # -------------------------
    db_url = bootstrap_sqlite_db(tmp_path / "e2e.db")
    with session_scope(database_url=db_url) as s:
        insert_transactions(s, transactions=report.transactions)

    with session_scope(database_url=db_url) as s:
        reloaded = load_session_transactions(s, session_id=report.session_id)
    assert [t.id for t in reloaded] == [grocery[0].id, grocery[1].id, report.transactions[1].id]

    rebuilt = build_report(report.session_id, reloaded)
    assert [a.type for a in rebuilt.alerts] == ["duplicate"]
    assert rebuilt.alert_counts.total == 1

    # -------------------------
    # Decisions feed suggestions
    # -------------------------
    with session_scope(database_url=db_url) as s:
        for tx in grocery:
            record_decision(s, user_id="u1", transaction=tx, decision="dispute")

    with session_scope(database_url=db_url) as s:
        memory = load_memory(s, user_id="u1")

    deposit = report.transactions[1]
    suggestion = suggest_decision(memory, deposit)
    assert suggestion is not None
    assert suggestion.category == "Other"
    assert suggestion.preferred_decision == "dispute"
