# ruff: noqa: I001
"""CLI for the ``care_audit`` package.

This module exposes callable command handlers (``cmd_analyze`` and friends)
and a Typer-based console interface. Environment variables (notably
``OPENAI_API_KEY`` and ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Business logic lives in
``care_audit.api`` and related modules.

Handlers return a process exit code; errors go to stderr.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated, cast

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo

from .config import ManagementMode, Settings
from .logging_setup import configure_logging
from .models import TRANSACTION_STATUSES, TransactionStatus
from .normalizers import fmt_amount

_MANAGEMENT_MODES = ("provider", "self")


# ---- Small module-level helpers used by CLI commands -------------------------


def _err(msg: str) -> int:
    print(f"Error: {msg}", file=sys.stderr)
    return 1


def _load_settings() -> Settings | None:
    try:
        return Settings.from_env()
    except ValueError as e:
        _err(f"invalid configuration: {e}")
        return None


def _resolve_mode(mode: str | None, settings: Settings) -> ManagementMode | None:
    if mode is None:
        return settings.management_mode
    m = mode.strip().lower()
    if m not in _MANAGEMENT_MODES:
        _err(f"--management-mode must be one of {', '.join(_MANAGEMENT_MODES)}, got {mode!r}")
        return None
    return cast(ManagementMode, m)


def _print_report(report) -> None:
    period = f"{report.period[0]} to {report.period[1]}" if report.period else "unknown"
    print(f"Session: {report.session_id}")
    print(f"Period: {period}  Transactions: {len(report.transactions)}")
    print(
        f"Income: ${fmt_amount(report.totals.income)}  "
        f"Expenses: ${fmt_amount(report.totals.expenses)}"
    )
    for name in report.low_confidence_files:
        print(f"Warning: {name} may be incomplete; please review it manually.")

    counts = report.alert_counts
    print(
        f"\nAlerts: {counts.total} (duplicates={counts.duplicates} "
        f"anomalies={counts.anomalies} fee_issues={counts.fee_issues})"
    )
    for a in report.alerts:
        print(f"[{a.severity.upper()}] {a.type}: {a.title}")
        print(f"    {a.description}")

    if report.categories:
        print("\nSpending by category:")
        for c in report.categories:
            print(f"  {c.category:<28} ${fmt_amount(c.total):>12}  ({c.count})")

    if report.suggestions:
        print("\nSuggested decisions:")
        by_id = {t.id: t for t in report.transactions}
        for tx_id, s in report.suggestions.items():
            tx = by_id[tx_id]
            print(
                f"  {tx.date} {tx.description}: {s.preferred_decision} "
                f"(seen {s.occurrence_count}x for {s.category})"
            )


def _emit(report, *, as_json: bool) -> None:
    from .api import report_to_dict

    if as_json:
        print(json.dumps(report_to_dict(report), indent=2))
    else:
        _print_report(report)


# ---- Command handlers --------------------------------------------------------


def cmd_analyze(
    paths: list[Path],
    *,
    management_mode: str | None = None,
    persist: bool = False,
    user_id: str | None = None,
    database_url: str | None = None,
    as_json: bool = False,
) -> int:
    """Ingest statement files into a new session, detect issues and report."""

    settings = _load_settings()
    if settings is None:
        return 1
    mode = _resolve_mode(management_mode, settings)
    if mode is None:
        return 1

    files: list[tuple[str, bytes]] = []
    for p in paths:
        try:
            files.append((p.name, p.read_bytes()))
        except FileNotFoundError:
            return _err(f"File not found: {p}")
        except PermissionError:
            return _err(f"Permission denied: {p}")

    from .api import analyze_files

    try:
        report, results = analyze_files(
            files, settings=settings, management_mode=mode, user_id=user_id
        )
    except ValueError as e:
        return _err(str(e))

    if persist:
        from db.client import init_schema, session_scope

        from .persistence import PersistenceError, insert_transactions

        url = database_url or settings.database_url
        try:
            init_schema(database_url=url)
            with session_scope(database_url=url) as session:
                insert_transactions(session, transactions=report.transactions)
        except (PersistenceError, RuntimeError) as e:
            return _err(f"persistence failed; results were not saved: {e}")

    _emit(report, as_json=as_json)
    return 0


def cmd_session_report(
    session_id: str,
    *,
    management_mode: str | None = None,
    user_id: str | None = None,
    database_url: str | None = None,
    as_json: bool = False,
) -> int:
    """Load a persisted session and report on it."""

    settings = _load_settings()
    if settings is None:
        return 1
    mode = _resolve_mode(management_mode, settings)
    if mode is None:
        return 1

    from db.client import session_scope

    from .api import build_report
    from .decisions import load_memory, suggest_decision
    from .detector import DetectOptions
    from .persistence import PersistenceError, load_session_transactions

    url = database_url or settings.database_url
    try:
        with session_scope(database_url=url) as session:
            transactions = load_session_transactions(session, session_id=session_id)
            memory = load_memory(session, user_id=user_id) if user_id else {}
    except (PersistenceError, RuntimeError) as e:
        return _err(str(e))
    if not transactions:
        return _err(f"no transactions found for session {session_id}")

    suggestions = {}
    for tx in transactions:
        s = suggest_decision(memory, tx)
        if s is not None:
            suggestions[tx.id] = s

    report = build_report(
        session_id,
        transactions,
        options=DetectOptions(management_mode=mode, date_order=settings.date_order),
        suggestions=suggestions,
    )
    _emit(report, as_json=as_json)
    return 0


def cmd_export_csv(
    session_id: str,
    out: Path,
    *,
    user_id: str | None = None,
    database_url: str | None = None,
) -> int:
    """Write a session's transactions (and the user's decisions) as CSV."""

    settings = _load_settings()
    if settings is None:
        return 1

    from db.client import session_scope

    from .decisions import load_decisions
    from .export import transactions_to_csv
    from .persistence import PersistenceError, load_session_transactions

    url = database_url or settings.database_url
    try:
        with session_scope(database_url=url) as session:
            transactions = load_session_transactions(session, session_id=session_id)
            decisions = (
                load_decisions(
                    session, user_id=user_id, transaction_ids=[t.id for t in transactions]
                )
                if user_id
                else None
            )
    except (PersistenceError, RuntimeError) as e:
        return _err(str(e))
    if not transactions:
        return _err(f"no transactions found for session {session_id}")

    try:
        out.write_text(transactions_to_csv(transactions, decisions), encoding="utf-8")
    except OSError as e:
        return _err(f"could not write {out}: {e}")
    print(f"Wrote {len(transactions)} transactions to {out}")
    return 0


def cmd_set_status(
    transaction_id: str,
    status: str,
    *,
    user_id: str,
    database_url: str | None = None,
) -> int:
    """Change the review status of one of the user's transactions."""

    if status not in TRANSACTION_STATUSES:
        return _err(f"status must be one of {', '.join(TRANSACTION_STATUSES)}, got {status!r}")
    settings = _load_settings()
    if settings is None:
        return 1

    from db.client import session_scope

    from .persistence import PersistenceError, update_status

    url = database_url or settings.database_url
    try:
        with session_scope(database_url=url) as session:
            updated = update_status(
                session,
                transaction_id=transaction_id,
                user_id=user_id,
                status=cast(TransactionStatus, status),
            )
    except (PersistenceError, RuntimeError) as e:
        return _err(str(e))
    if not updated:
        return _err(f"no transaction {transaction_id} owned by {user_id}")
    print(f"{transaction_id}\t{status}")
    return 0


def cmd_clear_memory(*, user_id: str, database_url: str | None = None) -> int:
    """Reset the user's decision memory."""

    settings = _load_settings()
    if settings is None:
        return 1

    from db.client import session_scope

    from .decisions import clear_memory
    from .persistence import PersistenceError

    url = database_url or settings.database_url
    try:
        with session_scope(database_url=url) as session:
            removed = clear_memory(session, user_id=user_id)
    except (PersistenceError, RuntimeError) as e:
        return _err(str(e))
    print(f"Cleared {removed} remembered categories")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Audit care-provider statements for duplicate charges, unusual amounts, "
        "fee changes and excessive management fees. Loads .env before running."
    ),
)

# Module-level argument object to satisfy ruff B008 (no calls in parameter
# defaults).
FILES_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Statement files (.csv parsed locally; .pdf/.txt via AI extraction).",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)

_MODE_HELP = "Billing model: 'provider' or 'self' (default from CARE_AUDIT_MANAGEMENT_MODE)."
_DB_HELP = "Override DATABASE_URL (falls back to env var)."


@app.command("analyze")
def analyze_cmd(
    paths: Annotated[list[Path], FILES_ARGUMENT],
    *,
    management_mode: str | None = typer.Option(None, help=_MODE_HELP),
    persist: bool = typer.Option(False, help="Persist the session's transactions."),
    user_id: str | None = typer.Option(None, help="Owner recorded on persisted rows."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
) -> None:
    """Analyse statement files as one new session."""

    raise typer.Exit(
        code=cmd_analyze(
            paths,
            management_mode=management_mode,
            persist=persist,
            user_id=user_id,
            database_url=database_url,
            as_json=as_json,
        )
    )


@app.command("session-report")
def session_report_cmd(
    session_id: str,
    *,
    management_mode: str | None = typer.Option(None, help=_MODE_HELP),
    user_id: str | None = typer.Option(None, help="Include this user's decision suggestions."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
) -> None:
    """Report on a previously persisted session."""

    raise typer.Exit(
        code=cmd_session_report(
            session_id,
            management_mode=management_mode,
            user_id=user_id,
            database_url=database_url,
            as_json=as_json,
        )
    )


@app.command("export-csv")
def export_csv_cmd(
    session_id: str,
    *,
    out: Path = typer.Option(..., "--out", help="Destination CSV path."),
    user_id: str | None = typer.Option(None, help="Add this user's decisions and notes."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    """Export a persisted session as CSV (UTF-8 with BOM)."""

    raise typer.Exit(
        code=cmd_export_csv(session_id, out, user_id=user_id, database_url=database_url)
    )


@app.command("set-status")
def set_status_cmd(
    transaction_id: str,
    status: str,
    *,
    user_id: str = typer.Option(..., help="Owner of the transaction."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    """Set a transaction's status (new, in-progress, resolved, escalated)."""

    raise typer.Exit(
        code=cmd_set_status(transaction_id, status, user_id=user_id, database_url=database_url)
    )


@app.command("clear-memory")
def clear_memory_cmd(
    *,
    user_id: str = typer.Option(..., help="User whose decision memory is reset."),
    database_url: str | None = typer.Option(None, help=_DB_HELP),
) -> None:
    """Forget remembered decisions per category."""

    raise typer.Exit(code=cmd_clear_memory(user_id=user_id, database_url=database_url))


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
