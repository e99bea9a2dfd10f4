from __future__ import annotations

from decimal import Decimal

import pytest

from care_audit.ingest import ExtractionOutcome, ingest, new_session_id
from care_audit.ingest import oracle as oracle_mod
from care_audit.ingest.oracle import OpenAIStatementExtractor, parse_extraction_output
from care_audit.models import RawTransaction
from tests.helpers.oracle_stub import OpenAIStub, StaticExtractor

ROWS = [
    {"date": "2025-01-15", "description": "Personal care - 2hrs", "amount": -120.5},
    {"date": "16/01/2025", "description": "Government funding", "amount": "1,500.00"},
]


class _HttpError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


# ---- output parsing ----------------------------------------------------------


def test_parse_plain_array() -> None:
    outcome = parse_extraction_output(
        '[{"date": "2025-01-15", "description": "Cleaning", "amount": -80}]'
    )
    assert outcome.failure is None
    assert outcome.total == 1
    assert outcome.rows[0].amount == Decimal("-80")


def test_parse_tolerates_markdown_fences_and_prose() -> None:
    text = (
        "Here are the transactions:\n```json\n"
        '[{"date": "2025-01-15", "description": "Cleaning", "amount": "$1,234.50"}]\n```'
    )
    outcome = parse_extraction_output(text)
    assert [r.amount for r in outcome.rows] == [Decimal("1234.50")]


@pytest.mark.parametrize(
    ("amount", "expected"),
    [
        ("(50.00)", Decimal("-50.00")),
        ("€12.00", Decimal("12.00")),
        ("AUD 30", Decimal("30")),
        ("-1,200.50 AUD", Decimal("-1200.50")),
        (-80, Decimal("-80")),
    ],
)
def test_oracle_amounts_accept_statement_formats(amount: object, expected: Decimal) -> None:
    row = RawTransaction.model_validate(
        {"date": "2025-01-15", "description": "Cleaning", "amount": amount}
    )
    assert row.amount == expected


@pytest.mark.parametrize(
    "text",
    [None, "", "I could not find any transactions.", '{"date": "2025-01-15"}', "[not json]"],
)
def test_unusable_output_is_invalid_json(text: str | None) -> None:
    outcome = parse_extraction_output(text)
    assert outcome.rows == []
    assert outcome.failure is not None
    assert outcome.failure.reason == "invalid_json"


def test_invalid_rows_are_counted_not_kept() -> None:
    text = (
        "["
        '{"date": "2025-01-15", "description": "Cleaning", "amount": -80},'
        '{"date": "", "description": "Cleaning", "amount": -80},'
        '{"date": "2025-01-15", "description": "Cleaning", "amount": "abc"},'
        '{"date": "2025-01-15", "description": "Cleaning"},'
        '"not an object"'
        "]"
    )
    outcome = parse_extraction_output(text)
    assert outcome.failure is None
    assert (len(outcome.rows), outcome.total, outcome.invalid) == (1, 5, 4)


# ---- OpenAI-backed extractor -------------------------------------------------


def test_missing_api_key_fails_without_calling_out() -> None:
    outcome = OpenAIStatementExtractor().extract("some text", file_name="s.pdf", timeout=5)
    assert outcome.failure is not None
    assert outcome.failure.reason == "no_api_key"


def test_empty_text_fails_before_any_call() -> None:
    stub = OpenAIStub(ROWS)
    extractor = OpenAIStatementExtractor(client_factory=stub.factory())

    outcome = extractor.extract("   ", file_name="s.pdf", timeout=5)
    assert outcome.failure is not None
    assert outcome.failure.reason == "empty_text"
    assert stub.calls == []


def test_successful_extraction_sends_prompt_and_timeout() -> None:
    stub = OpenAIStub(ROWS)
    extractor = OpenAIStatementExtractor(model="test-model", client_factory=stub.factory())

    outcome = extractor.extract("statement body", file_name="jan.pdf", timeout=12.5)

    assert outcome.failure is None
    assert [r.description for r in outcome.rows] == ["Personal care - 2hrs", "Government funding"]
    (call,) = stub.calls
    assert call["model"] == "test-model"
    assert call["timeout"] == 12.5
    assert "JSON" in call["instructions"]
    assert "jan.pdf" in call["input"]
    assert "statement body" in call["input"]


def test_long_text_is_truncated() -> None:
    stub = OpenAIStub(ROWS)
    extractor = OpenAIStatementExtractor(max_chars=100, client_factory=stub.factory())

    outcome = extractor.extract("x" * 500, file_name="s.txt", timeout=5)

    assert outcome.truncated
    assert "x" * 101 not in stub.calls[0]["input"]


@pytest.mark.parametrize(
    ("exc", "reason"),
    [(TimeoutError("slow"), "timeout"), (RuntimeError("boom"), "api_error")],
)
def test_client_errors_become_failures(exc: Exception, reason: str) -> None:
    stub = OpenAIStub(raises=exc)
    extractor = OpenAIStatementExtractor(client_factory=stub.factory())

    outcome = extractor.extract("text", file_name="s.pdf", timeout=5)

    assert outcome.failure is not None
    assert outcome.failure.reason == reason
    assert len(stub.calls) == 1


def test_server_errors_are_retried_once(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(oracle_mod, "_sleep_backoff", lambda: None)
    stub = OpenAIStub(raises=_HttpError(503))
    extractor = OpenAIStatementExtractor(client_factory=stub.factory())

    outcome = extractor.extract("text", file_name="s.pdf", timeout=5)

    assert outcome.failure is not None
    assert outcome.failure.reason == "api_error"
    assert len(stub.calls) == 2


def test_client_errors_are_not_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(oracle_mod, "_sleep_backoff", lambda: None)
    stub = OpenAIStub(raises=_HttpError(400))
    extractor = OpenAIStatementExtractor(client_factory=stub.factory())

    extractor.extract("text", file_name="s.pdf", timeout=5)
    assert len(stub.calls) == 1


def test_default_client_disables_sdk_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    built: list[dict] = []
    stub = OpenAIStub(ROWS)

    def fake_openai(**kwargs):
        built.append(kwargs)
        return stub

    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(oracle_mod, "OpenAI", fake_openai)

    outcome = OpenAIStatementExtractor().extract("text", file_name="s.pdf", timeout=7.0)

    assert outcome.failure is None
    assert built == [{"max_retries": 0, "timeout": 7.0}]
    assert len(stub.calls) == 1


def test_retry_uses_remaining_budget(monkeypatch: pytest.MonkeyPatch) -> None:
    ticks = iter([0.0, 1.0, 2.5])
    monkeypatch.setattr(oracle_mod, "_clock", lambda: next(ticks))
    monkeypatch.setattr(oracle_mod, "_sleep_backoff", lambda: None)
    stub = OpenAIStub(raises=_HttpError(503))
    extractor = OpenAIStatementExtractor(client_factory=stub.factory())

    extractor.extract("text", file_name="s.pdf", timeout=5)

    assert [c["timeout"] for c in stub.calls] == [5, 2.5]


def test_retry_skipped_when_budget_spent(monkeypatch: pytest.MonkeyPatch) -> None:
    ticks = iter([0.0, 4.5])
    monkeypatch.setattr(oracle_mod, "_clock", lambda: next(ticks))
    monkeypatch.setattr(oracle_mod, "_sleep_backoff", lambda: None)
    stub = OpenAIStub(raises=_HttpError(429))
    extractor = OpenAIStatementExtractor(client_factory=stub.factory())

    outcome = extractor.extract("text", file_name="s.pdf", timeout=5)

    assert outcome.failure is not None
    assert outcome.failure.reason == "api_error"
    assert len(stub.calls) == 1


# ---- ingestion through the oracle --------------------------------------------


def test_ingest_non_csv_uses_extractor() -> None:
    stub = OpenAIStub(ROWS)
    extractor = OpenAIStatementExtractor(client_factory=stub.factory())

    result = ingest("statement.txt", b"raw statement text", new_session_id(), extractor=extractor)

    assert not result.low_confidence
    assert [(t.date, t.amount) for t in result.transactions] == [
        ("2025-01-15", Decimal("-120.50")),
        ("2025-01-16", Decimal("1500.00")),
    ]
    assert all(t.file_name == "statement.txt" for t in result.transactions)


def test_ingest_unreadable_pdf_is_low_confidence() -> None:
    stub = OpenAIStub(ROWS)
    extractor = OpenAIStatementExtractor(client_factory=stub.factory())

    result = ingest("scan.pdf", b"not really a pdf", new_session_id(), extractor=extractor)

    assert result.transactions == []
    assert result.low_confidence
    assert result.failure is not None
    assert result.failure.reason == "empty_text"
    assert stub.calls == []


def test_ingest_oracle_failure_is_empty_and_low_confidence() -> None:
    result = ingest(
        "statement.txt",
        b"some text",
        new_session_id(),
        extractor=StaticExtractor(ExtractionOutcome.failed("timeout", "took too long")),
    )
    assert result.transactions == []
    assert result.low_confidence
    assert result.failure is not None
    assert result.failure.reason == "timeout"


def test_ingest_truncated_extraction_is_low_confidence() -> None:
    row = RawTransaction(date="2025-01-15", description="Cleaning", amount=Decimal("-80"))
    outcome = ExtractionOutcome(rows=[row], total=1, truncated=True)

    result = ingest("s.txt", b"text", new_session_id(), extractor=StaticExtractor(outcome))

    assert len(result.transactions) == 1
    assert result.low_confidence


def test_ingest_mostly_invalid_rows_is_low_confidence() -> None:
    row = RawTransaction(date="2025-01-15", description="Cleaning", amount=Decimal("-80"))
    outcome = ExtractionOutcome(rows=[row], total=3)

    result = ingest("s.txt", b"text", new_session_id(), extractor=StaticExtractor(outcome))

    assert len(result.transactions) == 1
    assert result.dropped == 2
    assert result.low_confidence


def test_ingest_passes_decoded_text_to_extractor() -> None:
    extractor = StaticExtractor(ExtractionOutcome())
    ingest("notes.txt", "Café visit".encode(), new_session_id(), extractor=extractor)
    assert extractor.texts == ["Café visit"]
