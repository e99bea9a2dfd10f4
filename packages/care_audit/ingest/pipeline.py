"""Route uploaded statement files to a parser and build ``Transaction`` rows.

``.csv`` files go through the deterministic column sniffer; every other
extension is converted to text and handed to a :class:`StatementExtractor`.
Either way the rows are hardened (formula-safe descriptions, clamped
amounts, ISO dates where parseable) and tagged with a fresh id, the session
id and the source file name.

Public API:
    - :func:`ingest`: one file, synchronous.
    - :func:`ingest_files`: many files on a worker pool, input order kept.
    - :func:`new_session_id`
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ..config import DateOrder, Settings
from ..logging_setup import get_logger
from ..models import UNKNOWN, Transaction
from ..normalizers import detect_date_order, normalize_date
from . import utils
from .csv_sniffer import parse_csv
from .oracle import ExtractionFailure, OpenAIStatementExtractor, StatementExtractor

_logger = get_logger("care_audit.ingest")

_CSV_CONFIDENT_MIN_CHARS = 50
_MIN_VALID_RATIO = Decimal("0.5")
_CENT = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class IngestResult:
    """Outcome of ingesting one file.

    ``low_confidence`` tells the user the file may have been under-extracted
    and deserves a manual look; it never means the result is empty by error.
    """

    file_name: str
    transactions: list[Transaction]
    low_confidence: bool
    dropped: int = 0
    failure: ExtractionFailure | None = None


def new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class _Extracted:
    rows: list[tuple[str, str, Decimal]]
    candidates: int
    low_confidence: bool
    failure: ExtractionFailure | None = None


def _extract_csv(file_name: str, data: bytes) -> _Extracted:
    text = utils.decode_csv(data)
    utils.check_csv_limits(file_name, text)
    parsed = parse_csv(text)
    rows = [(r.date, r.description, r.amount) for r in parsed.rows]
    low = not rows and len(text.strip()) > _CSV_CONFIDENT_MIN_CHARS
    _logger.info(
        "ingest:csv file=%s rows=%d dropped=%d", file_name, len(rows), parsed.dropped
    )
    return _Extracted(rows=rows, candidates=len(rows) + parsed.dropped, low_confidence=low)


def _extract_with_oracle(
    file_name: str, data: bytes, extractor: StatementExtractor, settings: Settings
) -> _Extracted:
    if utils.file_extension(file_name) == "pdf":
        text = utils.pdf_to_text(data, file_name=file_name)
    else:
        text = utils.decode_text(data)
    outcome = extractor.extract(text, file_name=file_name, timeout=settings.oracle_timeout)
    rows = [(r.date, r.description, r.amount) for r in outcome.rows]
    _logger.info(
        "ingest:oracle file=%s rows=%d invalid=%d failure=%s",
        file_name,
        len(rows),
        outcome.invalid,
        outcome.failure.reason if outcome.failure else "none",
    )
    return _Extracted(
        rows=rows,
        candidates=outcome.total,
        low_confidence=outcome.truncated or outcome.failure is not None,
        failure=outcome.failure,
    )


def _to_transaction(
    raw: tuple[str, str, Decimal],
    *,
    session_id: str,
    file_name: str,
    user_id: str | None,
    date_order: DateOrder,
) -> Transaction:
    raw_date, raw_desc, raw_amount = raw
    date = normalize_date(raw_date, order=date_order) or (raw_date.strip() or UNKNOWN)
    description = utils.sanitize_description(raw_desc.strip() or UNKNOWN)
    amount = utils.clamp_amount(raw_amount).quantize(_CENT, rounding=ROUND_HALF_UP)
    return Transaction(
        id=str(uuid.uuid4()),
        session_id=session_id,
        date=date,
        description=description,
        amount=amount,
        user_id=user_id,
        file_name=file_name,
    )


def ingest(
    file_name: str,
    data: bytes,
    session_id: str,
    *,
    extractor: StatementExtractor | None = None,
    settings: Settings | None = None,
    user_id: str | None = None,
) -> IngestResult:
    """Parse one uploaded file into transactions for ``session_id``.

    Raises ``ValueError`` for transport-level problems only (bad session id,
    oversized file or CSV). Everything past that point degrades instead of
    raising: malformed rows are dropped and counted, oracle failures yield
    an empty, low-confidence result.
    """

    utils.validate_session_id(session_id)
    utils.check_file_size(file_name, data)
    cfg = settings or Settings()

    if utils.file_extension(file_name) == "csv":
        extracted = _extract_csv(file_name, data)
    else:
        oracle = extractor or OpenAIStatementExtractor(
            model=cfg.oracle_model, max_chars=cfg.oracle_max_chars
        )
        extracted = _extract_with_oracle(file_name, data, oracle, cfg)

    date_order = cfg.date_order
    if date_order == "auto":
        date_order = detect_date_order(raw[0] for raw in extracted.rows)
        _logger.info("ingest:date_order file=%s order=%s", file_name, date_order)

    transactions = [
        _to_transaction(
            raw,
            session_id=session_id,
            file_name=file_name,
            user_id=user_id,
            date_order=date_order,
        )
        for raw in extracted.rows
    ]

    low = extracted.low_confidence or not transactions
    if extracted.candidates and Decimal(len(transactions)) < (
        Decimal(extracted.candidates) * _MIN_VALID_RATIO
    ):
        low = True

    if low:
        _logger.warning(
            "ingest:low_confidence file=%s transactions=%d candidates=%d",
            file_name,
            len(transactions),
            extracted.candidates,
        )
    return IngestResult(
        file_name=file_name,
        transactions=transactions,
        low_confidence=low,
        dropped=extracted.candidates - len(transactions),
        failure=extracted.failure,
    )


def ingest_files(
    files: Sequence[tuple[str, bytes]],
    session_id: str,
    *,
    extractor: StatementExtractor | None = None,
    settings: Settings | None = None,
    user_id: str | None = None,
) -> list[IngestResult]:
    """Ingest several files concurrently into one session.

    Returns once every file finished, in the order ``files`` was given. The
    first transport-level error is re-raised after the pool shuts down.
    """

    if not files:
        return []
    utils.validate_session_id(session_id)
    cfg = settings or Settings()
    max_workers = max(1, min(cfg.ingest_workers, len(files)))

    results: list[IngestResult | None] = [None] * len(files)
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ca-ingest") as ex:
        fut_to_idx = {
            ex.submit(
                ingest,
                name,
                data,
                session_id,
                extractor=extractor,
                settings=cfg,
                user_id=user_id,
            ): idx
            for idx, (name, data) in enumerate(files)
        }
        for fut in as_completed(fut_to_idx):
            results[fut_to_idx[fut]] = fut.result()

    _logger.info(
        "ingest:session_done session=%s files=%d transactions=%d",
        session_id,
        len(files),
        sum(len(r.transactions) for r in results if r is not None),
    )
    return [r for r in results if r is not None]


__all__ = ["IngestResult", "ingest", "ingest_files", "new_session_id"]
