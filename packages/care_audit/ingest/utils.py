"""File-level helpers shared by the ingestion pipeline.

Turns uploaded bytes into text: PDFs go through ``pdfplumber``, everything
else is decoded as UTF-8. Also hosts the transport limits and the input
hardening applied to every extracted row regardless of source.
"""

from __future__ import annotations

import io
import re
import uuid
from decimal import Decimal
from pathlib import PurePath

import pdfplumber

from ..logging_setup import get_logger

_logger = get_logger("care_audit.ingest.utils")

MAX_FILE_BYTES = 5 * 1024 * 1024
MAX_CSV_LINES = 10_000
MAX_CSV_CHARS = 1_000_000
MAX_DESCRIPTION_LEN = 500
MAX_ABS_AMOUNT = Decimal("1000000000")

_FORMULA_PREFIX_RE = re.compile(r"^[=+@\-]")


def file_extension(file_name: str) -> str:
    return PurePath(file_name).suffix.lower().lstrip(".")


def validate_session_id(session_id: str) -> str:
    """Return ``session_id`` when it is a canonical UUID4 string.

    Raises ``ValueError`` otherwise.
    """

    try:
        parsed = uuid.UUID(session_id)
    except (ValueError, AttributeError, TypeError) as exc:
        raise ValueError(f"invalid session id: {session_id!r}") from exc
    if parsed.version != 4 or str(parsed) != session_id.lower():
        raise ValueError(f"invalid session id: {session_id!r}")
    return session_id


def check_file_size(file_name: str, data: bytes) -> None:
    if len(data) > MAX_FILE_BYTES:
        raise ValueError(
            f"{file_name}: file too large ({len(data)} bytes, max {MAX_FILE_BYTES})"
        )


def check_csv_limits(file_name: str, text: str) -> None:
    if len(text) > MAX_CSV_CHARS:
        raise ValueError(f"{file_name}: CSV too large ({len(text)} chars, max {MAX_CSV_CHARS})")
    lines = text.strip().count("\n") + 1
    if lines > MAX_CSV_LINES:
        raise ValueError(f"{file_name}: too many lines in CSV ({lines}, max {MAX_CSV_LINES})")


def decode_csv(data: bytes) -> str:
    # utf-8-sig drops a spreadsheet BOM so it never reaches the header sniff.
    return data.decode("utf-8-sig", errors="replace")


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def pdf_to_text(data: bytes, *, file_name: str = "") -> str:
    """Concatenate the text layer of every page; ``""`` when unreadable."""

    pages: list[str] = []
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                pages.append(page.extract_text() or "")
    except Exception as e:  # noqa: BLE001 - malformed PDFs degrade to no text
        _logger.warning("ingest:pdf_unreadable file=%s error=%s", file_name, e.__class__.__name__)
        return ""
    return "\n".join(pages).strip()


def sanitize_description(desc: str) -> str:
    """Neutralise spreadsheet formula prefixes and cap the length."""

    return _FORMULA_PREFIX_RE.sub(lambda m: "'" + m.group(0), desc, count=1)[:MAX_DESCRIPTION_LEN]


def clamp_amount(amount: Decimal) -> Decimal:
    return Decimal("0") if abs(amount) > MAX_ABS_AMOUNT else amount


__all__ = [
    "MAX_FILE_BYTES",
    "MAX_CSV_LINES",
    "MAX_CSV_CHARS",
    "MAX_DESCRIPTION_LEN",
    "MAX_ABS_AMOUNT",
    "file_extension",
    "validate_session_id",
    "check_file_size",
    "check_csv_limits",
    "decode_csv",
    "decode_text",
    "pdf_to_text",
    "sanitize_description",
    "clamp_amount",
]
