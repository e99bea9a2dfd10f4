"""Column-sniffing parser for loosely structured statement CSVs.

Statements exported by care providers rarely share a header layout, so the
parser ignores header names and classifies each column by its content:

- the first column that looks like ``d/m/y``, ``y-m-d`` (any of ``- / .``)
  becomes ``date``;
- a column that reduces to a bare signed decimal becomes ``amount`` (only
  while no non-zero amount has been seen);
- the first remaining column longer than two characters is ``description``.

Splitting is on plain commas. Wrapping quotes are stripped but quoted commas
are not honoured.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal

from ..models import UNKNOWN
from ..normalizers import is_bare_decimal, parse_amount, parse_amount_or_zero

_HEADER_TOKENS: tuple[str, ...] = ("date", "amount", "description")
_DATE_LIKE_RE = re.compile(r"\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}")
_MIN_DESCRIPTION_LEN = 3


@dataclass(frozen=True, slots=True)
class CsvRow:
    date: str
    description: str
    amount: Decimal


@dataclass(frozen=True, slots=True)
class CsvParseResult:
    rows: list[CsvRow]
    dropped: int


def _strip_quotes(col: str) -> str:
    s = col.strip()
    if s.startswith('"'):
        s = s[1:]
    if s.endswith('"'):
        s = s[:-1]
    return s


def has_header(first_line: str) -> bool:
    lower = first_line.lower()
    return any(tok in lower for tok in _HEADER_TOKENS)


def _sniff_row(cols: list[str]) -> CsvRow | None:
    date = ""
    description = ""
    amount = Decimal("0")
    for col in cols:
        if not date and _DATE_LIKE_RE.search(col):
            date = col
            continue
        parsed = parse_amount(col)
        if parsed is not None and is_bare_decimal(col):
            if amount == 0:
                amount = parsed
        elif not description and len(col) >= _MIN_DESCRIPTION_LEN:
            description = col

    if not description and len(cols) > 1:
        description = cols[1]
    if not date:
        date = cols[0]
    if amount == 0:
        amount = parse_amount_or_zero(cols[-1])

    if not date.strip() and not description.strip():
        return None
    return CsvRow(
        date=date.strip() or UNKNOWN,
        description=description.strip() or UNKNOWN,
        amount=amount,
    )


def iter_data_lines(text: str) -> Iterator[list[str]]:
    """Yield the comma-split, unquoted columns of every data line."""

    lines = [line.rstrip("\r") for line in text.strip().split("\n")]
    if lines and has_header(lines[0]):
        lines = lines[1:]
    for line in lines:
        if not line.strip():
            continue
        yield [_strip_quotes(c) for c in line.split(",")]


def parse_csv(text: str) -> CsvParseResult:
    """Parse statement rows from CSV ``text``.

    Malformed rows never abort the parse: rows with fewer than two columns or
    with neither a date nor a description are counted in ``dropped``.
    """

    rows: list[CsvRow] = []
    dropped = 0
    for cols in iter_data_lines(text):
        if len(cols) < 2:
            dropped += 1
            continue
        row = _sniff_row(cols)
        if row is None:
            dropped += 1
            continue
        rows.append(row)
    return CsvParseResult(rows=rows, dropped=dropped)


__all__ = ["CsvRow", "CsvParseResult", "has_header", "iter_data_lines", "parse_csv"]
