"""Date and amount normalization for loosely formatted statement values.

Dates are tried against a fixed list of ``strptime`` patterns and the first
successful pattern wins. There is no cross-validation between patterns, so a
string like ``"01/02/2025"`` is read day-first under the default order. An
explicit ``order`` ("dmy" or "mdy") moves one family of slash formats to the
front when the caller knows the statement's locale. With "auto" the
ingestion pipeline picks one of the two per file using
:func:`detect_date_order`.

Amounts tolerate currency symbols, thousands separators, a leading sign and
accounting-style parentheses.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Literal

from dateutil import parser as date_parser

from .config import DateOrder

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_FIXED_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",  # YYYY-MM-DD
    "%d/%m/%y",  # DD/MM/YY
    "%d/%m/%Y",  # DD/MM/YYYY
    "%m/%d/%Y",  # MM/DD/YYYY and M/D/YYYY
    "%m-%d-%Y",  # MM-DD-YYYY
)

_DMY_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%d/%m/%y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%m/%d/%Y",
    "%m-%d-%Y",
)

_MDY_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%d/%m/%y",
    "%d/%m/%Y",
)

_FORMATS_BY_ORDER: dict[str, tuple[str, ...]] = {
    "fixed": _FIXED_FORMATS,
    "dmy": _DMY_FORMATS,
    "mdy": _MDY_FORMATS,
    # Outside a file context "auto" falls back to the detection default.
    "auto": _DMY_FORMATS,
}

_DATE_PARTS_RE = re.compile(r"^(\d{1,4})[/.-](\d{1,2})[/.-](\d{1,4})$")

# The generic fallback only sees strings that could plausibly be a date.
_FALLBACK_MIN_LEN = 6
_HAS_DIGIT_RE = re.compile(r"\d")
_FALLBACK_DEFAULT = datetime(2000, 1, 1)


def _generic_parse(s: str, *, dayfirst: bool) -> date | None:
    if len(s) < _FALLBACK_MIN_LEN or not _HAS_DIGIT_RE.search(s):
        return None
    try:
        return date_parser.parse(s, dayfirst=dayfirst, default=_FALLBACK_DEFAULT).date()
    except (ValueError, OverflowError):
        return None


def parse_date(raw: str | None, *, order: DateOrder = "fixed") -> date | None:
    """Parse ``raw`` into a :class:`datetime.date` or return ``None``.

    ``None`` means *unparseable*: callers exclude such rows from
    date-dependent computations instead of failing.
    """

    if raw is None:
        return None
    s = raw.strip()
    if not s:
        return None
    for fmt in _FORMATS_BY_ORDER[order]:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return _generic_parse(s, dayfirst=(order != "mdy"))


def normalize_date(raw: str | None, *, order: DateOrder = "fixed") -> str | None:
    """Return ``raw`` as ``YYYY-MM-DD`` when parseable, else ``None``."""

    d = parse_date(raw, order=order)
    return d.isoformat() if d is not None else None


def detect_date_order(raws: Iterable[str | None]) -> Literal["dmy", "mdy"]:
    """Pick one day/month order for a whole file from its raw date strings.

    A leading part above 12 means day-first and a middle part above 12 means
    month-first. Year-first dates carry no signal. When no date decides, or
    the file shows both, the result is ``"dmy"``.
    """

    day_first = month_first = False
    for raw in raws:
        m = _DATE_PARTS_RE.match("".join((raw or "").split()))
        if m is None or len(m.group(1)) == 4:
            continue
        a, b = int(m.group(1)), int(m.group(2))
        if a > 12 and b <= 12:
            day_first = True
        elif b > 12 and a <= 12:
            month_first = True
    return "mdy" if month_first and not day_first else "dmy"


def days_between(a: str | None, b: str | None, *, order: DateOrder = "fixed") -> float:
    """Absolute day distance between two date strings.

    Returns ``math.inf`` when either side is unparseable so that any finite
    day window simply fails to match.
    """

    return date_gap(parse_date(a, order=order), parse_date(b, order=order))


def date_gap(a: date | None, b: date | None) -> float:
    """Like :func:`days_between` for already-parsed dates."""

    if a is None or b is None:
        return math.inf
    return float(abs((a - b).days))


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_CURRENCY_SYMBOLS = "$€£¥"
_STRIP_RE = re.compile(r"[()$€£¥,\s]")
_BARE_DECIMAL_RE = re.compile(r"^-?\d+\.?\d*$")


def parse_amount(raw: str | None) -> Decimal | None:
    """Parse a signed decimal from ``raw`` or return ``None``.

    Sign markers, currency symbols and surrounding parentheses may appear in
    any order (``"-$1,234.56"``, ``"$(1,234.56)"``, ``"(45.00)"``).
    """

    if raw is None:
        return None
    s = raw.strip()
    if not s:
        return None
    negative = False

    # Strip leading sign, currency symbol, and surrounding parentheses until stable.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s and s[0] in _CURRENCY_SYMBOLS:
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").strip()
    if not _BARE_DECIMAL_RE.match(s):
        return None
    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    return -abs(d) if negative else d


def parse_amount_or_zero(raw: str | None) -> Decimal:
    amount = parse_amount(raw)
    return amount if amount is not None else Decimal("0")


def is_bare_decimal(raw: str) -> bool:
    """True when ``raw`` is only a signed number once symbols are stripped."""

    return bool(_BARE_DECIMAL_RE.match(_STRIP_RE.sub("", raw)))


def fmt_amount(d: Decimal) -> str:
    # Exactly two decimals, ASCII dot, leading minus for negatives.
    q = d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{q:.2f}"


__all__ = [
    "parse_date",
    "normalize_date",
    "detect_date_order",
    "days_between",
    "date_gap",
    "parse_amount",
    "parse_amount_or_zero",
    "is_bare_decimal",
    "fmt_amount",
]
