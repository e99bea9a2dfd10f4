"""Fuzzy description matching via character trigram overlap.

``similarity(candidate, reference)`` is intentionally asymmetric: the
trigram *set* comes from the first argument while the second argument is
scanned positionally (duplicates included), and the denominator is
``max(len(set(a)), len(b) - 2)``. Swapping the arguments can change the
score, so callers always pass ``(candidate, reference)`` in that order.
"""

from __future__ import annotations

import re

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WS_RE = re.compile(r"\s+")

_N = 3


def normalize_description(desc: str | None) -> str:
    """Lowercase, drop non-alphanumerics, collapse whitespace."""

    if not desc:
        return ""
    s = _NON_ALNUM_RE.sub("", desc.lower())
    return _WS_RE.sub(" ", s).strip()


def _trigrams(s: str) -> list[str]:
    return [s[i : i + _N] for i in range(len(s) - _N + 1)]


def similarity(a: str | None, b: str | None) -> float:
    """Return a score in ``[0, 1]`` for how alike two descriptions are."""

    na = normalize_description(a)
    nb = normalize_description(b)
    if na == nb:
        return 1.0
    if len(na) < _N or len(nb) < _N:
        return 0.0

    set_a = set(_trigrams(na))
    grams_b = _trigrams(nb)
    hits = sum(1 for g in grams_b if g in set_a)
    return hits / max(len(set_a), len(grams_b))


__all__ = ["normalize_description", "similarity"]
