"""Prompt construction for statement extraction.

This module builds:
- The system instructions asking the model for a bare JSON array of
  ``{date, description, amount}`` objects.
- The user content embedding a size-bounded text excerpt of the statement.
"""

from __future__ import annotations

from dataclasses import dataclass

_INSTRUCTIONS = """\
You are a precise bank/provider statement parser. Extract every individual transaction from the document.

Rules:
- Return ONLY a JSON array of objects with "date", "description", and "amount" fields.
- "amount" must be a number: negative for debits/expenses/withdrawals, positive for credits/income/deposits.
- Extract the EXACT amounts as shown on the statement. Do NOT round or estimate.
- Look at the statement header, title, or period line to determine what month/year this statement covers, and use it to interpret ambiguous dates (dd/MM vs MM/dd).
- If the statement says "October 2025" but a date reads "01/10/25", that means 1 October 2025, NOT 10 January.
- Default to dd/MM/yy (day/month/year) when no context is available.
- Return ALL dates in yyyy-MM-dd format (e.g., 2025-10-01).
- Do NOT include summary rows like "Opening Balance", "Closing Balance", "Total", or "Balance Carried Forward".
- Do NOT include interest rate information, account numbers, or headers.
- Handle varied column layouts: some statements use separate Debit/Credit columns, some use a single Amount column.
- Strip currency symbols ($, AUD, etc.) from amounts.
- Amounts shown in parentheses like (50.00) are negative.
- No markdown, no explanation, just the JSON array."""


@dataclass(frozen=True, slots=True)
class UserContent:
    text: str
    truncated: bool


def build_system_instructions() -> str:
    return _INSTRUCTIONS


def build_user_content(statement_text: str, *, file_name: str, max_chars: int) -> UserContent:
    """Embed at most ``max_chars`` characters of ``statement_text``.

    ``truncated`` reports whether anything was cut, which callers surface as
    low confidence.
    """

    excerpt = statement_text[:max_chars]
    return UserContent(
        text=f'Parse transactions from this statement file "{file_name}":\n\n{excerpt}',
        truncated=len(statement_text) > max_chars,
    )


__all__ = ["UserContent", "build_system_instructions", "build_user_content"]
