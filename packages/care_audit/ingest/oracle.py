"""Best-effort AI extraction of transactions from unstructured statement text.

The oracle is untrusted: every failure mode (missing credentials, transport
errors, timeouts, prose instead of JSON, rows with missing fields) is turned
into a value on :class:`ExtractionOutcome` rather than an exception, so a bad
response can only ever shrink an ingestion, never abort it.

Public API:
    - :class:`StatementExtractor` (protocol; inject a stub in tests)
    - :class:`OpenAIStatementExtractor`
    - :func:`parse_extraction_output`
"""

from __future__ import annotations

import json
import os
import random
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import openai
from openai import OpenAI
from pydantic import ValidationError

from .. import prompting
from ..config import DEFAULT_ORACLE_MAX_CHARS, DEFAULT_ORACLE_MODEL
from ..logging_setup import get_logger
from ..models import RawTransaction

_logger = get_logger("care_audit.ingest.oracle")

type FailureReason = Literal["no_api_key", "timeout", "api_error", "invalid_json", "empty_text"]

_JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")

_MAX_ATTEMPTS = 2
_BACKOFF_SEC = 1.0
_JITTER_PCT = 0.2
_MAX_BACKOFF_SEC = _BACKOFF_SEC * (1 + _JITTER_PCT)

_clock = time.monotonic


@dataclass(frozen=True, slots=True)
class ExtractionFailure:
    reason: FailureReason
    detail: str = ""


@dataclass(frozen=True, slots=True)
class ExtractionOutcome:
    """Rows that validated plus counters describing what was discarded.

    ``total`` counts every object the oracle returned, valid or not, so the
    ingestion adapter can apply its valid-ratio confidence check.
    """

    rows: list[RawTransaction] = field(default_factory=list)
    total: int = 0
    truncated: bool = False
    failure: ExtractionFailure | None = None

    @property
    def invalid(self) -> int:
        return self.total - len(self.rows)

    @classmethod
    def failed(
        cls, reason: FailureReason, detail: str = "", *, truncated: bool = False
    ) -> ExtractionOutcome:
        return cls(failure=ExtractionFailure(reason, detail), truncated=truncated)


class StatementExtractor(Protocol):
    def extract(self, text: str, *, file_name: str, timeout: float) -> ExtractionOutcome: ...


def _validate_rows(items: list[Any]) -> tuple[list[RawTransaction], int]:
    rows: list[RawTransaction] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            rows.append(RawTransaction.model_validate(item))
        except ValidationError:
            continue
    return rows, len(items)


def parse_extraction_output(text: str | None) -> ExtractionOutcome:
    """Decode model output into validated rows.

    The first ``[...]`` span is tried before the whole text, which tolerates
    markdown fences and leading prose around the array.
    """

    if not text or not text.strip():
        return ExtractionOutcome.failed("invalid_json", "empty model output")
    m = _JSON_ARRAY_RE.search(text)
    candidate = m.group(0) if m else text
    try:
        decoded = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return ExtractionOutcome.failed("invalid_json", str(exc))
    if not isinstance(decoded, list):
        kind = type(decoded).__name__
        return ExtractionOutcome.failed("invalid_json", f"expected array, got {kind}")
    rows, total = _validate_rows(decoded)
    return ExtractionOutcome(rows=rows, total=total)


def _is_retryable(exc: BaseException) -> bool:
    """Return True only for HTTP 429 and 5xx errors."""

    sc = getattr(exc, "status_code", None)
    return isinstance(sc, int) and (sc == 429 or 500 <= sc < 600)


def _sleep_backoff() -> None:
    jitter = _BACKOFF_SEC * _JITTER_PCT
    time.sleep(max(0.0, _BACKOFF_SEC + random.uniform(-jitter, jitter)))


def _response_text(resp: Any) -> str | None:
    text = getattr(resp, "output_text", None)
    return text if isinstance(text, str) else None


class OpenAIStatementExtractor:
    """Extractor backed by the OpenAI Responses API.

    ``client_factory`` defaults to ``openai.OpenAI``; tests pass a factory
    returning a stub with the same ``responses.create`` shape.

    ``timeout`` bounds the whole extraction, retries included. The default
    client is built with SDK retries disabled so ``_MAX_ATTEMPTS`` is the only
    retry policy, and a retry is skipped once the remaining budget cannot
    cover the backoff.
    """

    def __init__(
        self,
        *,
        model: str = DEFAULT_ORACLE_MODEL,
        max_chars: int = DEFAULT_ORACLE_MAX_CHARS,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.model = model
        self.max_chars = max_chars
        self._client_factory = client_factory

    def _client(self, timeout: float) -> Any:
        if self._client_factory is not None:
            return self._client_factory()
        return OpenAI(max_retries=0, timeout=timeout)

    def extract(self, text: str, *, file_name: str, timeout: float) -> ExtractionOutcome:
        if not text.strip():
            return ExtractionOutcome.failed("empty_text", "no extractable text")
        if self._client_factory is None and not os.getenv("OPENAI_API_KEY"):
            _logger.warning("oracle:failed reason=no_api_key file=%s", file_name)
            return ExtractionOutcome.failed("no_api_key", "OPENAI_API_KEY is not set")

        content = prompting.build_user_content(text, file_name=file_name, max_chars=self.max_chars)
        _logger.info(
            "oracle:request file=%s chars=%d truncated=%s",
            file_name,
            len(text),
            content.truncated,
        )

        client = self._client(timeout)
        deadline = _clock() + timeout
        attempt_timeout = timeout
        attempt = 1
        while True:
            t0 = time.perf_counter()
            try:
                resp = client.responses.create(
                    model=self.model,
                    instructions=prompting.build_system_instructions(),
                    input=content.text,
                    timeout=attempt_timeout,
                )
                break
            except Exception as e:  # noqa: BLE001
                dt_ms = (time.perf_counter() - t0) * 1000.0
                if (
                    attempt < _MAX_ATTEMPTS
                    and _is_retryable(e)
                    and deadline - _clock() > _MAX_BACKOFF_SEC
                ):
                    _logger.warning(
                        "oracle:retry file=%s latency_ms=%.2f error=%s attempt=%d",
                        file_name,
                        dt_ms,
                        e.__class__.__name__,
                        attempt,
                    )
                    attempt += 1
                    _sleep_backoff()
                    attempt_timeout = max(deadline - _clock(), 0.0)
                    continue
                reason: FailureReason = (
                    "timeout"
                    if isinstance(e, (openai.APITimeoutError, TimeoutError))
                    else "api_error"
                )
                _logger.error(
                    "oracle:failed reason=%s file=%s latency_ms=%.2f error=%s",
                    reason,
                    file_name,
                    dt_ms,
                    e.__class__.__name__,
                )
                return ExtractionOutcome.failed(reason, str(e), truncated=content.truncated)

        outcome = parse_extraction_output(_response_text(resp))
        if outcome.failure is not None:
            _logger.error(
                "oracle:failed reason=%s file=%s detail=%s",
                outcome.failure.reason,
                file_name,
                outcome.failure.detail,
            )
        else:
            _logger.info(
                "oracle:done file=%s rows=%d invalid=%d",
                file_name,
                len(outcome.rows),
                outcome.invalid,
            )
        return ExtractionOutcome(
            rows=outcome.rows,
            total=outcome.total,
            truncated=content.truncated,
            failure=outcome.failure,
        )


__all__ = [
    "FailureReason",
    "ExtractionFailure",
    "ExtractionOutcome",
    "StatementExtractor",
    "OpenAIStatementExtractor",
    "parse_extraction_output",
]
