"""Test helpers to stub the OpenAI Responses client used by the oracle.

The stub records each call's kwargs and returns a canned ``output_text`` (or
raises a canned exception) so tests can drive every extraction outcome
without the network.
"""

from __future__ import annotations

import json
from typing import Any


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape used by the oracle.

    Parameters
    ----------
    output:
        Either the raw text to return as ``output_text``, or a list of row
        dicts that will be JSON-encoded.
    raises:
        When set, ``responses.create`` raises this exception instead.
    calls_out:
        A list that will be appended with each call's kwargs.
    """

    def __init__(
        self,
        output: str | list[dict[str, Any]] = "[]",
        *,
        raises: BaseException | None = None,
        calls_out: list[dict[str, Any]] | None = None,
    ) -> None:
        self._text = output if isinstance(output, str) else json.dumps(output)
        self._raises = raises
        self._calls = calls_out if calls_out is not None else []

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                if self._outer._raises is not None:
                    raise self._outer._raises

                class _Resp:
                    output_text: str

                resp = _Resp()
                resp.output_text = self._outer._text
                return resp

        self.responses = _Responses(self)

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls

    def factory(self):
        """Return a zero-arg client factory yielding this stub."""

        return lambda: self


class StaticExtractor:
    """A ``StatementExtractor`` returning a fixed outcome, recording inputs."""

    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.texts: list[str] = []

    def extract(self, text: str, *, file_name: str, timeout: float):
        self.texts.append(text)
        return self.outcome
