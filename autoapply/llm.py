"""Chat-completion client and structured-field extraction from model replies."""
from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any

import openai

from autoapply.log import get_logger
from autoapply.retry import retry

log = get_logger(__name__)

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class LLMClient:
    """Thin wrapper over an OpenAI-compatible chat endpoint.

    One instance is built at start-up and shared by every component; the
    underlying SDK client is safe to use from worker threads.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        client: Any = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self._client = client or openai.OpenAI(api_key=api_key, base_url=base_url or None)

    @retry(max_attempts=2, base_delay=2.0, retryable=_TRANSIENT_ERRORS)
    def complete(
        self,
        prompt: str,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        r = self._client.chat.completions.create(**kwargs)
        return (r.choices[0].message.content or "").strip()


class FieldExtractor(ABC):
    """Pull one named field out of a free-form model reply."""

    @abstractmethod
    def extract(self, text: str, field: str) -> Any | None:
        """Return the field's value, or None when it is absent or unreadable."""


class JsonFieldExtractor(FieldExtractor):
    """Reads the outermost ``{...}`` fragment as JSON, then falls back to a
    ``"field": value`` regex for replies whose JSON is malformed."""

    _SCALAR = r'("(?:[^"\\]|\\.)*"|true|false|null|-?\d+(?:\.\d+)?)'

    def extract(self, text: str, field: str) -> Any | None:
        if not text:
            return None

        start = text.find("{")
        end = text.rfind("}") + 1
        if start != -1 and end > start:
            try:
                data = json.loads(text[start:end])
            except ValueError:
                data = None
            if isinstance(data, dict) and data.get(field) is not None:
                return data[field]

        m = re.search(rf'"{re.escape(field)}"\s*:\s*{self._SCALAR}', text)
        if not m:
            log.debug("Field %r not found in model reply", field)
            return None
        try:
            return json.loads(m.group(1))
        except ValueError:
            return None
