"""Token counting for prompt/response usage accounting.

Provides HeuristicTokenCounter (default, no dependencies at call time)
and TiktokenCounter (accurate, OpenAI's tokenizer). Both implement the
TokenCounter protocol.
"""

from __future__ import annotations

import math
from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenCounter(Protocol):
    """Anything that can count tokens in a string."""

    def count_text(self, text: str) -> int:
        ...


class HeuristicTokenCounter:
    """Character-based estimate: ~4 characters per token plus a 10% buffer."""

    def count_text(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / 4 * 1.1)


class TiktokenCounter:
    """Token counter using tiktoken.

    Lazily imports tiktoken and caches the Encoding instance.
    Falls back to o200k_base encoding if the model is unknown.
    """

    def __init__(self, model: str = "gpt-4o", encoding_name: str | None = None) -> None:
        import tiktoken

        if encoding_name is not None:
            self._enc = tiktoken.get_encoding(encoding_name)
        else:
            try:
                self._enc = tiktoken.encoding_for_model(model)
            except KeyError:
                self._enc = tiktoken.get_encoding("o200k_base")

        self._encoding_name = self._enc.name

    @property
    def encoding_name(self) -> str:
        """Name of the tiktoken encoding being used."""
        return self._encoding_name

    def count_text(self, text: str) -> int:
        """Count tokens in a plain text string. Returns 0 for empty string."""
        if not text:
            return 0
        return len(self._enc.encode(text))
