"""Inference capability protocols and response types.

The core consumes exactly one capability: an async callable taking a
prompt string and returning an InferenceResponse. Providers expose it
as their ``infer`` method.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from statecraft.models.config import InferenceOptions


@dataclass(frozen=True)
class TokenUsage:
    """Token usage for one or more inference calls.

    Attributes:
        prompt_tokens: Tokens in the prompt(s).
        completion_tokens: Tokens in the response(s).
        total_tokens: Sum of both.
        source: "provider" when reported by the API, "estimate" when
            counted locally.
    """

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    source: str = "provider"

    def __add__(self, other: TokenUsage) -> TokenUsage:
        source = self.source if self.source == other.source else "mixed"
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            source=source,
        )

    @classmethod
    def from_openai(cls, usage: dict | None) -> TokenUsage | None:
        """Build from an OpenAI-style ``usage`` dict, or None if absent."""
        if not usage:
            return None
        prompt = int(usage.get("prompt_tokens", 0))
        completion = int(usage.get("completion_tokens", 0))
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=int(usage.get("total_tokens", prompt + completion)),
        )


@dataclass(frozen=True)
class InferenceResponse:
    """Raw model output plus optional usage metadata."""

    content: str
    usage: TokenUsage | None = None
    finish_reason: str | None = None

    @classmethod
    def coerce(cls, value: Any) -> InferenceResponse:
        """Normalize what an inference callable returned.

        Accepts an InferenceResponse, a bare string, or a dict with a
        ``content`` key (and optional OpenAI-style ``usage``).

        Raises:
            TypeError: For any other value.
        """
        if isinstance(value, InferenceResponse):
            return value
        if isinstance(value, str):
            return cls(content=value)
        if isinstance(value, dict) and "content" in value:
            return cls(
                content=str(value["content"] or ""),
                usage=TokenUsage.from_openai(value.get("usage")),
                finish_reason=value.get("finish_reason"),
            )
        raise TypeError(
            f"Inference callable returned {type(value).__name__}; expected "
            f"InferenceResponse, str, or a dict with a 'content' key."
        )


InferFn = Callable[[str], Awaitable[Union[InferenceResponse, str, dict]]]
"""Signature of the inference capability consumed by the core."""


@runtime_checkable
class InferenceProvider(Protocol):
    """Protocol for pluggable inference backends.

    Implementations must tolerate being called repeatedly for the same
    dispatch (the correction loop does so) and must not depend on hard
    cancellation: callers may simply discard a result.
    """

    name: str

    async def infer(
        self,
        prompt: str,
        options: InferenceOptions | None = None,
    ) -> InferenceResponse:
        """Run one completion for ``prompt``."""
        ...

    async def aclose(self) -> None:
        """Release underlying resources."""
        ...
