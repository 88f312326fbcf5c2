"""Errors raised by inference providers.

Providers raise these; the controller never lets them escape a dispatch.
It wraps whatever an inference call raised in an InferenceError and maps
it to an ErrorCode (auth and configuration problems count as network
errors, timeouts as inference timeouts).
"""

from __future__ import annotations

from statecraft.exceptions import StatecraftError


class LLMClientError(StatecraftError):
    """A provider could not produce a completion.

    Attributes:
        provider: Name of the provider that failed, when known.
        status_code: HTTP status behind the failure, when there was one.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class LLMConfigError(LLMClientError):
    """The provider cannot be constructed: no API key or an unusable setting."""


class LLMRateLimitError(LLMClientError):
    """The endpoint answered 429. Retried by the provider until attempts run out.

    Attributes:
        retry_after: Server-suggested wait in seconds (``Retry-After``),
            or None when the header is absent or not numeric.
    """

    def __init__(
        self,
        message: str = "Rate limited",
        retry_after: float | None = None,
        *,
        provider: str | None = None,
    ) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message, provider=provider, status_code=429)


class LLMAuthError(LLMClientError):
    """The endpoint rejected the credentials (401/403). Never retried."""


class LLMResponseError(LLMClientError):
    """The completion body lacks the chat-completions shape (no choices/content)."""
