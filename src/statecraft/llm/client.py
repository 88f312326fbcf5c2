"""Built-in OpenAI-compatible async httpx provider with tenacity retry.

Provides an async HTTP client for OpenAI-compatible chat completion APIs
(OpenAI, Groq, Cerebras, local servers exposing the same endpoint).
Reads configuration from constructor arguments or environment variables.

Retries here cover transport problems only (429, 5xx, connection
errors). Schema validation failures are handled by the correction loop,
never by this client.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx
import tenacity

from statecraft.llm.errors import (
    LLMAuthError,
    LLMConfigError,
    LLMRateLimitError,
    LLMResponseError,
)
from statecraft.llm.protocols import InferenceResponse, TokenUsage
from statecraft.models.config import DEFAULT_MODEL, InferenceOptions

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPTIONS = InferenceOptions(temperature=0.7, max_tokens=2048)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_AUTH_ERROR_STATUS_CODES = {401, 403}


def _is_retryable(exc: BaseException) -> bool:
    """Check if an exception is retryable.

    Retryable: 429, 500, 502, 503, 504, connection errors.
    Not retryable: 401, 403, 400, other client errors.
    """
    if isinstance(exc, LLMAuthError):
        return False
    if isinstance(exc, LLMRateLimitError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout))


class OpenAICompatibleProvider:
    """Async httpx provider for OpenAI-compatible chat completions.

    Implements the InferenceProvider protocol. The prompt is sent as a
    single user message. Supports retry with exponential backoff for
    transient errors (429, 5xx). Fails immediately on authentication
    errors (401, 403).

    Usage::

        async with OpenAICompatibleProvider(api_key="sk-...") as provider:
            response = await provider.infer("Say hello")
            print(response.content)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        *,
        name: str = "openai",
        timeout: float = 120.0,
        max_retries: int = 3,
        default_options: InferenceOptions | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: API key. Falls back to STATECRAFT_API_KEY env var.
            base_url: API base URL. Falls back to STATECRAFT_BASE_URL env var,
                then to https://api.openai.com/v1.
            model: Model for requests. Defaults to gpt-4o-mini.
            name: Provider name reported in logs and errors.
            timeout: Request timeout in seconds.
            max_retries: Maximum attempts for retryable transport errors.
            default_options: Sampling defaults (temperature 0.7,
                max_tokens 2048 when omitted).
            transport: Optional httpx transport (tests use MockTransport).

        Raises:
            LLMConfigError: If no API key is provided or found in environment.
        """
        self._api_key = api_key or os.environ.get("STATECRAFT_API_KEY", "")
        if not self._api_key:
            raise LLMConfigError(
                "No API key provided. Pass api_key= or set STATECRAFT_API_KEY "
                "environment variable."
            )
        self._base_url = (
            base_url or os.environ.get("STATECRAFT_BASE_URL", DEFAULT_BASE_URL)
        ).rstrip("/")
        self.name = name
        self.model = model or DEFAULT_MODEL
        self._max_retries = max_retries
        self._default_options = (default_options or InferenceOptions()).merged_over(
            DEFAULT_OPTIONS
        )
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
        )

    async def infer(
        self,
        prompt: str,
        options: InferenceOptions | None = None,
    ) -> InferenceResponse:
        """Send one chat completion request with transport retry.

        Uses tenacity.AsyncRetrying programmatically (not as decorator) so
        that max_retries is configurable per-instance.

        Raises:
            LLMAuthError: On 401/403 (no retry).
            LLMRateLimitError: On 429 after all retries exhausted.
            LLMResponseError: On unexpected response format.
            httpx.HTTPStatusError: On other non-retryable HTTP errors.
        """
        merged = (options or InferenceOptions()).merged_over(self._default_options)
        retryer = tenacity.AsyncRetrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=(
                tenacity.wait_exponential(multiplier=1, min=1, max=30)
                + tenacity.wait_random(0, 2)
            ),
            stop=tenacity.stop_after_attempt(self._max_retries),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        data = await retryer(self._do_request, prompt, merged)
        return self._to_response(data)

    async def _do_request(self, prompt: str, options: InferenceOptions) -> dict:
        """Execute a single chat completion request (no retry)."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if options.max_tokens is not None:
            payload["max_tokens"] = options.max_tokens

        response = await self._client.post(
            f"{self._base_url}/chat/completions",
            json=payload,
        )

        if response.status_code in _AUTH_ERROR_STATUS_CODES:
            raise LLMAuthError(
                f"Authentication failed: HTTP {response.status_code} - "
                f"{response.text}",
                provider=self.name,
                status_code=response.status_code,
            )

        if response.status_code == 429:
            retry_after_raw = response.headers.get("Retry-After")
            retry_after: float | None = None
            if retry_after_raw is not None:
                try:
                    retry_after = float(retry_after_raw)
                except (ValueError, TypeError):
                    pass
            raise LLMRateLimitError(
                f"Rate limited: HTTP 429 - {response.text}",
                retry_after=retry_after,
                provider=self.name,
            )

        response.raise_for_status()

        data = response.json()
        if "choices" not in data:
            raise LLMResponseError(
                f"Unexpected response format: missing 'choices' key. "
                f"Response: {data}"
            )
        return data

    @staticmethod
    def _to_response(data: dict) -> InferenceResponse:
        try:
            choice = data["choices"][0]
            content = choice["message"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise LLMResponseError(
                f"Cannot extract content from response: {exc}. "
                f"Response: {data}"
            ) from exc
        return InferenceResponse(
            content=content,
            usage=TokenUsage.from_openai(data.get("usage")),
            finish_reason=choice.get("finish_reason"),
        )

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()

    async def __aenter__(self) -> OpenAICompatibleProvider:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
