"""Self-correction loop for LLM output that fails validation.

Provides execute_with_correction() -- a bounded validate->correct loop
that feeds validation errors back to the model as a corrective prompt.
The ``max_retries`` ceiling is a circuit breaker: it is the only limit
on inference cost for a persistently malformed model.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from statecraft.cancellation import CancellationToken
from statecraft.llm.protocols import InferenceResponse, InferFn, TokenUsage
from statecraft.prompts.mutation import build_correction_prompt
from statecraft.validation.schema import ValidationIssue, validate_response

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, tuple[ValidationIssue, ...]], None]


@dataclass(frozen=True)
class AttemptRecord:
    """One inference call within a dispatch.

    Attributes:
        raw_response: Model output exactly as received.
        errors: Validation issues (empty when the attempt succeeded).
        prompt_used: The prompt sent for this attempt.
        usage: Token usage, if known.
    """

    raw_response: str
    errors: tuple[ValidationIssue, ...]
    prompt_used: str
    usage: TokenUsage | None = None

    @property
    def valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class CorrectionResult(Generic[T]):
    """Terminal result of a correction loop.

    Attributes:
        success: Whether a valid response was obtained.
        data: The validated value, or None on failure.
        attempts: Inference calls made (never more than max_retries).
        history: Every attempt, in order.
    """

    success: bool
    data: T | None
    attempts: int
    history: tuple[AttemptRecord, ...] = field(default_factory=tuple)

    @property
    def last_errors(self) -> tuple[ValidationIssue, ...]:
        return self.history[-1].errors if self.history else ()

    @property
    def total_usage(self) -> TokenUsage | None:
        """Summed usage over attempts that reported any, else None."""
        usages = [record.usage for record in self.history if record.usage is not None]
        if not usages:
            return None
        return functools.reduce(lambda a, b: a + b, usages)


async def execute_with_correction(
    prompt: str,
    contract: Any,
    infer: InferFn,
    *,
    max_retries: int = 3,
    on_retry: RetryCallback | None = None,
    cancel_token: CancellationToken | None = None,
) -> CorrectionResult:
    """Call ``infer`` until its output validates or the ceiling is hit.

    Flow:
        1. Send the current prompt (initially ``prompt``).
        2. Validate the response against ``contract`` and record the attempt.
        3. If valid, return success immediately -- no further calls.
        4. If attempts remain: call ``on_retry(attempt, errors)`` and build
           a correction prompt from the *original* prompt, the rejected
           response, and its errors. Goto 1.
        5. Otherwise return failure with ``data=None``.

    Args:
        prompt: The initial prompt.
        contract: Structural contract to validate against.
        infer: Async inference capability.
        max_retries: Maximum total inference calls (>= 1).
        on_retry: Observability hook, called before each retry.
        cancel_token: Checked after every inference await.

    Returns:
        Exactly one CorrectionResult per invocation.

    Raises:
        ValueError: If max_retries < 1.
        DispatchCancelledError: If ``cancel_token`` was cancelled while an
            inference call was pending.
        Exception: Whatever ``infer`` raises (transport failures are not
            retried here).
    """
    if max_retries < 1:
        raise ValueError(f"max_retries must be >= 1, got {max_retries}")

    history: list[AttemptRecord] = []
    attempts = 0
    current_prompt = prompt

    while attempts < max_retries:
        attempts += 1
        response = InferenceResponse.coerce(await infer(current_prompt))
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        validation = validate_response(response.content, contract)
        history.append(AttemptRecord(
            raw_response=response.content,
            errors=validation.errors,
            prompt_used=current_prompt,
            usage=response.usage,
        ))

        if validation.success:
            return CorrectionResult(
                success=True,
                data=validation.data,
                attempts=attempts,
                history=tuple(history),
            )

        if attempts >= max_retries:
            break

        logger.info(
            "Attempt %d/%d failed validation (%d issue(s)); requesting correction",
            attempts, max_retries, len(validation.errors),
        )
        if on_retry is not None:
            on_retry(attempts, validation.errors)
        current_prompt = build_correction_prompt(prompt, response.content, validation.errors)

    logger.info("Correction loop exhausted after %d attempt(s)", attempts)
    return CorrectionResult(
        success=False,
        data=None,
        attempts=attempts,
        history=tuple(history),
    )


def make_correction_executor(**defaults: Any) -> Callable[..., Any]:
    """Return execute_with_correction with pre-configured keyword defaults.

    Call-time keywords override the defaults::

        run = make_correction_executor(max_retries=5)
        result = await run(prompt, Contract, infer)
    """
    async def executor(prompt: str, contract: Any, infer: InferFn, **overrides: Any) -> CorrectionResult:
        return await execute_with_correction(prompt, contract, infer, **{**defaults, **overrides})

    return executor
