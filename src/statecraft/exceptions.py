"""Statecraft exception hierarchy.

All Statecraft-specific exceptions inherit from StatecraftError.

Dispatch failures (DispatchError and subclasses) are attached to a
REJECTED DispatchResult rather than raised out of ``dispatch()``, so
callers can render error state without exception handling.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any


class StatecraftError(Exception):
    """Base exception for all Statecraft errors."""


class ErrorCode(str, enum.Enum):
    """Machine-readable category of a dispatch failure."""

    VALIDATION_FAILED = "validation_failed"
    INFERENCE_TIMEOUT = "inference_timeout"
    MODEL_ERROR = "model_error"
    NETWORK_ERROR = "network_error"
    GATE_FAILED = "gate_failed"

    def __str__(self) -> str:
        return self.value


_DEFAULT_SUGGESTIONS: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_FAILED: (
        "Try simplifying your intent or check your contract definition."
    ),
    ErrorCode.INFERENCE_TIMEOUT: (
        "The model is taking too long. Try a shorter prompt or a faster model."
    ),
    ErrorCode.MODEL_ERROR: "The inference backend failed. Retry the dispatch.",
    ErrorCode.NETWORK_ERROR: (
        "Check your network connection or API key configuration."
    ),
    ErrorCode.GATE_FAILED: "The confirmation gate raised an error.",
}

_RECOVERABLE: frozenset[ErrorCode] = frozenset({
    ErrorCode.VALIDATION_FAILED,
    ErrorCode.INFERENCE_TIMEOUT,
    ErrorCode.MODEL_ERROR,
})


class DispatchError(StatecraftError):
    """A dispatch ended REJECTED.

    Attributes:
        code: Failure category.
        suggestion: Actionable hint for the user.
        recoverable: Whether retrying the same dispatch may succeed.
        debug_info: Free-form diagnostic data (prompt, response, ...).
            Always contains a UTC ``timestamp``.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        suggestion: str | None = None,
        recoverable: bool | None = None,
        debug_info: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.suggestion = suggestion or _DEFAULT_SUGGESTIONS[code]
        self.recoverable = code in _RECOVERABLE if recoverable is None else recoverable
        self.debug_info: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc),
            **(debug_info or {}),
        }
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        debug = dict(self.debug_info)
        debug["timestamp"] = debug["timestamp"].isoformat()
        return {
            "name": type(self).__name__,
            "code": self.code.value,
            "message": str(self),
            "suggestion": self.suggestion,
            "recoverable": self.recoverable,
            "debug_info": debug,
        }


class ValidationFailedError(DispatchError):
    """The model never produced a contract-valid state within the retry ceiling."""

    def __init__(self, attempts: int, history: tuple = ()) -> None:
        self.attempts = attempts
        self.history = history
        last = history[-1] if history else None
        super().__init__(
            ErrorCode.VALIDATION_FAILED,
            f"Model returned invalid data after {attempts} attempt(s)",
            debug_info={
                "response": last.raw_response if last is not None else None,
                "validation_errors": list(last.errors) if last is not None else [],
            },
        )


class InferenceError(DispatchError):
    """The inference capability raised (transport failure).

    The provider exception is chained as ``__cause__``. Not retried by
    the correction loop.
    """

    def __init__(self, cause: BaseException, *, code: ErrorCode = ErrorCode.MODEL_ERROR) -> None:
        super().__init__(
            code,
            f"Inference failed: {cause}",
            debug_info={"cause_type": type(cause).__name__},
        )
        self.__cause__ = cause


class GateError(DispatchError):
    """The confirmation gate raised while deciding on a pending change."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(
            ErrorCode.GATE_FAILED,
            f"Confirmation gate failed: {cause}",
            recoverable=False,
        )
        self.__cause__ = cause


class DispatchCancelledError(StatecraftError):
    """A newer dispatch superseded this one. Not an error for callers."""

    def __init__(self, dispatch_id: str | None = None) -> None:
        self.dispatch_id = dispatch_id
        super().__init__(f"Dispatch superseded: {dispatch_id or '<unknown>'}")


class ProviderNotFoundError(StatecraftError):
    """Raised when no provider factory is registered for a kind."""

    def __init__(self, kind: str, available: list[str]) -> None:
        self.kind = kind
        self.available = available
        super().__init__(
            f"Unknown provider kind: {kind}. Available: {', '.join(available)}"
        )
