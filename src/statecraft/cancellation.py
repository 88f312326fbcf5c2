"""Cooperative cancellation for in-flight dispatches."""

from __future__ import annotations

import uuid

from statecraft.exceptions import DispatchCancelledError


class CancellationToken:
    """One-way cancelled flag passed into every suspending call.

    Holders check it after each await and before mutating anything.
    Cancelling never interrupts the awaited call itself; the eventual
    result is simply discarded.
    """

    __slots__ = ("dispatch_id", "_cancelled")

    def __init__(self, dispatch_id: str | None = None) -> None:
        self.dispatch_id = dispatch_id or uuid.uuid4().hex[:16]
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        """Raise DispatchCancelledError if this token was cancelled."""
        if self._cancelled:
            raise DispatchCancelledError(self.dispatch_id)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"CancellationToken({self.dispatch_id}, {state})"
