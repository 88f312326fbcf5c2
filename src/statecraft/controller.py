"""SemanticState: the lifecycle controller.

Ties the pipeline together for one piece of typed state. A dispatch
snapshots the committed state, compiles a mutation prompt, runs the
self-correction loop against the injected inference capability, scores
the proposal, gates it when it is uncertain or destructive, and then
commits or discards it.

Usage::

    todos = SemanticState(TodoList, TodoList(items=[]), provider.infer)
    result = await todos.dispatch("Add buy milk")
    if result.status is LifecycleState.SETTLED:
        print(todos.state)

At most one dispatch is live per controller. Starting a new dispatch
cancels the previous one; its eventual response is discarded without a
transition or commit.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any, Generic, TypeVar, Union

import httpx

from statecraft.cancellation import CancellationToken
from statecraft.exceptions import (
    DispatchCancelledError,
    DispatchError,
    ErrorCode,
    GateError,
    InferenceError,
    ValidationFailedError,
)
from statecraft.lifecycle import AuditEntry, LifecycleEvent, LifecycleMachine, LifecycleState
from statecraft.llm.errors import LLMAuthError, LLMConfigError
from statecraft.llm.protocols import InferenceResponse, InferFn, TokenUsage
from statecraft.models.config import ControllerConfig
from statecraft.prompts.mutation import build_mutation_prompt
from statecraft.scoring import calculate_confidence, is_destructive_change
from statecraft.storage.protocols import HistoryStore
from statecraft.tokens import HeuristicTokenCounter, TokenCounter
from statecraft.validation.correction import AttemptRecord, execute_with_correction
from statecraft.validation.rollback import RollbackManager, StateSnapshot
from statecraft.validation.schema import ValidationIssue

logger = logging.getLogger(__name__)

T = TypeVar("T")

GateFn = Callable[[Any, Any, float], Union[bool, Awaitable[bool]]]
ChangeCallback = Callable[[Any, Any], None]

_USER_REJECTED_REASON = "Change rejected at confirmation gate"


@dataclass(frozen=True)
class DispatchResult(Generic[T]):
    """Outcome of one dispatch.

    Attributes:
        status: SETTLED or REJECTED for a finished dispatch; for a
            superseded one, the state it had reached when cancelled.
        state: Committed state after the dispatch.
        attempts: Inference calls made.
        confidence: Confidence score of the validated proposal, if any.
        destructive: Whether the proposal was flagged destructive.
        error: Attached failure for REJECTED outcomes (None when the
            change was simply declined at the gate).
        cancelled: True when a newer dispatch superseded this one.
        history: Attempt records from the correction loop.
        usage: Summed token usage over all attempts.
        dispatch_id: Id stamped on this dispatch's audit entries.
    """

    status: LifecycleState
    state: T
    attempts: int = 0
    confidence: float | None = None
    destructive: bool = False
    error: DispatchError | None = None
    cancelled: bool = False
    history: tuple[AttemptRecord, ...] = ()
    usage: TokenUsage | None = None
    dispatch_id: str | None = None

    @property
    def settled(self) -> bool:
        return not self.cancelled and self.status is LifecycleState.SETTLED

    @property
    def rejected(self) -> bool:
        return not self.cancelled and self.status is LifecycleState.REJECTED


@dataclass(frozen=True)
class StateMetadata(Generic[T]):
    """Point-in-time view of a controller for rendering."""

    status: LifecycleState
    error: DispatchError | None
    current_intent: str | None
    retry_count: int
    confidence: float | None
    pending_confirmation: bool
    pending_state: T | None
    optimistic_state: T | None
    history: tuple[AuditEntry, ...]
    available_rollbacks: int


def _error_code_for(exc: BaseException) -> ErrorCode:
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return ErrorCode.INFERENCE_TIMEOUT
    if isinstance(exc, (httpx.TransportError, LLMAuthError, LLMConfigError)):
        return ErrorCode.NETWORK_ERROR
    return ErrorCode.MODEL_ERROR


class SemanticState(Generic[T]):
    """Typed state mutated by natural-language intents.

    Args:
        contract: Structural contract every committed state satisfies.
        initial_state: Starting committed state.
        infer: Async inference capability (``provider.infer`` or any
            ``async (prompt) -> InferenceResponse | str``).
        config: Controller settings; defaults to ControllerConfig().
        gate: Decides gated changes as ``gate(new, old, confidence)``,
            sync or async. Without one, gated dispatches wait for
            confirm_change() or reject_change().
        on_change: Called as ``on_change(new, old)`` after each commit.
        on_rollback: Called as ``on_rollback(discarded, last_good, reason)``
            whenever a dispatch is rejected. Exceptions from either
            callback are logged and never escape dispatch().
        history_store: Optional durable sink for audit entries and
            snapshots.
        token_counter: Estimates usage when the provider reports none.
        state_id: Key for this controller's rows in ``history_store``.
    """

    def __init__(
        self,
        contract: Any,
        initial_state: T,
        infer: InferFn,
        *,
        config: ControllerConfig | None = None,
        gate: GateFn | None = None,
        on_change: ChangeCallback | None = None,
        on_rollback: Callable[[Any, Any, str], None] | None = None,
        history_store: HistoryStore | None = None,
        token_counter: TokenCounter | None = None,
        state_id: str | None = None,
    ) -> None:
        self.contract = contract
        self.config = config or ControllerConfig()
        self.state_id = state_id or f"state_{uuid.uuid4().hex[:12]}"
        if self.config.debug:
            logging.getLogger("statecraft").setLevel(logging.DEBUG)

        self._infer = infer
        self._gate = gate
        self._on_change = on_change
        self._history_store = history_store
        self._token_counter = token_counter or HeuristicTokenCounter()
        self._rollback: RollbackManager[T] = RollbackManager(
            max_snapshots=self.config.max_snapshots,
            on_rollback=on_rollback,
        )

        self._state = initial_state
        self._audit: list[AuditEntry] = []
        self._machine = self._new_machine()
        self._token: CancellationToken | None = None
        self._pending: asyncio.Future | None = None
        self._pending_state: T | None = None
        self._optimistic: T | None = None
        self._error: DispatchError | None = None
        self._current_intent: str | None = None
        self._retry_count = 0
        self._confidence: float | None = None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def state(self) -> T:
        """The committed state."""
        return self._state

    @property
    def status(self) -> LifecycleState:
        return self._machine.state

    @property
    def error(self) -> DispatchError | None:
        """Error of the last rejected dispatch, until the next dispatch or reset()."""
        return self._error

    @property
    def current_intent(self) -> str | None:
        return self._current_intent

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def confidence(self) -> float | None:
        return self._confidence

    @property
    def pending_confirmation(self) -> bool:
        return self._pending_state is not None

    @property
    def pending_state(self) -> T | None:
        return self._pending_state

    @property
    def optimistic_state(self) -> T | None:
        return self._optimistic

    @property
    def history(self) -> list[AuditEntry]:
        """Every accepted transition across all dispatches, oldest first."""
        return list(self._audit)

    @property
    def metadata(self) -> StateMetadata[T]:
        return StateMetadata(
            status=self.status,
            error=self._error,
            current_intent=self._current_intent,
            retry_count=self._retry_count,
            confidence=self._confidence,
            pending_confirmation=self.pending_confirmation,
            pending_state=self._pending_state,
            optimistic_state=self._optimistic,
            history=tuple(self._audit),
            available_rollbacks=self.available_rollbacks,
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, intent: str, *, optimistic_state: T | None = None) -> DispatchResult[T]:
        """Run one intent through the full lifecycle.

        Never raises for validation, transport, or gate failures; those
        come back as a REJECTED result with ``error`` attached. A
        superseded dispatch returns a result with ``cancelled=True``.

        Args:
            intent: Natural-language description of the change.
            optimistic_state: Value to expose through ``optimistic_state``
                while inference runs. Discarded if the dispatch is
                rejected.
        """
        self._abandon_dispatch()
        token = CancellationToken()
        self._token = token
        machine = self._new_machine(token.dispatch_id)
        self._machine = machine
        self._current_intent = intent

        previous = self._state
        self._rollback.snapshot(previous, intent)
        self._persist_snapshot()

        if optimistic_state is not None:
            machine.send(LifecycleEvent.DISPATCH, {"intent": intent})
            self._optimistic = optimistic_state
            machine.send(LifecycleEvent.START_INFERENCE)
        else:
            machine.send(LifecycleEvent.DISPATCH_NO_OPTIMISTIC, {"intent": intent})

        prompt = build_mutation_prompt(self.contract, previous, intent, self.config.context)
        try:
            return await self._run(machine, token, prompt, intent, previous)
        except DispatchCancelledError:
            logger.debug("Dispatch %s superseded; result discarded", token.dispatch_id)
            return DispatchResult(
                status=machine.state,
                state=self._state,
                cancelled=True,
                dispatch_id=token.dispatch_id,
            )
        finally:
            if self._token is token:
                self._token = None

    async def _run(
        self,
        machine: LifecycleMachine,
        token: CancellationToken,
        prompt: str,
        intent: str,
        previous: T,
    ) -> DispatchResult[T]:
        calls = 0

        async def attempt(prompt_text: str) -> InferenceResponse:
            nonlocal calls
            calls += 1
            try:
                raw = await self._infer(prompt_text)
                token.raise_if_cancelled()
                response = InferenceResponse.coerce(raw)
            except DispatchCancelledError:
                raise
            except Exception as exc:
                token.raise_if_cancelled()
                logger.info("Inference failed for dispatch %s: %s", token.dispatch_id, exc)
                machine.send(LifecycleEvent.ERROR, {"error": str(exc)})
                raise InferenceError(exc, code=_error_code_for(exc)) from exc
            if response.usage is None:
                response = replace(response, usage=self._estimate_usage(prompt_text, response.content))
            machine.send(LifecycleEvent.RESPONSE_RECEIVED, {"attempt": calls})
            return response

        def on_retry(attempt_number: int, errors: tuple[ValidationIssue, ...]) -> None:
            machine.send(LifecycleEvent.INVALID, {"attempt": attempt_number, "errors": len(errors)})
            self._retry_count = attempt_number
            machine.send(LifecycleEvent.RETRY, {"attempt": attempt_number + 1})

        try:
            result = await execute_with_correction(
                prompt,
                self.contract,
                attempt,
                max_retries=self.config.max_retries,
                on_retry=on_retry,
                cancel_token=token,
            )
        except InferenceError as error:
            return self._reject(machine, token, error, str(error), attempts=calls)

        history = result.history
        usage = result.total_usage
        if not result.success:
            machine.send(LifecycleEvent.INVALID, {"attempt": result.attempts, "errors": len(result.last_errors)})
            machine.send(LifecycleEvent.MAX_RETRIES, {"attempts": result.attempts})
            error = ValidationFailedError(result.attempts, history)
            return self._reject(
                machine, token, error, str(error),
                attempts=result.attempts, history=history, usage=usage,
            )

        machine.send(LifecycleEvent.VALID, {"attempts": result.attempts})
        proposed = result.data
        confidence = calculate_confidence(previous, proposed, intent, self.config.model_confidence)
        destructive = is_destructive_change(previous, proposed)
        self._confidence = confidence
        outcome = {
            "attempts": result.attempts,
            "history": history,
            "usage": usage,
            "confidence": confidence,
            "destructive": destructive,
        }

        if confidence < self.config.confidence_threshold or destructive:
            machine.send(
                LifecycleEvent.NEEDS_CONFIRMATION,
                {"confidence": confidence, "destructive": destructive},
            )
            self._pending_state = proposed
            try:
                approved = await self._await_decision(proposed, previous, confidence, token)
            except DispatchCancelledError:
                raise
            except Exception as exc:
                self._pending_state = None
                logger.warning("Confirmation gate raised: %s", exc)
                machine.send(LifecycleEvent.USER_REJECTED, {"error": str(exc)})
                return self._reject(machine, token, GateError(exc), str(exc), **outcome)
            self._pending_state = None
            if not approved:
                machine.send(LifecycleEvent.USER_REJECTED)
                return self._reject(machine, token, None, _USER_REJECTED_REASON, **outcome)
            machine.send(LifecycleEvent.USER_CONFIRMED)
        else:
            machine.send(LifecycleEvent.CONFIDENT, {"confidence": confidence})

        return self._settle(machine, token, proposed, previous, **outcome)

    async def _await_decision(
        self,
        proposed: T,
        previous: T,
        confidence: float,
        token: CancellationToken,
    ) -> bool:
        if self._gate is not None:
            try:
                decision = self._gate(proposed, previous, confidence)
                if inspect.isawaitable(decision):
                    decision = await decision
            except Exception:
                token.raise_if_cancelled()
                raise
            token.raise_if_cancelled()
            return bool(decision)

        future = asyncio.get_running_loop().create_future()
        self._pending = future
        try:
            approved = await future
        finally:
            if self._pending is future:
                self._pending = None
        token.raise_if_cancelled()
        return approved

    def _settle(
        self,
        machine: LifecycleMachine,
        token: CancellationToken,
        proposed: T,
        previous: T,
        **outcome: Any,
    ) -> DispatchResult[T]:
        self._state = proposed
        self._optimistic = None
        machine.send(LifecycleEvent.RESET)
        result = DispatchResult(
            status=LifecycleState.SETTLED,
            state=proposed,
            dispatch_id=token.dispatch_id,
            **outcome,
        )
        self._notify_change(proposed, previous)
        return result

    def _reject(
        self,
        machine: LifecycleMachine,
        token: CancellationToken,
        error: DispatchError | None,
        reason: str,
        **outcome: Any,
    ) -> DispatchResult[T]:
        self._error = error
        discarded = self._optimistic if self._optimistic is not None else self._state
        self._optimistic = None
        last_good = self._rollback.get_last_good_state()
        if last_good is not None:
            self._state = last_good
        machine.send(LifecycleEvent.RESET)
        result = DispatchResult(
            status=LifecycleState.REJECTED,
            state=self._state,
            error=error,
            dispatch_id=token.dispatch_id,
            **outcome,
        )
        try:
            self._rollback.auto_rollback(discarded, reason)
        except Exception:
            logger.exception("on_rollback callback failed for dispatch %s", token.dispatch_id)
        return result

    # ------------------------------------------------------------------
    # Manual confirmation
    # ------------------------------------------------------------------

    def confirm_change(self) -> bool:
        """Approve the pending gated change. False if nothing is pending."""
        return self._resolve_pending(True)

    def reject_change(self) -> bool:
        """Decline the pending gated change. False if nothing is pending."""
        return self._resolve_pending(False)

    def _resolve_pending(self, approved: bool) -> bool:
        future = self._pending
        if future is None or future.done():
            return False
        future.set_result(approved)
        self._pending = None
        return True

    # ------------------------------------------------------------------
    # Reset and administration
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Abandon any in-flight dispatch and return to IDLE.

        The committed state, snapshots, and audit history are kept.
        """
        self._abandon_dispatch()
        self._machine = self._new_machine()
        self._current_intent = None

    @property
    def available_rollbacks(self) -> int:
        return self._rollback.available_rollbacks

    def snapshots(self) -> list[StateSnapshot[T]]:
        return self._rollback.history()

    def rollback_to(self, snapshot_id: str) -> T | None:
        """Restore and commit the snapshot ``snapshot_id``.

        Returns the restored state, or None if the id is unknown (in
        which case nothing changes).
        """
        restored = self._rollback.rollback_to(snapshot_id)
        if restored is None:
            return None
        self._commit_restored(restored)
        return restored

    def rollback_steps(self, steps: int) -> T | None:
        """Restore and commit the snapshot ``steps`` back from the newest."""
        restored = self._rollback.rollback_steps(steps)
        if restored is None:
            return None
        self._commit_restored(restored)
        return restored

    def clear_history(self) -> None:
        """Drop all rollback snapshots. The audit log is append-only and kept."""
        self._rollback.clear()

    def _commit_restored(self, restored: T) -> None:
        self.reset()
        previous = self._state
        self._state = restored
        self._notify_change(restored, previous)

    def _notify_change(self, new: T, old: T) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(new, old)
        except Exception:
            logger.exception("on_change callback failed for %s", self.state_id)

    def _abandon_dispatch(self) -> None:
        if self._token is not None and not self._token.cancelled:
            logger.debug("Cancelling in-flight dispatch %s", self._token.dispatch_id)
            self._token.cancel()
        self._token = None
        self._resolve_pending(False)
        self._pending_state = None
        self._optimistic = None
        self._error = None
        self._retry_count = 0
        self._confidence = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_machine(self, dispatch_id: str | None = None) -> LifecycleMachine:
        return LifecycleMachine(dispatch_id=dispatch_id, listener=self._record)

    def _record(self, entry: AuditEntry) -> None:
        self._audit.append(entry)
        if self._history_store is not None:
            self._history_store.record_transition(self.state_id, entry)

    def _persist_snapshot(self) -> None:
        if self._history_store is None:
            return
        snapshot = self._rollback.latest_snapshot()
        if snapshot is not None:
            self._history_store.record_snapshot(self.state_id, snapshot)

    def _estimate_usage(self, prompt: str, content: str) -> TokenUsage:
        prompt_tokens = self._token_counter.count_text(prompt)
        completion_tokens = self._token_counter.count_text(content)
        return TokenUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            source="estimate",
        )
