"""Tests for the self-correction loop."""

from __future__ import annotations

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from statecraft.cancellation import CancellationToken
from statecraft.exceptions import DispatchCancelledError
from statecraft.llm.protocols import InferenceResponse, TokenUsage
from statecraft.validation.correction import (
    CorrectionResult,
    execute_with_correction,
    make_correction_executor,
)
from tests.support import ScriptedInfer, Todo, TodoList, todo_json

VALID = todo_json(("1", "milk", False))
MISSING_DONE = '{"items":[{"id":"1","text":"milk"}]}'


def run(coro):
    return asyncio.run(coro)


class TestExecuteWithCorrection:

    def test_first_attempt_valid(self):
        infer = ScriptedInfer(VALID)
        result = run(execute_with_correction("PROMPT", TodoList, infer))
        assert result.success
        assert result.attempts == 1
        assert infer.calls == 1
        assert result.data == TodoList(items=[Todo(id="1", text="milk", done=False)])
        assert result.history[0].prompt_used == "PROMPT"
        assert result.last_errors == ()

    def test_retry_then_success_stops_calling(self):
        infer = ScriptedInfer(MISSING_DONE, VALID, VALID)
        result = run(execute_with_correction("PROMPT", TodoList, infer, max_retries=5))
        assert result.success
        assert result.attempts == 2
        assert infer.calls == 2
        assert not result.history[0].valid
        assert result.history[1].valid

    def test_correction_prompt_built_from_original(self):
        infer = ScriptedInfer("nope", "still nope", VALID)
        run(execute_with_correction("ORIGINAL PROMPT", TodoList, infer))
        for prompt in infer.prompts[1:]:
            assert prompt.endswith("ORIGINAL REQUEST:\nORIGINAL PROMPT")
            assert prompt.count("ORIGINAL REQUEST:") == 1
        assert "PREVIOUS RESPONSE:\nstill nope" in infer.prompts[2]

    def test_exhaustion(self):
        infer = ScriptedInfer("not json")
        result = run(execute_with_correction("P", TodoList, infer, max_retries=3))
        assert not result.success
        assert result.data is None
        assert result.attempts == 3
        assert infer.calls == 3
        assert len(result.history) == 3

    @settings(max_examples=25, deadline=None)
    @given(st.integers(min_value=1, max_value=6))
    def test_never_exceeds_ceiling(self, max_retries):
        infer = ScriptedInfer("{}")
        result = run(execute_with_correction("P", TodoList, infer, max_retries=max_retries))
        assert infer.calls == max_retries
        assert result.attempts == max_retries

    def test_on_retry_called_between_attempts(self):
        seen = []
        infer = ScriptedInfer("x", "y", "z")
        run(execute_with_correction(
            "P", TodoList, infer, max_retries=3,
            on_retry=lambda attempt, errors: seen.append((attempt, len(errors))),
        ))
        assert seen == [(1, 1), (2, 1)]

    def test_invalid_max_retries(self):
        with pytest.raises(ValueError):
            run(execute_with_correction("P", TodoList, ScriptedInfer(VALID), max_retries=0))

    def test_transport_error_propagates(self):
        infer = ScriptedInfer(ConnectionError("down"))
        with pytest.raises(ConnectionError):
            run(execute_with_correction("P", TodoList, infer))
        assert infer.calls == 1

    def test_cancelled_token_raises(self):
        token = CancellationToken("d1")
        token.cancel()
        with pytest.raises(DispatchCancelledError) as exc_info:
            run(execute_with_correction("P", TodoList, ScriptedInfer(VALID), cancel_token=token))
        assert exc_info.value.dispatch_id == "d1"

    def test_accepts_response_objects_and_dicts(self):
        usage = TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)
        infer = ScriptedInfer(
            InferenceResponse(content="bad", usage=usage),
            {"content": VALID, "usage": {"prompt_tokens": 20, "completion_tokens": 8}},
        )
        result = run(execute_with_correction("P", TodoList, infer))
        assert result.success
        assert result.total_usage == TokenUsage(prompt_tokens=30, completion_tokens=13, total_tokens=43)

    def test_total_usage_none_without_reports(self):
        result = run(execute_with_correction("P", TodoList, ScriptedInfer(VALID)))
        assert result.total_usage is None


def test_make_correction_executor_defaults_and_overrides():
    executor = make_correction_executor(max_retries=2)
    infer = ScriptedInfer("bad")
    result = run(executor("P", TodoList, infer))
    assert isinstance(result, CorrectionResult)
    assert infer.calls == 2

    infer = ScriptedInfer("bad")
    run(executor("P", TodoList, infer, max_retries=4))
    assert infer.calls == 4
