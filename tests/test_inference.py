"""Tests for the one-off run_inference helper."""

from __future__ import annotations

import asyncio

import pytest

from statecraft.cache import InferenceCache
from statecraft.exceptions import ErrorCode, ValidationFailedError
from statecraft.inference import run_inference
from tests.support import ScriptedInfer, TodoList


def test_plain_text_result():
    infer = ScriptedInfer("A short summary.")
    result = asyncio.run(run_inference(infer, task="Summarize", input_text="long text"))
    assert result == "A short summary."
    assert infer.prompts[0].startswith("TASK: Summarize")
    assert "OUTPUT FORMAT: text" in infer.prompts[0]


def test_contract_result_validated():
    infer = ScriptedInfer('```json\n{"items": []}\n```')
    result = asyncio.run(run_inference(infer, task="Parse", input_text="nothing", contract=TodoList))
    assert result == TodoList(items=[])
    assert "OUTPUT FORMAT: json" in infer.prompts[0]


def test_contract_failure_raises():
    infer = ScriptedInfer("no json here")
    with pytest.raises(ValidationFailedError) as exc_info:
        asyncio.run(run_inference(infer, task="Parse", input_text="x", contract=TodoList))
    error = exc_info.value
    assert error.code is ErrorCode.VALIDATION_FAILED
    assert error.attempts == 1
    assert error.debug_info["response"] == "no json here"


def test_cache_hit_skips_inference():
    cache = InferenceCache()
    infer = ScriptedInfer("first", "second")

    async def twice():
        a = await run_inference(infer, task="t", input_text="i", cache=cache, cache_key="k")
        b = await run_inference(infer, task="t", input_text="i", cache=cache, cache_key="k")
        return a, b

    assert asyncio.run(twice()) == ("first", "first")
    assert infer.calls == 1


def test_no_cache_key_means_no_caching():
    cache = InferenceCache()
    infer = ScriptedInfer("first", "second")
    asyncio.run(run_inference(infer, task="t", input_text="i", cache=cache))
    assert len(cache) == 0


def test_failed_validation_not_cached():
    cache = InferenceCache()
    infer = ScriptedInfer("bad", '{"items": []}')
    with pytest.raises(ValidationFailedError):
        asyncio.run(run_inference(infer, task="t", input_text="i", contract=TodoList, cache=cache, cache_key="k"))
    assert "k" not in cache
