"""Contracts and scripted inference helpers shared by the test modules."""

from __future__ import annotations

import asyncio
import json
from typing import Any

from pydantic import BaseModel


class Todo(BaseModel):
    id: str
    text: str
    done: bool


class TodoList(BaseModel):
    items: list[Todo]


def todo_json(*todos: tuple[str, str, bool]) -> str:
    """Compact JSON for a TodoList with the given (id, text, done) items."""
    return json.dumps({"items": [{"id": i, "text": t, "done": d} for i, t, d in todos]})


class ScriptedInfer:
    """Async inference callable returning scripted responses in order.

    The last response repeats once the script runs out. Exceptions in
    the script are raised instead of returned. Every prompt is
    recorded in ``prompts``.
    """

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def __call__(self, prompt: str) -> Any:
        self.prompts.append(prompt)
        index = min(len(self.prompts), len(self.responses)) - 1
        item = self.responses[index]
        if isinstance(item, BaseException):
            raise item
        return item


class GatedInfer:
    """Inference callable that blocks until the test releases it.

    ``release(text)`` resolves the oldest pending call with ``text``;
    ``index`` picks a later one.
    """

    def __init__(self) -> None:
        self.prompts: list[str] = []
        self._waiters: list[asyncio.Future] = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        future = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        return await future

    def release(self, text: str, index: int = 0) -> None:
        self._waiters.pop(index).set_result(text)


async def settle_loop(rounds: int = 5) -> None:
    """Let pending callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


