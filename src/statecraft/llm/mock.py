"""Mock provider for tests and offline demos."""

from __future__ import annotations

from statecraft.llm.protocols import InferenceResponse
from statecraft.models.config import InferenceOptions


class MockProvider:
    """Returns canned responses chosen by keyword match on the prompt.

    The first key (in insertion order) found case-insensitively in the
    prompt wins. Falls back to ``responses["default"]``, then to
    ``default``. Every prompt is recorded in ``calls``.
    """

    name = "mock"

    def __init__(self, responses: dict[str, str] | None = None, default: str = "{}") -> None:
        self._responses = dict(responses or {})
        self._default = self._responses.pop("default", default)
        self.calls: list[str] = []

    async def infer(
        self,
        prompt: str,
        options: InferenceOptions | None = None,
    ) -> InferenceResponse:
        self.calls.append(prompt)
        lowered = prompt.lower()
        for key, value in self._responses.items():
            if key.lower() in lowered:
                return InferenceResponse(content=value)
        return InferenceResponse(content=self._default)

    async def aclose(self) -> None:
        pass
