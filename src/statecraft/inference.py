"""One-off structured inference outside the state lifecycle."""

from __future__ import annotations

import logging
from typing import Any

from statecraft.cache import InferenceCache
from statecraft.exceptions import ValidationFailedError
from statecraft.llm.protocols import InferenceResponse, InferFn
from statecraft.prompts.mutation import build_inference_prompt
from statecraft.validation.correction import AttemptRecord
from statecraft.validation.schema import validate_response

logger = logging.getLogger(__name__)


async def run_inference(
    infer: InferFn,
    *,
    task: str,
    input_text: str,
    contract: Any = None,
    output_format: str = "text",
    cache: InferenceCache | None = None,
    cache_key: str | None = None,
) -> Any:
    """Run a single task prompt and return its (optionally validated) result.

    Without a contract the raw response text is returned. With one, the
    response is validated and the parsed value returned; there is no
    correction loop here.

    When both ``cache`` and ``cache_key`` are given, a cached result is
    returned without calling ``infer``, and fresh results are stored.

    Raises:
        ValidationFailedError: If the response does not match ``contract``.
    """
    if cache is not None and cache_key is not None and cache_key in cache:
        logger.debug("Using cached inference for %s", cache_key)
        return cache.get(cache_key)

    if contract is not None and output_format == "text":
        output_format = "json"
    prompt = build_inference_prompt(task, input_text, output_format)
    response = InferenceResponse.coerce(await infer(prompt))

    if contract is None:
        result: Any = response.content
    else:
        validation = validate_response(response.content, contract)
        if not validation.success:
            record = AttemptRecord(
                raw_response=response.content,
                errors=validation.errors,
                prompt_used=prompt,
                usage=response.usage,
            )
            raise ValidationFailedError(1, (record,))
        result = validation.data

    if cache is not None and cache_key is not None:
        cache.put(cache_key, result)
    return result
