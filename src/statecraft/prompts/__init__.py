"""Prompt compilation for state mutation and one-off inference."""

from statecraft.prompts.mutation import (
    MUTATION_INSTRUCTIONS,
    build_correction_prompt,
    build_inference_prompt,
    build_mutation_prompt,
    describe_contract,
)

__all__ = [
    "MUTATION_INSTRUCTIONS",
    "build_correction_prompt",
    "build_inference_prompt",
    "build_mutation_prompt",
    "describe_contract",
]
