"""State mutation prompts.

Renders a structural contract, the current state, and an intent into a
single prompt, plus the corrective follow-up used when a response fails
validation. All builders are deterministic for a given input.
"""

from __future__ import annotations

import enum
import json
import types
import typing
from typing import TYPE_CHECKING, Any, Literal, Union

from pydantic import BaseModel
from pydantic_core import to_jsonable_python
from typing_extensions import is_typeddict

if TYPE_CHECKING:
    from statecraft.validation.schema import ValidationIssue

MUTATION_INSTRUCTIONS: str = """INSTRUCTIONS:
1. Analyze the USER INTENT and determine what changes to make to CURRENT STATE.
2. Apply the changes while maintaining the schema structure.
3. Preserve existing data unless the intent explicitly requires removing it.
4. Generate new unique IDs for new items (use format: "id_" + random alphanumeric).
5. Output ONLY the new complete state as valid JSON.
6. Do NOT include any explanation, markdown, or extra text."""

_MAX_PREVIOUS_RESPONSE_CHARS = 500

_PRIMITIVES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    type(None): "null",
    Any: "any",
    object: "any",
}

_SEQUENCES = (list, tuple, set, frozenset)


def _object_body(fields: list[tuple[str, str]], indent: int) -> str:
    spaces = "  " * indent
    lines = [f"{spaces}  {name}: {rendered}" for name, rendered in fields]
    return "{\n" + ",\n".join(lines) + f"\n{spaces}}}"


def _is_alternation(annotation: Any) -> bool:
    """True when ``annotation`` renders as ``A | B`` at the top level."""
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return len(annotation) > 1
    origin = typing.get_origin(annotation)
    if origin is typing.Annotated:
        return _is_alternation(typing.get_args(annotation)[0])
    if origin is Literal or origin is Union or origin is types.UnionType:
        return len(typing.get_args(annotation)) > 1
    return False


def _describe_model(model: type[BaseModel], indent: int) -> str:
    fields = []
    for name, info in model.model_fields.items():
        key = info.alias or name
        rendered = _describe(info.annotation, indent + 1)
        if not info.is_required():
            rendered = f"{rendered} | undefined"
        if info.description:
            rendered = f"{rendered} // {info.description}"
        fields.append((key, rendered))
    return _object_body(fields, indent)


def _describe_typeddict(td: type, indent: int) -> str:
    hints = typing.get_type_hints(td)
    required = getattr(td, "__required_keys__", frozenset(hints))
    fields = []
    for name, annotation in hints.items():
        rendered = _describe(annotation, indent + 1)
        if name not in required:
            rendered = f"{rendered} | undefined"
        fields.append((name, rendered))
    return _object_body(fields, indent)


def _describe(annotation: Any, indent: int) -> str:
    if (annotation is Any or isinstance(annotation, type)) and annotation in _PRIMITIVES:
        return _PRIMITIVES[annotation]
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return _describe_model(annotation, indent)
    if is_typeddict(annotation):
        return _describe_typeddict(annotation, indent)
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return " | ".join(json.dumps(member.value) for member in annotation)

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)

    if origin is typing.Annotated:
        return _describe(args[0], indent)
    if origin is Literal:
        return " | ".join(json.dumps(value) for value in args)
    if origin is Union or origin is types.UnionType:
        return " | ".join(_describe(arg, indent) for arg in args)
    if origin in _SEQUENCES or annotation in _SEQUENCES:
        if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
            args = args[:1]
        if origin is tuple and len(args) > 1:
            return "[" + ", ".join(_describe(arg, indent) for arg in args) + "]"
        if not args:
            return "any[]"
        item = _describe(args[0], indent)
        if _is_alternation(args[0]):
            item = f"({item})"
        return f"{item}[]"
    if origin is dict or annotation is dict:
        key = _describe(args[0], indent) if args else "string"
        value = _describe(args[1], indent) if len(args) > 1 else "any"
        return f"Record<{key}, {value}>"
    return "unknown"


def describe_contract(contract: Any) -> str:
    """Render a contract as a compact, TypeScript-like type description.

    Objects render as braces with indented ``name: type`` fields in
    declaration order, arrays as ``T[]``, unions as ``A | B``, and
    enumerations as quoted literal alternation. Depends on ``contract``
    only, so the output is stable across calls.
    """
    return _describe(contract, 0)


def _state_json(state: Any) -> str:
    return json.dumps(to_jsonable_python(state), indent=2)


def build_mutation_prompt(
    contract: Any,
    current_state: Any,
    intent: str,
    context: str = "",
) -> str:
    """Assemble the mutation prompt.

    Sections, in fixed order: SYSTEM, optional CONTEXT, SCHEMA,
    CURRENT STATE, USER INTENT, INSTRUCTIONS (``MUTATION_INSTRUCTIONS``),
    OUTPUT.
    """
    context_section = f"\nCONTEXT:\n{context}\n" if context else ""
    return (
        "SYSTEM:\n"
        "You are a state manager for an application.\n"
        "You must output valid JSON that matches the following schema.\n"
        f"{context_section}"
        "\nSCHEMA:\n"
        f"{describe_contract(contract)}\n"
        "\nCURRENT STATE:\n"
        f"{_state_json(current_state)}\n"
        "\nUSER INTENT:\n"
        f'"{intent}"\n'
        "\n"
        f"{MUTATION_INSTRUCTIONS}\n"
        "\nOUTPUT:"
    )


def build_correction_prompt(
    original_prompt: str,
    invalid_response: str,
    errors: list[ValidationIssue] | tuple[ValidationIssue, ...],
) -> str:
    """Wrap the original request with the rejected response and its errors.

    The previous response is cut to 500 characters (``...`` marks the cut).
    """
    from statecraft.validation.schema import format_errors_for_correction

    previous = invalid_response[:_MAX_PREVIOUS_RESPONSE_CHARS]
    if len(invalid_response) > _MAX_PREVIOUS_RESPONSE_CHARS:
        previous += "..."
    return (
        "Your previous response was invalid JSON or did not match the required schema.\n"
        "\nPREVIOUS RESPONSE:\n"
        f"{previous}\n"
        "\nVALIDATION ERRORS:\n"
        f"{format_errors_for_correction(errors)}\n"
        "\nPlease fix your response. Output ONLY valid JSON that matches the schema.\n"
        "Do not include any explanation or markdown formatting.\n"
        "Just output the corrected JSON.\n"
        "\nORIGINAL REQUEST:\n"
        f"{original_prompt}"
    )


def build_inference_prompt(task: str, input_text: str, output_format: str = "text") -> str:
    """Minimal prompt for a one-off inference task."""
    return (
        f"TASK: {task}\n"
        "\nINPUT:\n"
        f"{input_text}\n"
        f"\nOUTPUT FORMAT: {output_format}\n"
        "\nRespond with ONLY the result, no explanation."
    )
