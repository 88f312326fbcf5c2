"""Schema validation: the firewall between raw model text and state.

Extracts a JSON payload from free-form model output and checks it
against a structural contract (a pydantic model or any type a pydantic
TypeAdapter accepts). Malformed input never raises; every failure comes
back as a ValidationResult with populated ``errors``.
"""

from __future__ import annotations

import functools
import json
import re
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import from_json

T = TypeVar("T")

NO_PAYLOAD_MESSAGE = "No structured payload found in response"

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_OPENING_RE = re.compile(r"[\[{]")
_RECEIVED_LIMIT = 100

# pydantic error type -> human description of the violated constraint
_EXPECTED_BY_TYPE: dict[str, str] = {
    "missing": "required field",
    "string_type": "string",
    "int_type": "integer",
    "int_from_float": "integer",
    "float_type": "number",
    "bool_type": "boolean",
    "list_type": "array",
    "tuple_type": "array",
    "set_type": "array",
    "dict_type": "object",
    "model_type": "object",
    "model_attributes_type": "object",
    "dataclass_type": "object",
    "none_required": "null",
    "extra_forbidden": "no additional fields",
    "enum": "one of the allowed values",
    "literal_error": "one of the allowed values",
}


@dataclass(frozen=True)
class ValidationIssue:
    """A single structural mismatch.

    Named ValidationIssue (not ValidationError) to avoid collision with
    pydantic.ValidationError.

    Attributes:
        path: Dotted field path ("" for the document root).
        message: What went wrong.
        expected: The violated constraint.
        received: The offending value, truncated when large.
    """

    path: str
    message: str
    expected: str
    received: Any = None

    def __str__(self) -> str:
        where = f"{self.path}: " if self.path else ""
        return f"{where}{self.message}"


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    """Outcome of validating one model response.

    Attributes:
        success: Whether the payload matched the contract.
        data: The validated value, or None on failure.
        errors: Every mismatch found (empty on success).
        raw_json: The JSON text that was validated ("" if none).
    """

    success: bool
    data: T | None = None
    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    raw_json: str = ""

    def __repr__(self) -> str:
        status = "passed" if self.success else f"failed, {len(self.errors)} issue(s)"
        return f"ValidationResult({status})"


def extract_structured_payload(response_text: str) -> str:
    """Locate a JSON object/array inside arbitrary model text.

    Content of a fenced code block wins when present. Otherwise the
    substring from the first ``[``/``{`` to the last ``]``/``}`` is taken.

    Returns:
        The candidate JSON text, or "" if no plausible boundary exists.
    """
    if not isinstance(response_text, str) or not response_text:
        return ""

    text = response_text.strip()
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    opening = _OPENING_RE.search(text)
    end = max(text.rfind("]"), text.rfind("}"))
    if opening is not None and end > opening.start():
        return text[opening.start():end + 1]
    return ""


@functools.lru_cache(maxsize=128)
def contract_adapter(contract: Any) -> TypeAdapter:
    """Build (once per contract) the pydantic validator for ``contract``."""
    return TypeAdapter(contract)


def _truncate(value: Any) -> Any:
    try:
        text = json.dumps(value, default=str)
    except (TypeError, ValueError):
        text = repr(value)
    if len(text) <= _RECEIVED_LIMIT:
        return value
    return text[:_RECEIVED_LIMIT] + "..."


def _expected_for(error: dict) -> str:
    ctx = error.get("ctx") or {}
    if "expected" in ctx:
        return str(ctx["expected"])
    if error["type"] in _EXPECTED_BY_TYPE:
        return _EXPECTED_BY_TYPE[error["type"]]
    for key, symbol in (("gt", ">"), ("ge", ">="), ("lt", "<"), ("le", "<=")):
        if key in ctx:
            return f"{symbol} {ctx[key]}"
    if "min_length" in ctx:
        return f"length >= {ctx['min_length']}"
    if "max_length" in ctx:
        return f"length <= {ctx['max_length']}"
    if "pattern" in ctx:
        return f"match {ctx['pattern']}"
    return "valid value"


def _issues_from(exc: PydanticValidationError) -> tuple[ValidationIssue, ...]:
    issues = []
    for error in exc.errors(include_url=False):
        missing = error["type"] == "missing"
        issues.append(ValidationIssue(
            path=".".join(str(part) for part in error["loc"]),
            message=error["msg"],
            expected=_expected_for(error),
            received=None if missing else _truncate(error.get("input")),
        ))
    return tuple(issues)


def _no_payload(received: Any) -> ValidationResult:
    return ValidationResult(
        success=False,
        errors=(ValidationIssue(
            path="",
            message=NO_PAYLOAD_MESSAGE,
            expected="JSON object or array",
            received=received,
        ),),
    )


def validate_against_contract(contract: Any, candidate_text: str) -> ValidationResult:
    """Parse ``candidate_text`` and check it against ``contract``.

    Validation is strict: no implicit coercion (``"1"`` is not an
    integer, ``"true"`` is not a boolean).

    Returns:
        ValidationResult. A parse failure yields exactly one issue
        describing the parse problem; an empty candidate yields exactly
        one "no structured payload" issue.
    """
    if not candidate_text:
        return _no_payload("")

    # from_json caps nesting depth; overly deep input fails as ValueError.
    try:
        parsed = from_json(candidate_text)
    except ValueError as exc:
        return ValidationResult(
            success=False,
            errors=(ValidationIssue(
                path="",
                message=f"JSON parse error: {exc}",
                expected="valid JSON",
                received=_truncate(candidate_text),
            ),),
            raw_json=candidate_text,
        )

    raw_json = json.dumps(parsed)
    try:
        data = contract_adapter(contract).validate_json(candidate_text, strict=True)
    except PydanticValidationError as exc:
        return ValidationResult(success=False, errors=_issues_from(exc), raw_json=raw_json)
    return ValidationResult(success=True, data=data, raw_json=raw_json)


def validate_response(response_text: str, contract: Any) -> ValidationResult:
    """Full pipeline: extract the payload from model text, then validate."""
    candidate = extract_structured_payload(response_text)
    if not candidate:
        excerpt = response_text[:_RECEIVED_LIMIT] if isinstance(response_text, str) else response_text
        return _no_payload(excerpt)
    return validate_against_contract(contract, candidate)


def format_errors_for_correction(errors: list[ValidationIssue] | tuple[ValidationIssue, ...]) -> str:
    """Render issues as a compact bullet list for a follow-up prompt.

    Returns "" for an empty list.
    """
    if not errors:
        return ""

    lines = []
    for err in errors:
        if err.path:
            received = json.dumps(err.received, default=str)
            lines.append(
                f'- Field "{err.path}": {err.message}. '
                f"Expected: {err.expected}, got: {received}"
            )
        else:
            lines.append(f"- {err.message}")
    return "The following validation errors occurred:\n" + "\n".join(lines)
