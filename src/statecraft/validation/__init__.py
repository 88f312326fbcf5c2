"""Validation, self-correction, and rollback."""

from statecraft.validation.correction import (
    AttemptRecord,
    CorrectionResult,
    execute_with_correction,
    make_correction_executor,
)
from statecraft.validation.rollback import RollbackManager, StateSnapshot
from statecraft.validation.schema import (
    NO_PAYLOAD_MESSAGE,
    ValidationIssue,
    ValidationResult,
    extract_structured_payload,
    format_errors_for_correction,
    validate_against_contract,
    validate_response,
)

__all__ = [
    "AttemptRecord",
    "CorrectionResult",
    "execute_with_correction",
    "make_correction_executor",
    "RollbackManager",
    "StateSnapshot",
    "NO_PAYLOAD_MESSAGE",
    "ValidationIssue",
    "ValidationResult",
    "extract_structured_payload",
    "format_errors_for_correction",
    "validate_against_contract",
    "validate_response",
]
