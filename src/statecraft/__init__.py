"""Statecraft: typed application state mutated by natural-language intents.

An intent goes to an LLM, the proposed state is validated against a
structural contract (with self-correction), scored, gated when risky,
and committed or rolled back.
"""

from statecraft._version import __version__

# Core entry point
from statecraft.controller import DispatchResult, SemanticState, StateMetadata

# Lifecycle
from statecraft.lifecycle import (
    TRANSITIONS,
    AuditEntry,
    LifecycleEvent,
    LifecycleMachine,
    LifecycleState,
    create_audit_entry,
    get_next_state,
)

# Validation, correction and rollback
from statecraft.validation import (
    AttemptRecord,
    CorrectionResult,
    RollbackManager,
    StateSnapshot,
    ValidationIssue,
    ValidationResult,
    execute_with_correction,
    extract_structured_payload,
    format_errors_for_correction,
    make_correction_executor,
    validate_against_contract,
    validate_response,
)

# Prompts and scoring
from statecraft.prompts import (
    MUTATION_INSTRUCTIONS,
    build_correction_prompt,
    build_inference_prompt,
    build_mutation_prompt,
    describe_contract,
)
from statecraft.scoring import calculate_confidence, is_destructive_change

# Configuration
from statecraft.models.config import ControllerConfig, InferenceOptions, ProviderConfig

# Inference capability
from statecraft.llm import (
    InferenceProvider,
    InferenceResponse,
    MockProvider,
    OpenAICompatibleProvider,
    TokenUsage,
    available_providers,
    create_provider,
    register_provider,
)
from statecraft.cache import InferenceCache
from statecraft.inference import run_inference
from statecraft.cancellation import CancellationToken
from statecraft.tokens import HeuristicTokenCounter, TiktokenCounter, TokenCounter

# Exceptions
from statecraft.exceptions import (
    DispatchCancelledError,
    DispatchError,
    ErrorCode,
    GateError,
    InferenceError,
    ProviderNotFoundError,
    StatecraftError,
    ValidationFailedError,
)

__all__ = [
    "__version__",
    # Core
    "SemanticState",
    "DispatchResult",
    "StateMetadata",
    # Lifecycle
    "TRANSITIONS",
    "AuditEntry",
    "LifecycleEvent",
    "LifecycleMachine",
    "LifecycleState",
    "create_audit_entry",
    "get_next_state",
    # Validation
    "AttemptRecord",
    "CorrectionResult",
    "RollbackManager",
    "StateSnapshot",
    "ValidationIssue",
    "ValidationResult",
    "execute_with_correction",
    "extract_structured_payload",
    "format_errors_for_correction",
    "make_correction_executor",
    "validate_against_contract",
    "validate_response",
    # Prompts and scoring
    "MUTATION_INSTRUCTIONS",
    "build_correction_prompt",
    "build_inference_prompt",
    "build_mutation_prompt",
    "describe_contract",
    "calculate_confidence",
    "is_destructive_change",
    # Configuration
    "ControllerConfig",
    "InferenceOptions",
    "ProviderConfig",
    # Inference
    "InferenceProvider",
    "InferenceResponse",
    "MockProvider",
    "OpenAICompatibleProvider",
    "TokenUsage",
    "available_providers",
    "create_provider",
    "register_provider",
    "InferenceCache",
    "run_inference",
    "CancellationToken",
    "HeuristicTokenCounter",
    "TiktokenCounter",
    "TokenCounter",
    # Exceptions
    "StatecraftError",
    "DispatchError",
    "ErrorCode",
    "ValidationFailedError",
    "InferenceError",
    "GateError",
    "DispatchCancelledError",
    "ProviderNotFoundError",
]
