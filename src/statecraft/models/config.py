"""Configuration models for Statecraft.

ControllerConfig holds per-state settings for the lifecycle controller.
InferenceOptions carries per-call sampling parameters.
ProviderConfig describes an inference backend for the provider registry.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MODEL = "gpt-4o-mini"


class ControllerConfig(BaseModel):
    """Per-state configuration for SemanticState.

    Attributes:
        confidence_threshold: Changes scoring below this are gated
            behind confirmation.
        max_retries: Hard ceiling on inference calls per dispatch.
        max_snapshots: Rollback history depth.
        context: Optional persona/context text placed at the top of
            every mutation prompt.
        model_confidence: Prior used for the model-reported confidence
            signal when the backend reports none.
        debug: Lower the ``statecraft`` logger to DEBUG.
    """

    model_config = ConfigDict(validate_assignment=True)

    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    max_retries: int = Field(default=3, ge=1)
    max_snapshots: int = Field(default=10, ge=1)
    context: str = ""
    model_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    debug: bool = False


@dataclass(frozen=True)
class InferenceOptions:
    """Sampling parameters for a single inference call.

    None means 'use the provider default'.
    """

    temperature: float | None = None
    max_tokens: int | None = None

    def merged_over(self, base: InferenceOptions | None) -> InferenceOptions:
        """Return options where fields set here override ``base``."""
        if base is None:
            return self
        return InferenceOptions(
            temperature=self.temperature if self.temperature is not None else base.temperature,
            max_tokens=self.max_tokens if self.max_tokens is not None else base.max_tokens,
        )


class ProviderConfig(BaseModel):
    """Configuration for creating a provider through the registry.

    Unknown keys are kept (``extra="allow"``) so custom factories can
    receive their own settings.
    """

    model_config = ConfigDict(extra="allow")

    kind: str = "openai"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    timeout: float = Field(default=120.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    responses: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_env(cls, kind: str = "openai", **overrides) -> ProviderConfig:
        """Build a config from STATECRAFT_* environment variables.

        Explicit ``overrides`` win over the environment.
        """
        values = {
            "kind": kind,
            "api_key": os.environ.get("STATECRAFT_API_KEY"),
            "base_url": os.environ.get("STATECRAFT_BASE_URL"),
            "model": os.environ.get("STATECRAFT_MODEL"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
