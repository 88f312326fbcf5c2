"""Configuration models for Statecraft."""

from statecraft.models.config import ControllerConfig, InferenceOptions, ProviderConfig

__all__ = ["ControllerConfig", "InferenceOptions", "ProviderConfig"]
