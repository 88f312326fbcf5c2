"""Tests for configuration models and the exception hierarchy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

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
from statecraft.models.config import ControllerConfig, InferenceOptions, ProviderConfig


class TestControllerConfig:

    def test_defaults(self):
        config = ControllerConfig()
        assert config.confidence_threshold == 0.7
        assert config.max_retries == 3
        assert config.max_snapshots == 10
        assert config.context == ""
        assert config.debug is False

    @pytest.mark.parametrize(
        "kwargs",
        [{"confidence_threshold": 1.5}, {"max_retries": 0}, {"max_snapshots": 0}, {"model_confidence": -0.1}],
    )
    def test_ranges_validated(self, kwargs):
        with pytest.raises(ValidationError):
            ControllerConfig(**kwargs)

    def test_assignment_validated(self):
        config = ControllerConfig()
        with pytest.raises(ValidationError):
            config.max_retries = 0


class TestInferenceOptions:

    def test_merged_over(self):
        base = InferenceOptions(temperature=0.7, max_tokens=2048)
        merged = InferenceOptions(temperature=0.1).merged_over(base)
        assert merged == InferenceOptions(temperature=0.1, max_tokens=2048)
        assert InferenceOptions().merged_over(None) == InferenceOptions()


class TestProviderConfig:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("STATECRAFT_API_KEY", "env-key")
        monkeypatch.setenv("STATECRAFT_BASE_URL", "http://env")
        monkeypatch.setenv("STATECRAFT_MODEL", "env-model")
        config = ProviderConfig.from_env("groq", model="explicit")
        assert config.kind == "groq"
        assert config.api_key == "env-key"
        assert config.base_url == "http://env"
        assert config.model == "explicit"

    def test_extra_fields_kept(self):
        config = ProviderConfig(kind="custom", region="eu")
        assert config.model_extra == {"region": "eu"}


class TestExceptions:

    def test_hierarchy(self):
        for cls in (DispatchError, DispatchCancelledError, ProviderNotFoundError):
            assert issubclass(cls, StatecraftError)
        for cls in (ValidationFailedError, InferenceError, GateError):
            assert issubclass(cls, DispatchError)

    def test_defaults_per_code(self):
        error = DispatchError(ErrorCode.NETWORK_ERROR, "offline")
        assert error.recoverable is False
        assert "network" in error.suggestion.lower()
        assert DispatchError(ErrorCode.INFERENCE_TIMEOUT, "slow").recoverable is True

    def test_to_dict(self):
        error = InferenceError(RuntimeError("boom"))
        data = error.to_dict()
        assert data["name"] == "InferenceError"
        assert data["code"] == "model_error"
        assert data["message"] == "Inference failed: boom"
        assert data["debug_info"]["cause_type"] == "RuntimeError"
        assert isinstance(data["debug_info"]["timestamp"], str)

    def test_provider_not_found_lists_available(self):
        error = ProviderNotFoundError("nope", ["mock", "openai"])
        assert "mock, openai" in str(error)
