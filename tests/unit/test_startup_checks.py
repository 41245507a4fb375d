"""Tests for settings and startup validation checks."""

from __future__ import annotations

import logging
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from consult_facts.core.config import AppSettings, PersistenceConfig, PipelineConfig
from consult_facts.core.startup_checks import validate_settings
from consult_facts.exceptions import ConfigurationError
from consult_facts.mapping.registry import MappingRegistry, MappingRule, build_default_registry


class TestSettings:
    def test_defaults(self) -> None:
        settings = AppSettings()
        assert settings.pipeline.min_confidence == 0.5
        assert settings.pipeline.skip_low_confidence is False
        assert settings.pipeline.default_funnel_slug == "stress-assessment"
        assert settings.persistence.backend == "memory"
        assert settings.persistence.funnels == {"stress-assessment": "stress-assessment"}

    def test_env_overrides(self) -> None:
        env = {
            "CONSULT_FACTS_PIPELINE_MIN_CONFIDENCE": "0.7",
            "CONSULT_FACTS_PERSISTENCE_FUNNELS": '{"stress-assessment": "f-001"}',
        }
        with patch.dict(os.environ, env):
            settings = AppSettings()
        assert settings.pipeline.min_confidence == 0.7
        assert settings.persistence.funnels == {"stress-assessment": "f-001"}

    def test_min_confidence_bounded(self) -> None:
        with pytest.raises(ValidationError):
            PipelineConfig(min_confidence=1.5)


class TestValidateSettings:
    def test_accepts_defaults(self, settings: AppSettings) -> None:
        validate_settings(settings, build_default_registry())  # Should not raise

    def test_rejects_invalid_registry(self, settings: AppSettings) -> None:
        rule = MappingRule("dup", "Dup", "d", extract=lambda c: 1)
        registry = MappingRegistry([rule, rule])
        with pytest.raises(ConfigurationError) as exc_info:
            validate_settings(settings, registry)
        assert exc_info.value.problems == ["Duplicate question IDs found: dup"]

    def test_rejects_unresolvable_default_funnel(self) -> None:
        settings = AppSettings(
            pipeline=PipelineConfig(default_funnel_slug="sleep-check"),
            persistence=PersistenceConfig(funnels={"stress-assessment": "f-1"}),
        )
        with pytest.raises(ConfigurationError) as exc_info:
            validate_settings(settings, build_default_registry())
        assert "sleep-check" in exc_info.value.problems[0]

    def test_warns_file_backend_in_container(self, tmp_path, caplog) -> None:
        settings = AppSettings(
            persistence=PersistenceConfig(backend="file", store_path=tmp_path),
        )
        with patch.dict(os.environ, {"KUBERNETES_SERVICE_HOST": "10.0.0.1"}):
            with caplog.at_level(logging.WARNING):
                validate_settings(settings, build_default_registry())
        assert "container environment" in caplog.text

    def test_warns_when_runs_unguarded(self, caplog) -> None:
        settings = AppSettings(
            pipeline=PipelineConfig(serialize_runs=False),
            persistence=PersistenceConfig(enforce_unique=False),
        )
        with caplog.at_level(logging.WARNING):
            validate_settings(settings, build_default_registry())
        assert "duplicate synthetic records" in caplog.text
