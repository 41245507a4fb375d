"""Nested pydantic-settings configuration for the application.

Each group reads its own ``CONSULT_FACTS_<GROUP>_*`` env vars::

    export CONSULT_FACTS_PIPELINE_MIN_CONFIDENCE=0.6
    export CONSULT_FACTS_PERSISTENCE_BACKEND=file
    export CONSULT_FACTS_PERSISTENCE_FUNNELS='{"stress-assessment": "f-001"}'
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from consult_facts.core.types import DEFAULT_CONSULTATION_FUNNEL, MIN_CONFIDENCE_THRESHOLD


class PipelineConfig(BaseSettings):
    """Extraction pipeline configuration.

    Env vars use ``CONSULT_FACTS_PIPELINE_`` prefix.
    """

    model_config = {"env_prefix": "CONSULT_FACTS_PIPELINE_"}

    min_confidence: float = Field(default=MIN_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)
    skip_low_confidence: bool = False
    default_funnel_slug: str = DEFAULT_CONSULTATION_FUNNEL
    serialize_runs: bool = True
    policy_path: Optional[Path] = None


class PersistenceConfig(BaseSettings):
    """Persistence configuration.

    Env vars use ``CONSULT_FACTS_PERSISTENCE_`` prefix.
    """

    model_config = {"env_prefix": "CONSULT_FACTS_PERSISTENCE_"}

    backend: Literal["memory", "file"] = "memory"
    store_path: Path = Path("./consult_store")
    funnels: dict[str, str] = Field(
        default_factory=lambda: {DEFAULT_CONSULTATION_FUNNEL: DEFAULT_CONSULTATION_FUNNEL}
    )
    enforce_unique: bool = True


class ObservabilityConfig(BaseSettings):
    """Observability configuration.

    Env vars use ``CONSULT_FACTS_OBSERVABILITY_`` prefix.
    """

    model_config = {"env_prefix": "CONSULT_FACTS_OBSERVABILITY_"}

    log_level: str = "INFO"
    log_format: Literal["auto", "console", "json"] = "auto"
    service_name: str = "consult-facts"


class AppSettings(BaseSettings):
    """Top-level application settings aggregating all sub-configs."""

    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
