"""Services: the synthetic record materializer and the pipeline orchestrator."""

from __future__ import annotations

from consult_facts.services.locks import KeyedLock
from consult_facts.services.materializer import SyntheticRecordMaterializer
from consult_facts.services.pipeline import (
    ConsultationPipeline,
    create_backend,
    create_pipeline,
    options_from_settings,
    with_overrides,
)

__all__ = [
    "KeyedLock",
    "SyntheticRecordMaterializer",
    "ConsultationPipeline",
    "create_backend",
    "create_pipeline",
    "options_from_settings",
    "with_overrides",
]
