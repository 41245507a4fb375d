"""Shared fixtures for consult-facts tests."""

from __future__ import annotations

from typing import Any

import pytest

from consult_facts.core.config import AppSettings, PersistenceConfig, PipelineConfig
from consult_facts.extraction.extractor import FactExtractor
from consult_facts.mapping.registry import MappingRegistry, build_default_registry
from consult_facts.persistence.memory_backend import MemoryPersistenceBackend
from consult_facts.persistence.record_store import DocumentConsultationSource, DocumentRecordStore
from consult_facts.services.materializer import SyntheticRecordMaterializer
from consult_facts.services.pipeline import ConsultationPipeline
from tests.fakes.fake_clock import fixed_clock

FUNNELS = {"stress-assessment": "funnel-stress-001"}


@pytest.fixture
def full_content() -> dict[str, Any]:
    """Consultation content that yields a fact from every reference rule."""
    return {
        "chiefComplaint": "Persistent work-related stress",
        "hpi": {
            "functionalImpact": "Significant difficulty concentrating at work",
            "associatedSymptoms": ["Difficulty falling asleep", "Headaches"],
        },
        "objectiveData": {"values": {"sleep_hours": 5.5}},
        "problemList": ["Work stress", "Sleep problems", "Anxiety", "Tension headaches", "Fatigue"],
        "redFlagsScreening": {"screened": True, "positive": ["Chest pain at rest"]},
    }


@pytest.fixture
def sparse_content() -> dict[str, Any]:
    """Single problem, nothing else: one fact at confidence 0.6."""
    return {"problemList": ["Work stress"]}


@pytest.fixture
def registry() -> MappingRegistry:
    return build_default_registry()


@pytest.fixture
def extractor(registry: MappingRegistry) -> FactExtractor:
    return FactExtractor(registry, clock=fixed_clock)


@pytest.fixture
def backend() -> MemoryPersistenceBackend:
    return MemoryPersistenceBackend()


@pytest.fixture
def store(backend: MemoryPersistenceBackend) -> DocumentRecordStore:
    return DocumentRecordStore(backend, FUNNELS)


@pytest.fixture
def source(backend: MemoryPersistenceBackend) -> DocumentConsultationSource:
    return DocumentConsultationSource(backend)


@pytest.fixture
def materializer(store: DocumentRecordStore) -> SyntheticRecordMaterializer:
    return SyntheticRecordMaterializer(store, clock=fixed_clock)


@pytest.fixture
def pipeline(
    source: DocumentConsultationSource,
    materializer: SyntheticRecordMaterializer,
    extractor: FactExtractor,
) -> ConsultationPipeline:
    return ConsultationPipeline(source, materializer, extractor)


@pytest.fixture
def settings() -> AppSettings:
    """Default settings with a resolvable funnel and in-memory storage."""
    return AppSettings(
        pipeline=PipelineConfig(),
        persistence=PersistenceConfig(backend="memory", funnels=dict(FUNNELS)),
    )
