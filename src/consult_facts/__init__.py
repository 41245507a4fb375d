"""consult-facts: turn consultation notes into confidence-scored questionnaire facts.

Quick start::

    from consult_facts import AppSettings, PipelineOptions, create_pipeline

    pipeline = create_pipeline(AppSettings())
    result = pipeline.run("note-123", PipelineOptions(dry_run=True))
    print(result.fact_count, result.skipped_fact_count)

Building blocks::

    from consult_facts import (
        build_default_registry, FactExtractor, FactValidator,
        SyntheticRecordMaterializer, ConsultationPipeline,
        DocumentRecordStore, DocumentConsultationSource,
    )
"""

from __future__ import annotations

from consult_facts.core.config import AppSettings
from consult_facts.core.types import (
    DEFAULT_CONSULTATION_FUNNEL,
    EXTRACTOR_VERSION,
    MIN_CONFIDENCE_THRESHOLD,
    SYNTHETIC_SOURCE,
)
from consult_facts.exceptions import (
    ConfigurationError,
    ConsultFactsError,
    DuplicateRecordError,
    PersistenceError,
    RecordNotFoundError,
)
from consult_facts.extraction import FactExtractor
from consult_facts.mapping import (
    ConfidencePolicy,
    MappingRegistry,
    MappingRule,
    build_default_registry,
    load_policy,
)
from consult_facts.models import (
    ConsultationRecord,
    ErrorCode,
    ExtractedFact,
    ExtractionResult,
    MaterializeResult,
    PersistedFact,
    PipelineOptions,
    PipelineResult,
    SyntheticRecord,
)
from consult_facts.persistence import (
    DocumentConsultationSource,
    DocumentRecordStore,
    FilePersistenceBackend,
    MemoryPersistenceBackend,
)
from consult_facts.services import (
    ConsultationPipeline,
    SyntheticRecordMaterializer,
    create_pipeline,
)
from consult_facts.validation import FactValidationReport, FactValidator

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "AppSettings",
    "ConfidencePolicy",
    "load_policy",
    # Constants
    "EXTRACTOR_VERSION",
    "SYNTHETIC_SOURCE",
    "DEFAULT_CONSULTATION_FUNNEL",
    "MIN_CONFIDENCE_THRESHOLD",
    # Errors
    "ConsultFactsError",
    "ConfigurationError",
    "PersistenceError",
    "DuplicateRecordError",
    "RecordNotFoundError",
    "ErrorCode",
    # Models
    "ConsultationRecord",
    "ExtractedFact",
    "ExtractionResult",
    "SyntheticRecord",
    "PersistedFact",
    "MaterializeResult",
    "PipelineOptions",
    "PipelineResult",
    # Components
    "MappingRule",
    "MappingRegistry",
    "build_default_registry",
    "FactExtractor",
    "FactValidator",
    "FactValidationReport",
    "SyntheticRecordMaterializer",
    "ConsultationPipeline",
    "create_pipeline",
    # Persistence
    "MemoryPersistenceBackend",
    "FilePersistenceBackend",
    "DocumentRecordStore",
    "DocumentConsultationSource",
]
