"""Data models for consult-facts.

Input and persisted entities are pydantic models (they cross a storage
boundary and are serialised as JSON).  In-memory pipeline values (facts,
extraction results, operation results) are plain dataclasses so that the
validator can inspect facts a buggy rule may have produced without the
model rejecting them first.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from consult_facts.core.types import EXTRACTOR_VERSION, MIN_CONFIDENCE_THRESHOLD, SYNTHETIC_SOURCE

ConsultationType = Literal["first", "follow_up"]
UncertaintyProfile = Literal["off", "qualitative", "mixed"]


class ErrorCode(str, Enum):
    """Stable error codes surfaced by the materializer and the pipeline."""

    CONSULT_NOTE_NOT_FOUND = "CONSULT_NOTE_NOT_FOUND"
    INVALID_CONTENT_STRUCTURE = "INVALID_CONTENT_STRUCTURE"
    NO_EXTRACTABLE_FACTS = "NO_EXTRACTABLE_FACTS"
    MAPPING_CONFIG_MISSING = "MAPPING_CONFIG_MISSING"
    ASSESSMENT_CREATION_FAILED = "ASSESSMENT_CREATION_FAILED"
    ANSWER_SAVE_FAILED = "ANSWER_SAVE_FAILED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_record_id() -> str:
    return str(uuid.uuid4())


# ── Input ────────────────────────────────────────────────────────────


class ConsultationRecord(BaseModel):
    """A consultation note as delivered by the authoring system.

    ``content`` is deliberately untyped: its shape is checked by the
    pipeline, and rules read it through
    :class:`~consult_facts.content.ConsultNoteContent`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    consult_note_id: str = Field(validation_alias=AliasChoices("consult_note_id", "consultNoteId", "id"))
    patient_id: str = Field(validation_alias=AliasChoices("patient_id", "patientId"))
    consultation_type: ConsultationType = Field(
        default="first",
        validation_alias=AliasChoices("consultation_type", "consultationType"),
    )
    uncertainty_profile: UncertaintyProfile = Field(
        default="qualitative",
        validation_alias=AliasChoices("uncertainty_profile", "uncertaintyProfile"),
    )
    content: Any = None


# ── Extraction ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExtractedFact:
    """One integer-valued, confidence-scored observation from a consultation."""

    question_id: str
    answer_value: Any
    confidence: float
    source: str
    extracted_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionId": self.question_id,
            "answerValue": self.answer_value,
            "confidence": self.confidence,
            "source": self.source,
            "extractedAt": self.extracted_at,
        }


@dataclass(frozen=True)
class ExtractionMetadata:
    """Summary of one extraction run."""

    consultation_type: str
    uncertainty_profile: str
    total_facts_extracted: int
    average_confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "consultationType": self.consultation_type,
            "uncertaintyProfile": self.uncertainty_profile,
            "totalFactsExtracted": self.total_facts_extracted,
            "averageConfidence": self.average_confidence,
        }


@dataclass(frozen=True)
class ExtractionResult:
    """Output of the fact extractor for one consultation record."""

    consult_note_id: str
    patient_id: str
    extracted_facts: list[ExtractedFact]
    extractor_version: str
    extracted_at: str
    metadata: ExtractionMetadata


# ── Persisted entities ───────────────────────────────────────────────


class SyntheticRecordMetadata(BaseModel):
    """Provenance stored on every synthetic record; rewritten in full on each save."""

    source: str = SYNTHETIC_SOURCE
    consult_note_id: str
    extractor_version: str = EXTRACTOR_VERSION
    extracted_at: datetime
    fact_count: int
    average_confidence: float


class SyntheticRecord(BaseModel):
    """Assessment-shaped container the risk engine reads by id."""

    id: str = Field(default_factory=generate_record_id)
    patient_id: str
    funnel: str
    funnel_id: str
    status: str = "completed"
    state: str = "completed"
    metadata: SyntheticRecordMetadata
    completed_at: datetime = Field(default_factory=_utcnow)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: Optional[datetime] = None


class PersistedFact(BaseModel):
    """One fact row attached to a synthetic record."""

    synthetic_record_id: str
    question_id: str
    answer_value: int
    extraction_source: str
    confidence: float = Field(ge=0.0, le=1.0)
    extracted_at: str
    extractor_version: str = EXTRACTOR_VERSION


# ── Operation results ────────────────────────────────────────────────


@dataclass
class MaterializeResult:
    """Outcome of a materializer create or update."""

    success: bool
    record_id: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    message: str = ""

    @classmethod
    def ok(cls, record_id: str) -> MaterializeResult:
        return cls(success=True, record_id=record_id)

    @classmethod
    def fail(cls, error_code: ErrorCode, message: str) -> MaterializeResult:
        return cls(success=False, error_code=error_code, message=message)

    def error_string(self) -> str:
        """Render as ``"<CODE>: <message>"`` for pipeline error lists."""
        code = self.error_code.value if self.error_code else "UNKNOWN"
        return f"{code}: {self.message}"


@dataclass
class PipelineOptions:
    """Per-run pipeline switches."""

    min_confidence: float = MIN_CONFIDENCE_THRESHOLD
    skip_low_confidence: bool = False
    dry_run: bool = False
    funnel_slug: Optional[str] = None


@dataclass
class PipelineResult:
    """Structured outcome of one consultation-to-facts run."""

    success: bool
    fact_count: int = 0
    skipped_fact_count: int = 0
    record_id: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    errors: Optional[list[str]] = None
    metadata: Optional[ExtractionMetadata] = None
    facts: list[ExtractedFact] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "recordId": self.record_id,
            "factCount": self.fact_count,
            "skippedFactCount": self.skipped_fact_count,
            "errorCode": self.error_code.value if self.error_code else None,
            "errors": self.errors,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "facts": [f.to_dict() for f in self.facts],
        }
