"""Fact extractor: applies every registered rule to one consultation record."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from consult_facts.content import ConsultNoteContent
from consult_facts.core.types import DEFAULT_RULE_CONFIDENCE, EXTRACTOR_VERSION, Clock
from consult_facts.mapping.registry import MappingRegistry, MappingRule
from consult_facts.models import (
    ConsultationRecord,
    ExtractedFact,
    ExtractionMetadata,
    ExtractionResult,
)
from consult_facts.validation.validator import is_integer_value

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_confidence(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not 0.0 <= value <= 1.0:
        return None
    return float(value)


class FactExtractor:
    """Runs the mapping registry over a consultation record.

    Extraction is pure computation.  One bad rule never aborts the others:
    a rule that raises, returns a non-integer, or estimates a confidence
    outside [0, 1] is logged and contributes no fact.
    """

    def __init__(
        self,
        registry: MappingRegistry,
        *,
        clock: Optional[Clock] = None,
        extractor_version: str = EXTRACTOR_VERSION,
    ) -> None:
        self._registry = registry
        self._clock = clock or _utcnow
        self._version = extractor_version

    @property
    def extractor_version(self) -> str:
        return self._version

    def extract(self, record: ConsultationRecord, min_confidence: float = 0.0) -> ExtractionResult:
        """Extract facts whose confidence is at least *min_confidence*."""
        # One timestamp per run so all facts from a run are co-dated
        extracted_at = self._clock().isoformat()
        content = ConsultNoteContent(record.content)

        facts: list[ExtractedFact] = []
        for rule in self._registry:
            fact = self._apply_rule(rule, content, extracted_at)
            if fact is None:
                continue
            if fact.confidence < min_confidence:
                log.debug(
                    "Skipping %s: confidence %.2f below %.2f",
                    rule.question_id,
                    fact.confidence,
                    min_confidence,
                )
                continue
            facts.append(fact)

        average = sum(f.confidence for f in facts) / len(facts) if facts else 0.0
        metadata = ExtractionMetadata(
            consultation_type=record.consultation_type,
            uncertainty_profile=record.uncertainty_profile,
            total_facts_extracted=len(facts),
            average_confidence=average,
        )

        log.debug(
            "Extracted %d fact(s) from consultation %s",
            len(facts),
            record.consult_note_id,
        )
        return ExtractionResult(
            consult_note_id=record.consult_note_id,
            patient_id=record.patient_id,
            extracted_facts=facts,
            extractor_version=self._version,
            extracted_at=extracted_at,
            metadata=metadata,
        )

    @staticmethod
    def _apply_rule(
        rule: MappingRule,
        content: ConsultNoteContent,
        extracted_at: str,
    ) -> Optional[ExtractedFact]:
        try:
            raw_value = rule.extract(content)  # type: ignore[misc]
            if raw_value is None:
                return None

            if not is_integer_value(raw_value):
                log.error(
                    "Rule %s returned non-integer value %r, skipping",
                    rule.question_id,
                    raw_value,
                )
                return None
            value = int(raw_value)

            raw_confidence = (
                rule.confidence(content) if rule.confidence is not None else DEFAULT_RULE_CONFIDENCE
            )
        except Exception:
            log.exception("Extraction rule %s failed", rule.question_id)
            return None

        confidence = _as_confidence(raw_confidence)
        if confidence is None:
            log.error(
                "Rule %s estimated invalid confidence %r, skipping",
                rule.question_id,
                raw_confidence,
            )
            return None

        return ExtractedFact(
            question_id=rule.question_id,
            answer_value=value,
            confidence=confidence,
            source=rule.source,
            extracted_at=extracted_at,
        )
