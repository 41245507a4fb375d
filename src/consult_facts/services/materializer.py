"""Synthetic record materializer: persists extracted facts in assessment shape.

The risk engine reads synthetic records by id and never sees consultation
note structure.  One record exists per consultation: re-extraction replaces
its facts in full rather than creating a second record.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from pydantic import ValidationError

from consult_facts.core.types import (
    DEFAULT_CONSULTATION_FUNNEL,
    EXTRACTOR_VERSION,
    SYNTHETIC_SOURCE,
    Clock,
)
from consult_facts.exceptions import PersistenceError
from consult_facts.models import (
    ErrorCode,
    ExtractedFact,
    MaterializeResult,
    PersistedFact,
    SyntheticRecord,
    SyntheticRecordMetadata,
)
from consult_facts.persistence.protocols import ISyntheticRecordStore

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyntheticRecordMaterializer:
    """Create, update and look up synthetic records for consultations."""

    def __init__(
        self,
        store: ISyntheticRecordStore,
        *,
        default_funnel_slug: str = DEFAULT_CONSULTATION_FUNNEL,
        extractor_version: str = EXTRACTOR_VERSION,
        clock: Optional[Clock] = None,
    ) -> None:
        self._store = store
        self._default_funnel = default_funnel_slug
        self._version = extractor_version
        self._clock = clock or _utcnow

    def find_existing(self, consult_note_id: str) -> Optional[str]:
        """Return the id of the newest synthetic record for this consultation, if any.

        This is a read-then-act check: two concurrent runs for the same
        consultation can both see "absent".  Serialize runs per consultation
        or rely on a store that enforces uniqueness on insert.
        """
        try:
            record = self._store.find_latest_record(consult_note_id, SYNTHETIC_SOURCE)
        except PersistenceError:
            log.exception("Error checking for existing synthetic record of %s", consult_note_id)
            return None
        return record.id if record is not None else None

    def create(
        self,
        patient_id: str,
        consult_note_id: str,
        facts: Sequence[ExtractedFact],
        funnel_slug: Optional[str] = None,
    ) -> MaterializeResult:
        """Insert a completed synthetic record plus one fact row per fact.

        If the fact rows cannot be saved the record is deleted again, so no
        record without facts is left behind.
        """
        try:
            return self._create(patient_id, consult_note_id, facts, funnel_slug)
        except Exception as exc:
            log.exception("Unexpected error creating synthetic record for %s", consult_note_id)
            return MaterializeResult.fail(ErrorCode.ASSESSMENT_CREATION_FAILED, str(exc))

    def update(
        self,
        record_id: str,
        facts: Sequence[ExtractedFact],
        consult_note_id: str,
    ) -> MaterializeResult:
        """Replace all facts of an existing record and rewrite its metadata.

        A failed update may leave new metadata next to old (or no) facts;
        callers must re-run the whole pipeline rather than trust it.
        """
        try:
            return self._update(record_id, facts, consult_note_id)
        except Exception as exc:
            log.exception("Unexpected error updating synthetic record %s", record_id)
            return MaterializeResult.fail(ErrorCode.ASSESSMENT_CREATION_FAILED, str(exc))

    def _create(
        self,
        patient_id: str,
        consult_note_id: str,
        facts: Sequence[ExtractedFact],
        funnel_slug: Optional[str],
    ) -> MaterializeResult:
        if not facts:
            return MaterializeResult.fail(
                ErrorCode.NO_EXTRACTABLE_FACTS, "No facts to create synthetic record from"
            )

        target_funnel = funnel_slug or self._default_funnel

        try:
            funnel_id = self._store.resolve_funnel_id(target_funnel)
        except PersistenceError as exc:
            log.error("Funnel lookup for %s failed: %s", target_funnel, exc)
            funnel_id = None
        if not funnel_id:
            return MaterializeResult.fail(
                ErrorCode.MAPPING_CONFIG_MISSING, f"Funnel not found: {target_funnel}"
            )

        now = self._clock()
        try:
            record = SyntheticRecord(
                patient_id=patient_id,
                funnel=target_funnel,
                funnel_id=funnel_id,
                metadata=self._build_metadata(consult_note_id, facts, now),
                completed_at=now,
                created_at=now,
            )
            rows = self._fact_rows(record.id, facts)
        except ValidationError as exc:
            log.error("Facts for %s cannot be persisted: %s", consult_note_id, exc)
            return MaterializeResult.fail(ErrorCode.ASSESSMENT_CREATION_FAILED, str(exc))

        try:
            record_id = self._store.insert_record(record)
        except PersistenceError as exc:
            log.error("Failed to create synthetic record for %s: %s", consult_note_id, exc)
            return MaterializeResult.fail(ErrorCode.ASSESSMENT_CREATION_FAILED, str(exc))

        try:
            self._store.insert_facts(rows)
        except PersistenceError as exc:
            log.error("Failed to save facts for record %s: %s", record_id, exc)
            self._rollback(record_id)
            return MaterializeResult.fail(ErrorCode.ANSWER_SAVE_FAILED, str(exc) or "Failed to save facts")
        except Exception:
            self._rollback(record_id)
            raise

        log.info(
            "Created synthetic record %s for consultation %s with %d fact(s)",
            record_id,
            consult_note_id,
            len(rows),
        )
        return MaterializeResult.ok(record_id)

    def _update(
        self,
        record_id: str,
        facts: Sequence[ExtractedFact],
        consult_note_id: str,
    ) -> MaterializeResult:
        if not facts:
            return MaterializeResult.fail(
                ErrorCode.NO_EXTRACTABLE_FACTS, "No facts to update synthetic record with"
            )

        now = self._clock()
        try:
            metadata = self._build_metadata(consult_note_id, facts, now)
            rows = self._fact_rows(record_id, facts)
        except ValidationError as exc:
            log.error("Facts for %s cannot be persisted: %s", consult_note_id, exc)
            return MaterializeResult.fail(ErrorCode.ASSESSMENT_CREATION_FAILED, str(exc))

        try:
            self._store.delete_facts(record_id)
        except PersistenceError as exc:
            log.error("Failed to delete old facts of record %s: %s", record_id, exc)
            return MaterializeResult.fail(ErrorCode.ANSWER_SAVE_FAILED, str(exc))

        try:
            self._store.update_record_metadata(record_id, metadata, now)
        except PersistenceError as exc:
            # Facts are still replaced; metadata catches up on the next run
            log.error("Failed to update metadata of record %s: %s", record_id, exc)

        try:
            self._store.insert_facts(rows)
        except PersistenceError as exc:
            log.error("Failed to insert new facts for record %s: %s", record_id, exc)
            return MaterializeResult.fail(ErrorCode.ANSWER_SAVE_FAILED, str(exc))

        log.info("Updated synthetic record %s with %d fact(s)", record_id, len(rows))
        return MaterializeResult.ok(record_id)

    # ── Internal helpers ────────────────────────────────────────────

    def _build_metadata(
        self,
        consult_note_id: str,
        facts: Sequence[ExtractedFact],
        now: datetime,
    ) -> SyntheticRecordMetadata:
        return SyntheticRecordMetadata(
            source=SYNTHETIC_SOURCE,
            consult_note_id=consult_note_id,
            extractor_version=self._version,
            extracted_at=now,
            fact_count=len(facts),
            average_confidence=sum(f.confidence for f in facts) / len(facts),
        )

    def _fact_rows(self, record_id: str, facts: Sequence[ExtractedFact]) -> list[PersistedFact]:
        return [
            PersistedFact(
                synthetic_record_id=record_id,
                question_id=fact.question_id,
                answer_value=fact.answer_value,
                extraction_source=fact.source,
                confidence=fact.confidence,
                extracted_at=fact.extracted_at,
                extractor_version=self._version,
            )
            for fact in facts
        ]

    def _rollback(self, record_id: str) -> None:
        try:
            self._store.delete_record(record_id)
        except PersistenceError:
            log.exception("Rollback of synthetic record %s failed; record is orphaned", record_id)
        else:
            log.warning("Rolled back synthetic record %s", record_id)
