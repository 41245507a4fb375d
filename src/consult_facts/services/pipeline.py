"""Consultation-to-facts pipeline: fetch, extract, validate, filter, materialize.

Every run returns a :class:`PipelineResult`; failures are reported as an
error code plus ``"<CODE>: <message>"`` strings, never raised.  Retrying is
the caller's job and is safe: re-running the same consultation updates the
existing synthetic record instead of creating a second one.
"""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import replace
from typing import Optional

from consult_facts.core.config import AppSettings, PipelineConfig
from consult_facts.core.logging_config import bind_run_context, unbind_run_context
from consult_facts.core.startup_checks import validate_settings
from consult_facts.core.types import Clock
from consult_facts.exceptions import PersistenceError
from consult_facts.extraction.extractor import FactExtractor
from consult_facts.mapping.policy import DEFAULT_POLICY, load_policy
from consult_facts.mapping.registry import build_default_registry
from consult_facts.models import (
    ErrorCode,
    ExtractedFact,
    PipelineOptions,
    PipelineResult,
)
from consult_facts.persistence.file_backend import FilePersistenceBackend
from consult_facts.persistence.memory_backend import MemoryPersistenceBackend
from consult_facts.persistence.protocols import IConsultationSource, IPersistenceBackend
from consult_facts.persistence.record_store import DocumentConsultationSource, DocumentRecordStore
from consult_facts.services.locks import KeyedLock
from consult_facts.services.materializer import SyntheticRecordMaterializer
from consult_facts.validation.validator import FactValidator

log = logging.getLogger(__name__)


def _failure(code: ErrorCode, message: str, **counts: int) -> PipelineResult:
    return PipelineResult(
        success=False,
        error_code=code,
        errors=[f"{code.value}: {message}"],
        **counts,
    )


def options_from_settings(config: PipelineConfig) -> PipelineOptions:
    """Default run options as configured for this process."""
    return PipelineOptions(
        min_confidence=config.min_confidence,
        skip_low_confidence=config.skip_low_confidence,
    )


class ConsultationPipeline:
    """End-to-end entry point turning one consultation note into persisted facts."""

    def __init__(
        self,
        source: IConsultationSource,
        materializer: SyntheticRecordMaterializer,
        extractor: FactExtractor,
        validator: Optional[FactValidator] = None,
        *,
        serialize_runs: bool = True,
        default_options: Optional[PipelineOptions] = None,
    ) -> None:
        self._source = source
        self._materializer = materializer
        self._extractor = extractor
        self._validator = validator or FactValidator()
        self._locks = KeyedLock() if serialize_runs else None
        self._default_options = default_options or PipelineOptions()

    @property
    def default_options(self) -> PipelineOptions:
        return self._default_options

    def run(self, consult_note_id: str, options: Optional[PipelineOptions] = None) -> PipelineResult:
        """Run the pipeline for one consultation.

        Runs for the same consultation are serialized when the pipeline was
        built with ``serialize_runs``; otherwise two concurrent runs may both
        take the create path and only a uniqueness-enforcing store keeps the
        second one from duplicating the record.
        """
        opts = options or self._default_options
        bind_run_context(consult_note_id=consult_note_id, dry_run=opts.dry_run)
        guard = self._locks.hold(consult_note_id) if self._locks is not None else nullcontext()
        try:
            with guard:
                return self._run(consult_note_id, opts)
        except Exception as exc:
            log.exception("Pipeline run for %s failed unexpectedly", consult_note_id)
            if isinstance(exc, PersistenceError):
                return _failure(ErrorCode.ASSESSMENT_CREATION_FAILED, str(exc))
            return PipelineResult(success=False, errors=[str(exc)])
        finally:
            unbind_run_context("consult_note_id", "dry_run")

    def _run(self, consult_note_id: str, opts: PipelineOptions) -> PipelineResult:
        # 1. Fetch
        try:
            record = self._source.get_consultation_record(consult_note_id)
        except PersistenceError as exc:
            log.error("Could not fetch consultation %s: %s", consult_note_id, exc)
            record = None
        if record is None:
            return _failure(ErrorCode.CONSULT_NOTE_NOT_FOUND, "Consultation note not found")

        # 2. Content shape
        if not isinstance(record.content, dict):
            return _failure(ErrorCode.INVALID_CONTENT_STRUCTURE, "Invalid content structure")

        # 3. Extract; without skip_low_confidence every candidate is produced
        floor = opts.min_confidence if opts.skip_low_confidence else 0.0
        extraction = self._extractor.extract(record, min_confidence=floor)
        candidates = extraction.extracted_facts

        # 4. Validate (advisory)
        errors: list[str] = []
        report = self._validator.validate(candidates)
        if not report.valid:
            log.warning(
                "Validation found %d issue(s) in facts of %s",
                len(report.issues),
                consult_note_id,
            )
            errors.extend(report.errors)

        # 5. Confidence filter over the unfiltered candidate set
        surviving: list[ExtractedFact] = [
            f for f in candidates if f.confidence >= opts.min_confidence
        ]
        skipped = len(candidates) - len(surviving)

        # 6. Nothing left to persist
        if not surviving:
            return _failure(
                ErrorCode.NO_EXTRACTABLE_FACTS,
                f"No facts with confidence >= {opts.min_confidence}",
                skipped_fact_count=len(candidates),
            )

        # 7. Dry run stops before the materializer
        if opts.dry_run:
            log.info(
                "Dry run for %s: %d fact(s), %d skipped",
                consult_note_id,
                len(surviving),
                skipped,
            )
            return PipelineResult(
                success=True,
                fact_count=len(surviving),
                skipped_fact_count=skipped,
                errors=errors or None,
                metadata=extraction.metadata,
                facts=surviving,
            )

        # 8. Update the existing record or create one
        existing_id = self._materializer.find_existing(consult_note_id)
        if existing_id is not None:
            outcome = self._materializer.update(existing_id, surviving, consult_note_id)
        else:
            outcome = self._materializer.create(
                record.patient_id,
                consult_note_id,
                surviving,
                funnel_slug=opts.funnel_slug,
            )

        if not outcome.success:
            errors.append(outcome.error_string())
            return PipelineResult(
                success=False,
                fact_count=len(surviving),
                skipped_fact_count=skipped,
                error_code=outcome.error_code,
                errors=errors,
                facts=surviving,
            )

        # 9. Done; scoring the record is triggered elsewhere
        log.info(
            "Consultation %s materialized into record %s: %d fact(s), %d skipped",
            consult_note_id,
            outcome.record_id,
            len(surviving),
            skipped,
        )
        return PipelineResult(
            success=True,
            fact_count=len(surviving),
            skipped_fact_count=skipped,
            record_id=outcome.record_id,
            errors=errors or None,
            metadata=extraction.metadata,
            facts=surviving,
        )


# ── Wiring ──────────────────────────────────────────────────────────


def create_backend(settings: AppSettings) -> IPersistenceBackend:
    """Build the key/value backend named in ``settings.persistence.backend``."""
    if settings.persistence.backend == "file":
        return FilePersistenceBackend(settings.persistence.store_path)
    return MemoryPersistenceBackend()


def create_pipeline(
    settings: AppSettings,
    *,
    backend: Optional[IPersistenceBackend] = None,
    clock: Optional[Clock] = None,
) -> ConsultationPipeline:
    """Build a validated pipeline from settings.

    Raises:
        ConfigurationError: If the confidence policy, registry or settings
            are invalid.  A misconfigured pipeline is never returned.
    """
    policy = (
        load_policy(settings.pipeline.policy_path)
        if settings.pipeline.policy_path is not None
        else DEFAULT_POLICY
    )
    registry = build_default_registry(policy)
    validate_settings(settings, registry)

    backend = backend if backend is not None else create_backend(settings)
    store = DocumentRecordStore(
        backend,
        settings.persistence.funnels,
        enforce_unique=settings.persistence.enforce_unique,
    )
    extractor = FactExtractor(registry, clock=clock)
    materializer = SyntheticRecordMaterializer(
        store,
        default_funnel_slug=settings.pipeline.default_funnel_slug,
        extractor_version=extractor.extractor_version,
        clock=clock,
    )

    log.info(
        "Pipeline ready: %d rule(s), %s backend, min confidence %.2f",
        len(registry),
        settings.persistence.backend,
        settings.pipeline.min_confidence,
    )
    return ConsultationPipeline(
        DocumentConsultationSource(backend),
        materializer,
        extractor,
        serialize_runs=settings.pipeline.serialize_runs,
        default_options=options_from_settings(settings.pipeline),
    )


def with_overrides(options: PipelineOptions, **changes: object) -> PipelineOptions:
    """Copy *options* replacing only the values that are not None."""
    return replace(options, **{k: v for k, v in changes.items() if v is not None})
