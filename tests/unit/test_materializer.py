"""Tests for SyntheticRecordMaterializer."""

from __future__ import annotations

import pytest

from consult_facts.core.types import EXTRACTOR_VERSION, SYNTHETIC_SOURCE
from consult_facts.models import ErrorCode, ExtractedFact
from consult_facts.persistence.record_store import DocumentRecordStore
from consult_facts.services.materializer import SyntheticRecordMaterializer
from tests.fakes.fake_clock import FIXED_NOW, TickingClock, fixed_clock
from tests.fakes.fake_store import FailingRecordStore


def _fact(question_id: str = "stress_level_overall", value: int = 7, confidence: float = 0.8) -> ExtractedFact:
    return ExtractedFact(
        question_id=question_id,
        answer_value=value,
        confidence=confidence,
        source=f"consultation.{question_id}",
        extracted_at=FIXED_NOW.isoformat(),
    )


@pytest.fixture
def failing_store() -> FailingRecordStore:
    return FailingRecordStore()


@pytest.fixture
def failing_materializer(failing_store: FailingRecordStore) -> SyntheticRecordMaterializer:
    return SyntheticRecordMaterializer(failing_store, clock=TickingClock())


class TestCreate:
    def test_creates_record_and_facts(
        self, materializer: SyntheticRecordMaterializer, store: DocumentRecordStore
    ) -> None:
        facts = [_fact(), _fact("sleep_quality", 8, 0.9)]
        result = materializer.create("patient-1", "note-1", facts)

        assert result.success
        record = store.get_record(result.record_id)
        assert record.patient_id == "patient-1"
        assert record.status == "completed"
        assert record.funnel == "stress-assessment"
        assert record.funnel_id == "funnel-stress-001"
        assert record.metadata.source == SYNTHETIC_SOURCE
        assert record.metadata.consult_note_id == "note-1"
        assert record.metadata.extractor_version == EXTRACTOR_VERSION
        assert record.metadata.fact_count == 2
        assert record.metadata.average_confidence == pytest.approx(0.85)
        assert record.created_at == FIXED_NOW

        rows = store.list_facts(result.record_id)
        assert {(r.question_id, r.answer_value) for r in rows} == {
            ("stress_level_overall", 7),
            ("sleep_quality", 8),
        }
        assert all(r.extractor_version == EXTRACTOR_VERSION for r in rows)

    def test_unknown_funnel(self, materializer: SyntheticRecordMaterializer) -> None:
        result = materializer.create("patient-1", "note-1", [_fact()], funnel_slug="sleep-check")
        assert not result.success
        assert result.error_code is ErrorCode.MAPPING_CONFIG_MISSING
        assert result.error_string() == "MAPPING_CONFIG_MISSING: Funnel not found: sleep-check"

    def test_empty_facts(self, materializer: SyntheticRecordMaterializer) -> None:
        result = materializer.create("patient-1", "note-1", [])
        assert result.error_code is ErrorCode.NO_EXTRACTABLE_FACTS

    def test_record_insert_failure(self, failing_store, failing_materializer) -> None:
        failing_store.fail_insert_record = True
        result = failing_materializer.create("patient-1", "note-1", [_fact()])
        assert result.error_code is ErrorCode.ASSESSMENT_CREATION_FAILED

    def test_duplicate_is_refused(self, materializer: SyntheticRecordMaterializer) -> None:
        assert materializer.create("patient-1", "note-1", [_fact()]).success
        second = materializer.create("patient-1", "note-1", [_fact()])
        assert second.error_code is ErrorCode.ASSESSMENT_CREATION_FAILED
        assert "already exists" in second.message

    def test_fact_insert_failure_rolls_back(self, failing_store, failing_materializer) -> None:
        failing_store.fail_insert_facts = True
        result = failing_materializer.create("patient-1", "note-1", [_fact()])

        assert result.error_code is ErrorCode.ANSWER_SAVE_FAILED
        assert len(failing_store.deleted_records) == 1
        assert failing_store.find_latest_record("note-1", SYNTHETIC_SOURCE) is None
        assert failing_materializer.find_existing("note-1") is None

    def test_unexpected_error_rolls_back(self, failing_store, failing_materializer) -> None:
        failing_store.crash_insert_facts = True
        result = failing_materializer.create("patient-1", "note-1", [_fact()])

        assert result.error_code is ErrorCode.ASSESSMENT_CREATION_FAILED
        assert "simulated driver crash" in result.message
        assert failing_store.list_records() == []

    def test_unpersistable_fact(self, materializer: SyntheticRecordMaterializer, store) -> None:
        result = materializer.create("patient-1", "note-1", [_fact(value="seven")])
        assert result.error_code is ErrorCode.ASSESSMENT_CREATION_FAILED
        assert store.list_records() == []


class TestUpdate:
    def test_full_replace(self, materializer: SyntheticRecordMaterializer, store) -> None:
        created = materializer.create(
            "patient-1", "note-1", [_fact(), _fact("red_flags_count", 2, 1.0)]
        )
        result = materializer.update(created.record_id, [_fact("sleep_quality", 8, 0.9)], "note-1")

        assert result.success
        assert result.record_id == created.record_id
        rows = store.list_facts(created.record_id)
        assert [(r.question_id, r.answer_value) for r in rows] == [("sleep_quality", 8)]
        record = store.get_record(created.record_id)
        assert record.metadata.fact_count == 1
        assert record.metadata.average_confidence == pytest.approx(0.9)
        assert record.updated_at is not None

    def test_empty_facts(self, materializer: SyntheticRecordMaterializer) -> None:
        created = materializer.create("patient-1", "note-1", [_fact()])
        result = materializer.update(created.record_id, [], "note-1")
        assert result.error_code is ErrorCode.NO_EXTRACTABLE_FACTS

    def test_delete_failure(self, failing_store, failing_materializer) -> None:
        created = failing_materializer.create("patient-1", "note-1", [_fact()])
        failing_store.fail_delete_facts = True
        result = failing_materializer.update(created.record_id, [_fact(value=3)], "note-1")
        assert result.error_code is ErrorCode.ANSWER_SAVE_FAILED
        assert [r.answer_value for r in failing_store.list_facts(created.record_id)] == [7]

    def test_metadata_failure_still_replaces_facts(self, failing_store, failing_materializer) -> None:
        created = failing_materializer.create("patient-1", "note-1", [_fact()])
        failing_store.fail_update_metadata = True
        result = failing_materializer.update(created.record_id, [_fact(value=3)], "note-1")
        assert result.success
        assert [r.answer_value for r in failing_store.list_facts(created.record_id)] == [3]

    def test_insert_failure_leaves_new_metadata(self, failing_store, failing_materializer) -> None:
        created = failing_materializer.create("patient-1", "note-1", [_fact()])
        failing_store.fail_insert_facts = True
        result = failing_materializer.update(
            created.record_id, [_fact(), _fact("sleep_quality", 8, 0.9)], "note-1"
        )
        assert result.error_code is ErrorCode.ANSWER_SAVE_FAILED
        assert failing_store.list_facts(created.record_id) == []
        assert failing_store.get_record(created.record_id).metadata.fact_count == 2


class TestFindExisting:
    def test_absent_then_present(self, materializer: SyntheticRecordMaterializer) -> None:
        assert materializer.find_existing("note-1") is None
        created = materializer.create("patient-1", "note-1", [_fact()])
        assert materializer.find_existing("note-1") == created.record_id

    def test_lookup_error_is_absent(self, failing_store, failing_materializer) -> None:
        failing_materializer.create("patient-1", "note-1", [_fact()])
        failing_store.fail_lookup = True
        assert failing_materializer.find_existing("note-1") is None

    def test_other_sources_ignored(self, store: DocumentRecordStore) -> None:
        materializer = SyntheticRecordMaterializer(store, clock=fixed_clock)
        materializer.create("patient-1", "note-1", [_fact()])
        assert materializer.find_existing("note-2") is None
