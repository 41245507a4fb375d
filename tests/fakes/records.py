"""Builders for consultation records used across tests."""

from __future__ import annotations

from typing import Any

from consult_facts.models import ConsultationRecord


def make_record(content: Any, note_id: str = "note-1", **extra: Any) -> ConsultationRecord:
    return ConsultationRecord(
        consult_note_id=note_id,
        patient_id=extra.pop("patient_id", "patient-1"),
        content=content,
        **extra,
    )
