"""Record store and consultation source layered on a key/value backend.

Documents are stored as JSON under these keys::

    consult-note-<consult_note_id>   ConsultationRecord
    record-<record_id>               SyntheticRecord
    facts-<record_id>                list[PersistedFact]

With ``enforce_unique`` the store behaves like a unique constraint on
``(metadata.consult_note_id, metadata.source)``: a second insert for the same
consultation raises :class:`DuplicateRecordError` instead of duplicating.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from datetime import datetime
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from consult_facts.exceptions import (
    DuplicateRecordError,
    PersistenceError,
    RecordNotFoundError,
)
from consult_facts.models import (
    ConsultationRecord,
    PersistedFact,
    SyntheticRecord,
    SyntheticRecordMetadata,
)
from consult_facts.persistence.protocols import IPersistenceBackend

log = logging.getLogger(__name__)

RECORD_PREFIX = "record-"
FACTS_PREFIX = "facts-"
CONSULT_NOTE_PREFIX = "consult-note-"

_FACT_LIST = TypeAdapter(list[PersistedFact])


class DocumentRecordStore:
    """Implements ``ISyntheticRecordStore`` over an ``IPersistenceBackend``."""

    def __init__(
        self,
        backend: IPersistenceBackend,
        funnels: Mapping[str, str],
        *,
        enforce_unique: bool = True,
    ) -> None:
        self._backend = backend
        self._funnels = dict(funnels)
        self._enforce_unique = enforce_unique
        self._write_lock = threading.RLock()

    # ── Category resolution ─────────────────────────────────────────

    def resolve_funnel_id(self, slug: str) -> Optional[str]:
        return self._funnels.get(slug)

    # ── Records ─────────────────────────────────────────────────────

    def insert_record(self, record: SyntheticRecord) -> str:
        key = RECORD_PREFIX + record.id
        with self._write_lock:
            if self._enforce_unique:
                existing = self.find_latest_record(
                    record.metadata.consult_note_id, record.metadata.source
                )
                if existing is not None:
                    raise DuplicateRecordError(
                        f"Synthetic record {existing.id} already exists for consultation "
                        f"{record.metadata.consult_note_id}"
                    )
            if self._call(self._backend.exists, key):
                raise DuplicateRecordError(f"Record id {record.id} already exists")
            self._call(self._backend.save, key, record.model_dump_json())
        log.debug("Inserted synthetic record %s", record.id)
        return record.id

    def get_record(self, record_id: str) -> SyntheticRecord:
        key = RECORD_PREFIX + record_id
        try:
            raw = self._backend.load(key)
        except KeyError as exc:
            raise RecordNotFoundError(f"Synthetic record not found: {record_id}") from exc
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Could not load record {record_id}: {exc}") from exc
        return self._parse_record(raw, key)

    def update_record_metadata(
        self,
        record_id: str,
        metadata: SyntheticRecordMetadata,
        updated_at: datetime,
    ) -> None:
        with self._write_lock:
            record = self.get_record(record_id)
            updated = record.model_copy(update={"metadata": metadata, "updated_at": updated_at})
            self._call(self._backend.save, RECORD_PREFIX + record_id, updated.model_dump_json())

    def delete_record(self, record_id: str) -> None:
        with self._write_lock:
            self._call(self._backend.delete, RECORD_PREFIX + record_id)
            self._call(self._backend.delete, FACTS_PREFIX + record_id)

    def find_latest_record(self, consult_note_id: str, source: str) -> Optional[SyntheticRecord]:
        matches: list[SyntheticRecord] = []
        for key in self._call(self._backend.list_keys, RECORD_PREFIX):
            try:
                raw = self._backend.load(key)
            except KeyError:
                # Deleted between listing and loading
                continue
            except (OSError, ValueError) as exc:
                raise PersistenceError(f"Could not load {key}: {exc}") from exc
            try:
                record = self._parse_record(raw, key)
            except PersistenceError as exc:
                # One bad document must not block lookups for other consultations
                log.warning("Skipping unreadable record document %s: %s", key, exc)
                continue
            if (
                record.metadata.consult_note_id == consult_note_id
                and record.metadata.source == source
            ):
                matches.append(record)

        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at)

    def list_records(self) -> list[SyntheticRecord]:
        records = []
        for key in self._call(self._backend.list_keys, RECORD_PREFIX):
            records.append(self._parse_record(self._call(self._backend.load, key), key))
        return records

    # ── Fact rows ───────────────────────────────────────────────────

    def insert_facts(self, facts: list[PersistedFact]) -> None:
        by_record: dict[str, list[PersistedFact]] = {}
        for fact in facts:
            by_record.setdefault(fact.synthetic_record_id, []).append(fact)

        with self._write_lock:
            for record_id, rows in by_record.items():
                if not self._call(self._backend.exists, RECORD_PREFIX + record_id):
                    raise PersistenceError(f"Cannot insert facts: record {record_id} does not exist")
                current = self.list_facts(record_id)
                payload = _FACT_LIST.dump_json(current + rows).decode("utf-8")
                self._call(self._backend.save, FACTS_PREFIX + record_id, payload)

    def delete_facts(self, record_id: str) -> None:
        with self._write_lock:
            self._call(self._backend.delete, FACTS_PREFIX + record_id)

    def list_facts(self, record_id: str) -> list[PersistedFact]:
        key = FACTS_PREFIX + record_id
        if not self._call(self._backend.exists, key):
            return []
        raw = self._call(self._backend.load, key)
        try:
            return _FACT_LIST.validate_json(raw)
        except ValidationError as exc:
            raise PersistenceError(f"Corrupt fact document {key}: {exc}") from exc

    # ── Internal helpers ────────────────────────────────────────────

    @staticmethod
    def _parse_record(raw: str, key: str) -> SyntheticRecord:
        try:
            return SyntheticRecord.model_validate_json(raw)
        except ValidationError as exc:
            raise PersistenceError(f"Corrupt record document {key}: {exc}") from exc

    @staticmethod
    def _call(fn, *args):
        """Invoke a backend operation, translating backend failures to PersistenceError."""
        try:
            return fn(*args)
        except PersistenceError:
            raise
        except (KeyError, OSError, ValueError) as exc:
            raise PersistenceError(str(exc)) from exc


class DocumentConsultationSource:
    """Implements ``IConsultationSource`` over an ``IPersistenceBackend``."""

    def __init__(self, backend: IPersistenceBackend) -> None:
        self._backend = backend

    def get_consultation_record(self, consult_note_id: str) -> Optional[ConsultationRecord]:
        key = CONSULT_NOTE_PREFIX + consult_note_id
        try:
            raw = self._backend.load(key)
        except KeyError:
            return None
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Could not load consultation {consult_note_id}: {exc}") from exc
        try:
            return ConsultationRecord.model_validate_json(raw)
        except ValidationError as exc:
            raise PersistenceError(f"Corrupt consultation document {key}: {exc}") from exc

    def save_consultation_record(self, record: ConsultationRecord) -> None:
        key = CONSULT_NOTE_PREFIX + record.consult_note_id
        try:
            self._backend.save(key, record.model_dump_json())
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Could not save consultation {record.consult_note_id}: {exc}") from exc
        log.info("Stored consultation %s", record.consult_note_id)
