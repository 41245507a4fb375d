"""Persistence protocols: key/value backends, the record store, the consultation source."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from consult_facts.models import (
    ConsultationRecord,
    PersistedFact,
    SyntheticRecord,
    SyntheticRecordMetadata,
)


@runtime_checkable
class IPersistenceBackend(Protocol):
    """Key/value storage for serialized JSON documents (memory, file)."""

    def save(self, key: str, data: str) -> None:
        """Save serialized data under the given key."""
        ...

    def load(self, key: str) -> str:
        """Load serialized data by key. Raises KeyError if not found."""
        ...

    def exists(self, key: str) -> bool:
        ...

    def delete(self, key: str) -> None:
        """Delete data by key (no-op if not found)."""
        ...

    def list_keys(self, prefix: str = "") -> list[str]:
        ...


@runtime_checkable
class ISyntheticRecordStore(Protocol):
    """Relational-style store for synthetic records and their fact rows.

    Implementations raise :class:`~consult_facts.exceptions.PersistenceError`
    (or a subclass) when an operation fails.
    """

    def resolve_funnel_id(self, slug: str) -> Optional[str]:
        """Map a funnel/category slug to its internal id, or None if unknown."""
        ...

    def insert_record(self, record: SyntheticRecord) -> str:
        """Insert a new record and return its id."""
        ...

    def get_record(self, record_id: str) -> SyntheticRecord:
        ...

    def update_record_metadata(
        self,
        record_id: str,
        metadata: SyntheticRecordMetadata,
        updated_at: datetime,
    ) -> None:
        ...

    def delete_record(self, record_id: str) -> None:
        ...

    def find_latest_record(self, consult_note_id: str, source: str) -> Optional[SyntheticRecord]:
        """Most recently created record whose metadata references this consultation and source."""
        ...

    def insert_facts(self, facts: list[PersistedFact]) -> None:
        ...

    def delete_facts(self, record_id: str) -> None:
        ...

    def list_facts(self, record_id: str) -> list[PersistedFact]:
        ...


@runtime_checkable
class IConsultationSource(Protocol):
    """Read accessor onto the consultation authoring subsystem."""

    def get_consultation_record(self, consult_note_id: str) -> Optional[ConsultationRecord]:
        ...
