"""Pluggable persistence: key/value backends and the stores built on them."""

from __future__ import annotations

from consult_facts.persistence.file_backend import FilePersistenceBackend
from consult_facts.persistence.memory_backend import MemoryPersistenceBackend
from consult_facts.persistence.protocols import (
    IConsultationSource,
    IPersistenceBackend,
    ISyntheticRecordStore,
)
from consult_facts.persistence.record_store import (
    DocumentConsultationSource,
    DocumentRecordStore,
)

__all__ = [
    "IPersistenceBackend",
    "ISyntheticRecordStore",
    "IConsultationSource",
    "FilePersistenceBackend",
    "MemoryPersistenceBackend",
    "DocumentRecordStore",
    "DocumentConsultationSource",
]
