"""Exception hierarchy for consult-facts."""

from __future__ import annotations


class ConsultFactsError(Exception):
    """Base exception for all consult-facts errors."""


class ConfigurationError(ConsultFactsError):
    """Raised at startup when the mapping registry, policy or settings are invalid."""

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        super().__init__(message)
        self.problems = list(problems or [])


class PersistenceError(ConsultFactsError):
    """Raised when a store operation fails."""


class DuplicateRecordError(PersistenceError):
    """A synthetic record already exists for this consultation and source."""


class RecordNotFoundError(PersistenceError, KeyError):
    """Raised when a synthetic record id is unknown to the store."""


__all__ = [
    "ConsultFactsError",
    "ConfigurationError",
    "PersistenceError",
    "DuplicateRecordError",
    "RecordNotFoundError",
]
