"""Validation data models: issues and reports for extracted facts."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FactIssue:
    """A single structural violation found on one fact."""

    fact_index: int
    question_id: str
    field_path: str
    message: str

    def __str__(self) -> str:
        label = self.question_id or "<missing>"
        return f"Fact {self.fact_index} ({label}): {self.message}"


@dataclass
class FactValidationReport:
    """Aggregated result of validating a list of facts."""

    total_facts: int = 0
    issues: list[FactIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues

    @property
    def errors(self) -> list[str]:
        """Human-readable issue messages, in fact order."""
        return [str(issue) for issue in self.issues]

    def issues_by_field(self) -> dict[str, list[FactIssue]]:
        """Group issues by the fact field they concern."""
        grouped: dict[str, list[FactIssue]] = {}
        for issue in self.issues:
            grouped.setdefault(issue.field_path, []).append(issue)
        return grouped
