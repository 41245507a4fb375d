"""Fact validator: structural invariants on extracted facts.

Validation is advisory.  It accumulates every violation instead of
stopping at the first one, and leaves the abort-or-log decision to the
caller.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Iterable

from consult_facts.models import ExtractedFact
from consult_facts.validation.models import FactIssue, FactValidationReport


def is_integer_value(value: Any) -> bool:
    """True for whole numbers (``7`` or ``7.0``); False for bools, NaN and fractions."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value) and value.is_integer()


def is_valid_timestamp(value: Any) -> bool:
    if isinstance(value, datetime):
        return True
    if not isinstance(value, str) or not value:
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


class FactValidator:
    """Checks question id, integer value, confidence bounds, source and timestamp."""

    def validate(self, facts: Iterable[ExtractedFact]) -> FactValidationReport:
        report = FactValidationReport()
        for index, fact in enumerate(facts):
            report.total_facts += 1
            report.issues.extend(self._check_fact(index, fact))
        return report

    @staticmethod
    def _check_fact(index: int, fact: ExtractedFact) -> list[FactIssue]:
        question_id = fact.question_id if isinstance(fact.question_id, str) else ""
        issues: list[FactIssue] = []

        def issue(field_path: str, message: str) -> None:
            issues.append(FactIssue(index, question_id, field_path, message))

        if not question_id:
            issue("questionId", "Invalid questionId (must be non-empty string)")

        if not is_integer_value(fact.answer_value):
            issue("answerValue", f"answerValue must be integer, got {fact.answer_value!r}")

        confidence = fact.confidence
        if (
            isinstance(confidence, bool)
            or not isinstance(confidence, (int, float))
            or not 0.0 <= confidence <= 1.0
        ):
            issue("confidence", f"confidence must be 0-1, got {confidence!r}")

        if not isinstance(fact.source, str) or not fact.source:
            issue("source", "Missing source attribution")

        if not is_valid_timestamp(fact.extracted_at):
            issue("extractedAt", f"extractedAt is not a valid timestamp: {fact.extracted_at!r}")

        return issues
