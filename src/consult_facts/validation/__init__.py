"""Validation module: structural checks on extracted facts.

Usage::

    from consult_facts.validation import FactValidator
    report = FactValidator().validate(result.extracted_facts)
    if not report.valid:
        log.warning("Fact validation findings: %s", report.errors)
"""

from __future__ import annotations

from consult_facts.validation.models import FactIssue, FactValidationReport
from consult_facts.validation.validator import FactValidator

__all__ = ["FactIssue", "FactValidationReport", "FactValidator"]
