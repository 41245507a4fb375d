"""Read-only view over raw consultation note content.

The authoring system stores notes as camelCase JSON; imports and fixtures
sometimes use snake_case.  Every accessor returns ``None`` (never raises)
when a section is missing or has the wrong shape, which is how rules tell
"no data" apart from real values.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Optional

_NUMBER_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


def _get(mapping: Any, *keys: str) -> Any:
    """Return the first present key from *keys*, or None."""
    if not isinstance(mapping, dict):
        return None
    for key in keys:
        if key in mapping:
            return mapping[key]
    return None


def _string_list(value: Any) -> Optional[list[str]]:
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, str)]


def parse_number(value: Any) -> Optional[float]:
    """Parse a measurement like ``8``, ``"7.5"`` or ``"6 hours"``; None if not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        match = _NUMBER_RE.match(value)
        if not match:
            return None
        number = float(match.group(1))
    else:
        return None
    # NaN and infinities are not measurements
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class RedFlagsScreening:
    screened: bool
    positive: list[str]


@dataclass(frozen=True)
class ConsultNoteContent:
    """Accessors for the sections extraction rules read."""

    raw: Any

    def problem_count(self) -> Optional[int]:
        """Entries in the problem list, whatever their type; None if absent or malformed.

        Accepts a bare list or the ``{"problems": [...]}`` section.
        """
        section = _get(self.raw, "problemList", "problem_list")
        if isinstance(section, dict):
            section = _get(section, "problems")
        return len(section) if isinstance(section, list) else None

    def objective_values(self) -> dict[str, Any]:
        section = _get(self.raw, "objectiveData", "objective_data")
        values = _get(section, "values")
        return values if isinstance(values, dict) else {}

    def objective_value(self, name: str) -> Any:
        return self.objective_values().get(name)

    def associated_symptoms(self) -> Optional[list[str]]:
        hpi = _get(self.raw, "hpi")
        return _string_list(_get(hpi, "associatedSymptoms", "associated_symptoms"))

    def functional_impact(self) -> Optional[str]:
        hpi = _get(self.raw, "hpi")
        impact = _get(hpi, "functionalImpact", "functional_impact")
        if isinstance(impact, str) and impact.strip():
            return impact
        return None

    def chief_complaint(self) -> Optional[str]:
        section = _get(self.raw, "chiefComplaint", "chief_complaint")
        if isinstance(section, dict):
            section = _get(section, "text")
        return section if isinstance(section, str) else None

    def red_flags_screening(self) -> Optional[RedFlagsScreening]:
        section = _get(self.raw, "redFlagsScreening", "red_flags_screening")
        if not isinstance(section, dict):
            return None
        return RedFlagsScreening(
            screened=_get(section, "screened") is True,
            positive=_string_list(_get(section, "positive")) or [],
        )
