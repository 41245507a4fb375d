"""Reference extraction rules: consultation sections to 0-10 questionnaire scores.

Every ``extract_*`` function is pure and returns an ``int`` or ``None``
("cannot determine").  Every ``*_confidence`` function is pure and takes the
active :class:`ConfidencePolicy` as its second argument.
"""

from __future__ import annotations

from typing import Optional

from consult_facts.content import ConsultNoteContent, parse_number
from consult_facts.mapping.policy import ConfidencePolicy

RED_FLAGS_CAP = 10

# Checked in order; the first tier with a matching keyword wins
IMPACT_TIERS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("severe", "unable"), 9),
    (("significant", "major"), 7),
    (("moderate",), 5),
    (("mild", "minor"), 3),
    (("minimal", "none"), 1),
)
IMPACT_DEFAULT_SCORE = 5

SLEEP_KEYWORDS = ("sleep", "insomnia")


# ── Overall stress from problem list ────────────────────────────────


def extract_stress_level(content: ConsultNoteContent) -> Optional[int]:
    count = content.problem_count()
    if count is None:
        return None

    if count == 0:
        return 1
    if count >= 7:
        return 9
    if count >= 5:
        return 7
    if count >= 3:
        return 5
    return 3


def stress_level_confidence(content: ConsultNoteContent, policy: ConfidencePolicy) -> float:
    count = content.problem_count()
    if count is None:
        return policy.problem_list_missing
    if count >= 3:
        return policy.problem_list_structured
    return policy.problem_list_sparse


# ── Sleep quality from objective data or HPI ────────────────────────


def _sleep_hours(content: ConsultNoteContent) -> Optional[float]:
    return parse_number(content.objective_value("sleep_hours"))


def _mentions_sleep(content: ConsultNoteContent) -> bool:
    symptoms = content.associated_symptoms() or []
    return any(keyword in s.lower() for s in symptoms for keyword in SLEEP_KEYWORDS)


def extract_sleep_quality(content: ConsultNoteContent) -> Optional[int]:
    hours = _sleep_hours(content)
    if hours is not None:
        if hours < 5:
            return 2
        if hours < 6:
            return 4
        if 7 <= hours <= 9:
            return 8
        if hours > 9:
            return 6
        return 5

    if _mentions_sleep(content):
        return 3
    return None


def sleep_quality_confidence(content: ConsultNoteContent, policy: ConfidencePolicy) -> float:
    if _sleep_hours(content) is not None:
        return policy.sleep_objective
    if _mentions_sleep(content):
        return policy.sleep_symptom
    return policy.sleep_missing


# ── Functional impairment from HPI free text ────────────────────────


def _impact_tier(impact: str) -> Optional[int]:
    text = impact.lower()
    for keywords, score in IMPACT_TIERS:
        if any(keyword in text for keyword in keywords):
            return score
    return None


def extract_functional_impairment(content: ConsultNoteContent) -> Optional[int]:
    impact = content.functional_impact()
    if impact is None:
        return None
    tier = _impact_tier(impact)
    return IMPACT_DEFAULT_SCORE if tier is None else tier


def functional_impairment_confidence(
    content: ConsultNoteContent, policy: ConfidencePolicy
) -> float:
    impact = content.functional_impact()
    if impact is None:
        return policy.impact_missing
    if _impact_tier(impact) is None:
        return policy.impact_unqualified
    return policy.impact_qualified


# ── Red flag count ──────────────────────────────────────────────────


def extract_red_flags_count(content: ConsultNoteContent) -> Optional[int]:
    # "Not screened" yields no fact; "screened, none positive" yields 0
    screening = content.red_flags_screening()
    if screening is None or not screening.screened:
        return None
    return min(len(screening.positive), RED_FLAGS_CAP)


def red_flags_confidence(content: ConsultNoteContent, policy: ConfidencePolicy) -> float:
    screening = content.red_flags_screening()
    if screening is not None and screening.screened:
        return policy.red_flags_screened
    return policy.red_flags_unscreened
