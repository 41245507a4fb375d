"""Mapping registry: the ordered, immutable set of extraction rules.

Each rule binds a questionnaire question id to a pure extraction function
and an optional confidence estimator.  The registry is built once at
startup and never mutated::

    registry = build_default_registry()
    problems = registry.validate_configuration()
    if problems:
        raise ConfigurationError("Invalid mapping registry", problems)
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from functools import partial
from typing import Callable, Iterable, Iterator, Optional

from consult_facts.content import ConsultNoteContent
from consult_facts.mapping import rules
from consult_facts.mapping.policy import DEFAULT_POLICY, ConfidencePolicy

log = logging.getLogger(__name__)

ExtractFn = Callable[[ConsultNoteContent], Optional[int]]
ConfidenceFn = Callable[[ConsultNoteContent], float]


@dataclass(frozen=True)
class MappingRule:
    """Binds one target question to its extraction and confidence logic."""

    question_id: str
    question_label: str
    description: str
    extract: Optional[ExtractFn]
    confidence: Optional[ConfidenceFn] = None

    @property
    def source(self) -> str:
        """Audit label stored with every fact this rule produces."""
        return "consultation." + self.question_label.strip().lower().replace(" ", "_")


class MappingRegistry:
    """Ordered, read-only collection of :class:`MappingRule`."""

    def __init__(self, mapping_rules: Iterable[MappingRule]) -> None:
        self._rules: tuple[MappingRule, ...] = tuple(mapping_rules)

    def __iter__(self) -> Iterator[MappingRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def rules(self) -> tuple[MappingRule, ...]:
        return self._rules

    def rule_for(self, question_id: str) -> Optional[MappingRule]:
        """Return the first rule targeting *question_id*, or None."""
        for rule in self._rules:
            if rule.question_id == question_id:
                return rule
        return None

    def all_question_ids(self) -> list[str]:
        return [rule.question_id for rule in self._rules]

    def validate_configuration(self) -> list[str]:
        """Return every violated registry invariant (empty list means valid)."""
        problems: list[str] = []

        counts = Counter(rule.question_id for rule in self._rules if rule.question_id)
        duplicates = sorted(qid for qid, n in counts.items() if n > 1)
        if duplicates:
            problems.append(f"Duplicate question IDs found: {', '.join(duplicates)}")

        for index, rule in enumerate(self._rules):
            if not rule.question_id:
                problems.append(f"Mapping {index} missing questionId")
            if not rule.question_label:
                problems.append(f"Mapping {index} missing questionLabel")
            if not rule.description:
                problems.append(f"Mapping {index} missing description")
            if not callable(rule.extract):
                problems.append(f"Mapping {index} missing extractionLogic")
            if rule.confidence is not None and not callable(rule.confidence):
                problems.append(f"Mapping {index} confidenceEstimator is not callable")

        return problems


def default_rules(policy: ConfidencePolicy = DEFAULT_POLICY) -> list[MappingRule]:
    """The reference consultation-to-question mappings, bound to *policy*."""
    return [
        MappingRule(
            question_id="stress_level_overall",
            question_label="Overall Stress Level",
            description="Maps problem list size to stress level (0-10 scale)",
            extract=rules.extract_stress_level,
            confidence=partial(rules.stress_level_confidence, policy=policy),
        ),
        MappingRule(
            question_id="sleep_quality",
            question_label="Sleep Quality",
            description="Extracts sleep quality score from objective data or HPI",
            extract=rules.extract_sleep_quality,
            confidence=partial(rules.sleep_quality_confidence, policy=policy),
        ),
        MappingRule(
            question_id="functional_impairment",
            question_label="Functional Impairment",
            description="Maps functional impact description to impairment score",
            extract=rules.extract_functional_impairment,
            confidence=partial(rules.functional_impairment_confidence, policy=policy),
        ),
        MappingRule(
            question_id="red_flags_count",
            question_label="Red Flags Count",
            description="Number of positive red flags identified",
            extract=rules.extract_red_flags_count,
            confidence=partial(rules.red_flags_confidence, policy=policy),
        ),
    ]


def build_default_registry(policy: ConfidencePolicy = DEFAULT_POLICY) -> MappingRegistry:
    registry = MappingRegistry(default_rules(policy))
    log.debug("Built mapping registry with %d rule(s), policy v%d", len(registry), policy.version)
    return registry
