"""Mapping registry, reference rules and their confidence policy.

Usage::

    from consult_facts.mapping import build_default_registry, load_policy
    registry = build_default_registry(load_policy(Path("policy.yaml")))
    rule = registry.rule_for("sleep_quality")
"""

from __future__ import annotations

from consult_facts.mapping.policy import (
    DEFAULT_POLICY,
    ConfidencePolicy,
    load_policy,
    parse_policy,
)
from consult_facts.mapping.registry import (
    MappingRegistry,
    MappingRule,
    build_default_registry,
    default_rules,
)

__all__ = [
    "ConfidencePolicy",
    "DEFAULT_POLICY",
    "load_policy",
    "parse_policy",
    "MappingRegistry",
    "MappingRule",
    "build_default_registry",
    "default_rules",
]
