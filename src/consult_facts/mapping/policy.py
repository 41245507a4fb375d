"""Confidence policy for the reference extraction rules.

Confidence values are relative trust rankings between rules, not calibrated
probabilities, so they live here as tunable policy rather than inside rule
code.  Overrides can be loaded from a YAML or JSON file::

    version: 2
    confidence:
      sleep_objective: 0.85
      problem_list_sparse: 0.55
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from consult_facts.exceptions import ConfigurationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfidencePolicy:
    """Every confidence value the reference rules can emit."""

    problem_list_structured: float = 0.8
    problem_list_sparse: float = 0.6
    problem_list_missing: float = 0.3
    sleep_objective: float = 0.9
    sleep_symptom: float = 0.6
    sleep_missing: float = 0.3
    impact_qualified: float = 0.8
    impact_unqualified: float = 0.5
    impact_missing: float = 0.0
    red_flags_screened: float = 1.0
    red_flags_unscreened: float = 0.0
    version: int = 1


DEFAULT_POLICY = ConfidencePolicy()


def load_policy(path: Path) -> ConfidencePolicy:
    """Load policy overrides from *path* on top of the defaults.

    Raises:
        ConfigurationError: If the file is missing, unparseable, names an
            unknown confidence key, or sets a value outside [0, 1].
    """
    if not path.exists():
        raise ConfigurationError(f"Confidence policy file not found: {path}")

    raw_text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(raw_text) or {}
        else:
            data = json.loads(raw_text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Could not parse confidence policy {path}: {exc}") from exc

    policy = parse_policy(data)
    log.info("Loaded confidence policy from %s (version %d)", path, policy.version)
    return policy


def parse_policy(data: Any) -> ConfidencePolicy:
    """Build a policy from an already-decoded mapping."""
    if not isinstance(data, dict):
        raise ConfigurationError("Confidence policy must be a mapping")

    overrides = data.get("confidence", {}) or {}
    if not isinstance(overrides, dict):
        raise ConfigurationError("'confidence' must be a mapping of name to value")

    known = {f.name for f in fields(ConfidencePolicy)} - {"version"}
    problems: list[str] = []
    values: dict[str, float] = {}
    for name, value in overrides.items():
        if name not in known:
            problems.append(f"Unknown confidence key: {name}")
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            problems.append(f"{name} must be a number, got {value!r}")
            continue
        if not 0.0 <= value <= 1.0:
            problems.append(f"{name} must be 0-1, got {value}")
            continue
        values[name] = float(value)

    if problems:
        raise ConfigurationError("Invalid confidence policy", problems)

    return replace(DEFAULT_POLICY, version=int(data.get("version", 1)), **values)
