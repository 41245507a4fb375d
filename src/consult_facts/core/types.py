"""Shared type aliases and constants for the framework layer."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

# Injectable wall clock; must return a timezone-aware datetime
Clock = Callable[[], datetime]

# Increment when extraction logic changes (vMAJOR.MINOR.PATCH)
EXTRACTOR_VERSION = "v1.0.0"

# Marker stored in synthetic record metadata
SYNTHETIC_SOURCE = "consultation_extraction"

DEFAULT_CONSULTATION_FUNNEL = "stress-assessment"
MIN_CONFIDENCE_THRESHOLD = 0.5
DEFAULT_RULE_CONFIDENCE = 0.7
