"""Fact extraction: run the mapping registry over consultation records."""

from __future__ import annotations

from consult_facts.extraction.extractor import FactExtractor

__all__ = ["FactExtractor"]
