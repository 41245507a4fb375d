"""Startup validation: fail-fast on critical misconfigurations."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from consult_facts.exceptions import ConfigurationError

if TYPE_CHECKING:
    from consult_facts.core.config import AppSettings
    from consult_facts.mapping.registry import MappingRegistry

log = logging.getLogger(__name__)


def validate_settings(settings: AppSettings, registry: MappingRegistry) -> None:
    """Validate settings and the mapping registry. Raises ConfigurationError on fatal misconfig."""
    problems = registry.validate_configuration()
    problems.extend(_check_funnels(settings))
    if problems:
        for problem in problems:
            log.error("Configuration problem: %s", problem)
        raise ConfigurationError(
            f"Refusing to start: {len(problems)} configuration problem(s)", problems
        )
    _check_persistence(settings)


def _check_funnels(settings: AppSettings) -> list[str]:
    """The default funnel slug must resolve, or every first run would fail."""
    slug = settings.pipeline.default_funnel_slug
    if not settings.persistence.funnels.get(slug):
        return [
            f"Default funnel '{slug}' is not in CONSULT_FACTS_PERSISTENCE_FUNNELS "
            f"(known: {', '.join(sorted(settings.persistence.funnels)) or 'none'})"
        ]
    return []


def _check_persistence(settings: AppSettings) -> None:
    """Warn about volatile or container-local persistence."""
    is_container = bool(
        os.environ.get("ECS_CONTAINER_METADATA_URI")
        or os.environ.get("KUBERNETES_SERVICE_HOST")
    )
    if is_container and settings.persistence.backend == "file":
        log.warning(
            "CONSULT_FACTS_PERSISTENCE_BACKEND=file in a container environment. "
            "Synthetic records will be lost on container restart unless %s is a mounted volume.",
            settings.persistence.store_path,
        )
    if settings.persistence.backend == "memory":
        log.info("Using in-memory persistence; records do not outlive the process")
    if not settings.persistence.enforce_unique and not settings.pipeline.serialize_runs:
        log.warning(
            "Neither enforce_unique nor serialize_runs is set: concurrent runs for one "
            "consultation may create duplicate synthetic records"
        )
