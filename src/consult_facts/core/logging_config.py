"""Structured logging configuration using structlog.

Provides JSON logs in production and colored console output in development.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from consult_facts.core.config import ObservabilityConfig


def _add_service_name(service_name: str):
    """Processor that stamps every entry with the configured service name."""

    def processor(logger: object, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def setup_logging(config: ObservabilityConfig) -> None:
    """Configure structured logging on the root logger."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service_name(config.service_name),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    use_json = config.log_format == "json" or (
        config.log_format == "auto" and not sys.stderr.isatty()
    )
    final_processors: list = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if use_json:
        final_processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # foreign_pre_chain lets stdlib records from logging.getLogger() carry the
    # same fields (and bound contextvars) as structlog-native ones
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=final_processors,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("consult_facts").setLevel(level)


def bind_run_context(**fields: object) -> None:
    """Bind fields to every log entry emitted in the current context."""
    structlog.contextvars.bind_contextvars(**fields)


def unbind_run_context(*keys: str) -> None:
    """Remove previously bound run fields from the logging context."""
    structlog.contextvars.unbind_contextvars(*keys)
