"""structlog setup with trace ids, correlation ids and secret redaction."""

import contextvars
import logging
import sys
from collections.abc import Iterable
from typing import Any

import structlog
from opentelemetry import trace

from .config import LoggingConfig

REDACTED = "***"

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


class SecretRedactor:
    """Processor replacing the values of sensitive event keys."""

    def __init__(self, keys: Iterable[str]):
        self.keys = {key.lower() for key in keys}

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key in event_dict:
            if key.lower() in self.keys and event_dict[key] is not None:
                event_dict[key] = REDACTED
        return event_dict


def add_trace_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Attach the active span's ids so log lines can be joined with traces."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict.setdefault("trace_id", trace.format_trace_id(span_context.trace_id))
        event_dict.setdefault("span_id", trace.format_span_id(span_context.span_id))
    return event_dict


def add_correlation_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    correlation_id = _correlation_id.get()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def configure_structured_logging(config: LoggingConfig) -> None:
    """Install the structlog processor chain described by ``config``."""
    level = getattr(logging, config.level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if config.include_trace_context:
        processors.append(add_trace_context)
    if config.include_correlation_id:
        processors.append(add_correlation_context)
    if config.redact_keys:
        processors.append(SecretRedactor(config.redact_keys))

    if config.renderer == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def set_correlation_id(correlation_id: str | None) -> None:
    """Tag subsequent log events in this context with ``correlation_id``."""
    _correlation_id.set(correlation_id)


def get_correlation_id() -> str | None:
    return _correlation_id.get()
