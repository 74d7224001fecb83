"""Logging and tracing stack shared by the client libraries."""

from .config import LoggingConfig, ObservabilityConfig, TracingConfig, get_observability_config
from .instrumentation import (
    ObservabilityManager,
    configure_observability,
    get_observability_manager,
    shutdown_observability,
)
from .logging import (
    configure_structured_logging,
    get_correlation_id,
    set_correlation_id,
)
from .tracing import add_span_event, truncate_attribute_value

__all__ = [
    "ObservabilityConfig",
    "TracingConfig",
    "LoggingConfig",
    "get_observability_config",
    "ObservabilityManager",
    "configure_observability",
    "get_observability_manager",
    "shutdown_observability",
    "configure_structured_logging",
    "set_correlation_id",
    "get_correlation_id",
    "add_span_event",
    "truncate_attribute_value",
]
