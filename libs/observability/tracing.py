"""Tracing helpers shared by instrumented libraries."""

from typing import Any

from opentelemetry import trace


def get_current_span() -> trace.Span:
    """Get the currently active span."""
    return trace.get_current_span()


def truncate_attribute_value(value: Any, max_length: int) -> Any:
    """Stringify non-primitive values and cut strings to ``max_length``."""
    if isinstance(value, bool | int | float):
        return value
    str_value = str(value)
    if len(str_value) > max_length:
        str_value = str_value[: max_length - 3] + "..."
    return str_value


def add_span_event(name: str, attributes: dict[str, Any] | None = None) -> None:
    """Add an event to the current active span."""
    span = get_current_span()
    if span and span.is_recording():
        span.add_event(name, attributes)
