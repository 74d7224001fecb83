"""Diagnostic spans wrapping each client operation."""

from typing import Any

from opentelemetry import context, trace
from opentelemetry.trace import Status, StatusCode

from libs.observability.tracing import truncate_attribute_value

DIAGNOSTIC_NAMESPACE = "synapse_sql_pool"
DEFAULT_MAX_ATTRIBUTE_LENGTH = 1024


def span_name(operation: str) -> str:
    return f"{DIAGNOSTIC_NAMESPACE}.{operation}"


def filter_attributes(
    attributes: dict[str, Any], max_length: int = DEFAULT_MAX_ATTRIBUTE_LENGTH
) -> dict[str, Any]:
    """Prefix attribute keys and truncate long string values."""
    filtered_attrs = {}
    for key, value in attributes.items():
        if value is None:
            continue
        filtered_attrs[f"{DIAGNOSTIC_NAMESPACE}.{key}"] = truncate_attribute_value(
            value, max_length
        )
    return filtered_attrs


class OperationSpan:
    """
    Context manager for one traced client operation.

    The span starts on entry with the operation's identifying attributes and
    ends on exit. A clean exit marks it OK; an exception records the error
    message and marks it ERROR. The span is ended on every path.
    """

    def __init__(
        self,
        tracer: trace.Tracer,
        operation: str,
        attributes: dict[str, Any] | None = None,
        max_attribute_length: int = DEFAULT_MAX_ATTRIBUTE_LENGTH,
    ):
        self.name = span_name(operation)
        self.tracer = tracer
        self.attributes = attributes or {}
        self.max_attribute_length = max_attribute_length
        self.span: trace.Span | None = None
        self.failed = False
        self._token: object | None = None

    def __enter__(self) -> "OperationSpan":
        self.span = self.tracer.start_span(self.name, kind=trace.SpanKind.CLIENT)
        self._token = context.attach(trace.set_span_in_context(self.span))
        self.record(**self.attributes)
        return self

    def record(self, **attributes: Any) -> None:
        """Add metadata to the span."""
        if self.span is not None and attributes:
            self.span.set_attributes(
                filter_attributes(attributes, self.max_attribute_length)
            )

    def fail(self, error: BaseException) -> None:
        """Mark the span failed with the error's message."""
        if self.span is None or self.failed:
            return
        self.failed = True
        message = str(error) or type(error).__name__
        self.record(error=message)
        if isinstance(error, Exception):
            self.span.record_exception(error)
        self.span.set_status(Status(StatusCode.ERROR, message))

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.span is None:
            return
        if exc_type is not None:
            self.fail(exc_val)
        elif not self.failed:
            self.span.set_status(Status(StatusCode.OK))
        self.span.end()
        if self._token is not None:
            context.detach(self._token)
            self._token = None
