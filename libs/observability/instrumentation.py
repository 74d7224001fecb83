"""
Process-wide OpenTelemetry setup and teardown.

The tracer provider is installed once per process by ``configure_observability``
and shared by every client; clients never build their own.
"""

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanLimits, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from .config import ObservabilityConfig, get_observability_config
from .logging import configure_structured_logging

logger = structlog.get_logger(__name__)


class ObservabilityManager:
    """
    Owns logging configuration and the global tracer provider.

    Args:
        config: Settings; defaults to the ``OBSERVABILITY_*`` environment
        exporter: Span exporter override; defaults to OTLP/HTTP when an
            endpoint is configured, otherwise spans are not exported
    """

    def __init__(
        self,
        config: ObservabilityConfig | None = None,
        exporter: SpanExporter | None = None,
    ):
        self.config = config or get_observability_config()
        self.exporter = exporter
        self.tracer_provider: TracerProvider | None = None
        self._initialized = False

    def initialize(self) -> None:
        if self._initialized:
            logger.warning("observability_already_initialized")
            return
        if not self.config.enabled:
            logger.info("observability_disabled")
            return

        configure_structured_logging(self.config.logging)
        if self.config.tracing.enabled:
            self.tracer_provider = self._build_tracer_provider()
            trace.set_tracer_provider(self.tracer_provider)

        self._initialized = True
        logger.info(
            "observability_initialized",
            service_name=self.config.service_name,
            environment=self.config.environment,
            otlp_endpoint=self.config.tracing.otlp_endpoint,
            sample_rate=self.config.tracing.sample_rate,
        )

    def _build_exporter(self) -> SpanExporter | None:
        if self.exporter is not None:
            return self.exporter
        tracing = self.config.tracing
        if not tracing.otlp_endpoint:
            return None

        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter,
        )

        return OTLPSpanExporter(
            endpoint=tracing.otlp_endpoint,
            headers=tracing.otlp_headers or None,
            timeout=tracing.export_timeout_millis / 1000,
        )

    def _build_tracer_provider(self) -> TracerProvider:
        tracing = self.config.tracing
        resource = Resource.create(
            {
                "service.name": self.config.service_name,
                "service.version": self.config.service_version,
                "deployment.environment": self.config.environment,
                **self.config.resource_attributes,
            }
        )
        provider = TracerProvider(
            resource=resource,
            sampler=ParentBased(TraceIdRatioBased(tracing.sample_rate)),
            span_limits=SpanLimits(
                max_span_attribute_length=tracing.max_attribute_length
            ),
        )

        exporter = self._build_exporter()
        if exporter is not None:
            provider.add_span_processor(
                BatchSpanProcessor(
                    exporter,
                    max_export_batch_size=tracing.max_export_batch_size,
                    export_timeout_millis=tracing.export_timeout_millis,
                )
            )
        return provider

    def shutdown(self) -> None:
        """Flush pending spans and release the exporter."""
        if self.tracer_provider is not None:
            try:
                self.tracer_provider.shutdown()
            except Exception as e:
                logger.error("observability_shutdown_failed", error=str(e))
        self._initialized = False
        logger.info("observability_shutdown")

    def get_tracer(self, name: str) -> trace.Tracer:
        if self.tracer_provider is None:
            return trace.NoOpTracer()
        return self.tracer_provider.get_tracer(name)


_observability_manager: ObservabilityManager | None = None


def configure_observability(
    config: ObservabilityConfig | None = None,
    exporter: SpanExporter | None = None,
) -> ObservabilityManager:
    """Create the process-wide manager on first call and initialize it."""
    global _observability_manager

    if _observability_manager is None:
        _observability_manager = ObservabilityManager(config, exporter)
    _observability_manager.initialize()
    return _observability_manager


def get_observability_manager() -> ObservabilityManager | None:
    return _observability_manager


def shutdown_observability() -> None:
    """Shut down and forget the process-wide manager."""
    global _observability_manager

    if _observability_manager is not None:
        _observability_manager.shutdown()
        _observability_manager = None
