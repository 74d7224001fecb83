"""Configuration for observability components."""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TracingConfig(BaseModel):
    """Span sampling, limits and export."""

    enabled: bool = True
    # OTLP/HTTP traces endpoint, e.g. http://localhost:4318/v1/traces
    otlp_endpoint: str | None = None
    otlp_headers: dict[str, str] = Field(default_factory=dict)
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    max_attribute_length: int = Field(default=1024, ge=16)
    max_export_batch_size: int = Field(default=512, ge=1)
    export_timeout_millis: int = Field(default=30000, ge=1)


class LoggingConfig(BaseModel):
    """structlog processor chain and rendering."""

    level: str = "INFO"
    renderer: Literal["json", "console"] = "json"
    include_trace_context: bool = True
    include_correlation_id: bool = True
    # Event keys whose values are replaced before rendering.
    redact_keys: list[str] = Field(
        default_factory=lambda: ["password", "secret", "access_token", "token"]
    )


class ObservabilityConfig(BaseSettings):
    """Process-wide observability settings, read from ``OBSERVABILITY_*``."""

    model_config = SettingsConfigDict(
        env_prefix="OBSERVABILITY_", env_nested_delimiter="__"
    )

    enabled: bool = True
    environment: str = "development"
    service_name: str = "synapse-sql-pool-client"
    service_version: str = "1.0.0"

    tracing: TracingConfig = Field(default_factory=TracingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Extra OpenTelemetry resource attributes, e.g. {"cloud.region": "westeurope"}
    resource_attributes: dict[str, str] = Field(default_factory=dict)


_observability_config: ObservabilityConfig | None = None


def get_observability_config() -> ObservabilityConfig:
    """Get the observability configuration singleton."""
    global _observability_config

    if _observability_config is None:
        _observability_config = ObservabilityConfig()

    return _observability_config
