"""Telemetry and observability for specforge.

OpenTelemetry-based tracing on top of Strands' built-in telemetry, plus
logging setup.

Usage:
    from specforge.telemetry import init_telemetry, pipeline_span

    init_telemetry()
    with pipeline_span("spec-generation", user_prompt) as span:
        ...

Environment Variables:
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR) - default: INFO
    OTEL_EXPORTER_OTLP_ENDPOINT: OTLP collector endpoint - default: http://localhost:4317
    OTEL_SERVICE_NAME: Service name for traces - default: specforge
    OTEL_TRACES_EXPORTER: Exporter type (otlp, console, none) - default: none
    OTEL_SDK_DISABLED: Disable all telemetry - default: false
"""

from .config import (
    ExporterType,
    TelemetryConfig,
    init_telemetry,
    is_telemetry_enabled,
    shutdown_telemetry,
)
from .spans import (
    current_span,
    get_tracer,
    phase_span,
    pipeline_span,
    record_error,
    record_phase_event,
)

__all__ = [
    # Configuration
    "ExporterType",
    "TelemetryConfig",
    "init_telemetry",
    "shutdown_telemetry",
    "is_telemetry_enabled",
    # Spans
    "current_span",
    "get_tracer",
    "pipeline_span",
    "phase_span",
    "record_error",
    "record_phase_event",
]
