"""Telemetry configuration and initialization.

This module handles:
- Reading telemetry configuration from environment variables
- Initializing Strands telemetry with OpenTelemetry
- Setting up Python logging with appropriate levels
"""

import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# Global state
_telemetry_initialized = False
_strands_telemetry = None


class ExporterType(Enum):
    """Supported trace exporters."""

    OTLP = "otlp"
    CONSOLE = "console"
    NONE = "none"


@dataclass
class TelemetryConfig:
    """Configuration for logging and tracing, read from environment variables."""

    log_level: str = "INFO"
    service_name: str = "specforge"
    otlp_endpoint: str = "http://localhost:4317"
    traces_exporter: ExporterType = ExporterType.NONE
    otel_disabled: bool = False

    @classmethod
    def from_env(cls) -> "TelemetryConfig":
        """Create config from environment variables."""
        exporter_str = os.getenv("OTEL_TRACES_EXPORTER", "none").lower()
        try:
            exporter = ExporterType(exporter_str)
        except ValueError:
            logger.warning(f"Unknown exporter type '{exporter_str}', traces will not be exported")
            exporter = ExporterType.NONE

        otel_disabled = os.getenv("OTEL_SDK_DISABLED", "false").lower() in ("true", "1", "yes")

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            service_name=os.getenv("OTEL_SERVICE_NAME", "specforge"),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317"),
            traces_exporter=exporter,
            otel_disabled=otel_disabled,
        )


def _setup_logging(config: TelemetryConfig) -> None:
    """Configure the root and specforge loggers with a structured console format."""
    level = logging.getLevelNamesMapping().get(config.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(console_handler)

    logging.getLogger("strands").setLevel(level)
    logging.getLogger("specforge").setLevel(level)

    # Reduce noise from third-party libraries unless in DEBUG mode
    if level > logging.DEBUG:
        for noisy in ("urllib3", "botocore", "httpx", "anthropic", "burr"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info(f"Logging configured: level={config.log_level}")


def _setup_strands_telemetry(config: TelemetryConfig) -> Any:
    """Initialize Strands telemetry with an OpenTelemetry tracer provider.

    Returns the StrandsTelemetry instance, or None when tracing is disabled
    or the exporter extras are not installed.
    """
    if config.otel_disabled:
        logger.info("OpenTelemetry disabled via OTEL_SDK_DISABLED")
        return None

    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from strands.telemetry import StrandsTelemetry

    tracer_provider = TracerProvider(resource=Resource.create({SERVICE_NAME: config.service_name}))
    trace.set_tracer_provider(tracer_provider)
    telemetry = StrandsTelemetry(tracer_provider=tracer_provider)

    try:
        if config.traces_exporter == ExporterType.OTLP:
            telemetry.setup_otlp_exporter(endpoint=config.otlp_endpoint)
            logger.info(f"OTLP exporter configured: endpoint={config.otlp_endpoint}")
        elif config.traces_exporter == ExporterType.CONSOLE:
            telemetry.setup_console_exporter()
            logger.info("Console exporter configured")
    except ImportError as e:
        logger.warning(
            f"Trace exporter unavailable ({e}). Install with: pip install 'strands-agents[otel]'"
        )

    return telemetry


def init_telemetry(config: TelemetryConfig | None = None) -> None:
    """Initialize logging and tracing once per process.

    Args:
        config: Optional configuration. If not provided, reads from environment.
    """
    global _telemetry_initialized, _strands_telemetry

    if _telemetry_initialized:
        logger.debug("Telemetry already initialized, skipping")
        return

    if config is None:
        config = TelemetryConfig.from_env()

    _setup_logging(config)
    _strands_telemetry = _setup_strands_telemetry(config)

    _telemetry_initialized = True
    logger.info(
        f"Telemetry initialized: service={config.service_name}, "
        f"exporter={config.traces_exporter.value}, "
        f"otel_disabled={config.otel_disabled}"
    )


def shutdown_telemetry() -> None:
    """Reset telemetry state; Strands flushes its exporters at exit."""
    global _telemetry_initialized, _strands_telemetry

    if not _telemetry_initialized:
        return

    _telemetry_initialized = False
    _strands_telemetry = None
    logger.info("Telemetry shutdown complete")


def is_telemetry_enabled() -> bool:
    """Check if telemetry is initialized and tracing is enabled."""
    return _telemetry_initialized and _strands_telemetry is not None
