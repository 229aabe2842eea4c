"""Custom span creation for pipeline and phase-level tracing.

This module provides context managers for creating OpenTelemetry spans at
the pipeline and phase level. These wrap the automatic agent/LLM spans
created by Strands.

Span Hierarchy:
    pipeline_span (root)
    └── phase_span (per phase execution)
        └── agent_span (created by Strands)
            └── llm_span (created by Strands)
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import StatusCode

logger = logging.getLogger(__name__)

TRACER_NAME = "specforge.pipeline"


def get_tracer():
    """Get the OpenTelemetry tracer for custom spans.

    Without a configured SDK the API returns a no-op tracer, so spans are
    always safe to create.
    """
    return trace.get_tracer(TRACER_NAME)


def current_span():
    return trace.get_current_span()


@contextmanager
def pipeline_span(
    pipeline_name: str,
    user_prompt: str,
    run_id: str | None = None,
    **attributes: Any,
) -> Generator[Any, None, None]:
    """Create the root span for one pipeline run.

    Args:
        pipeline_name: Name of the pipeline (e.g., "spec-generation")
        user_prompt: The project description being elaborated
        run_id: Optional PipelineRun id for correlation
        **attributes: Additional span attributes

    Example:
        with pipeline_span("spec-generation", "Build a todo app") as span:
            span.set_attribute("custom.field", "value")
    """
    span_attributes = {
        "pipeline.name": pipeline_name,
        "pipeline.user_prompt": user_prompt[:500],  # Truncate for safety
        "pipeline.user_prompt_length": len(user_prompt),
    }
    if run_id:
        span_attributes["pipeline.run_id"] = run_id
    span_attributes.update(attributes)

    with get_tracer().start_as_current_span(
        name=f"pipeline:{pipeline_name}",
        attributes=span_attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
            span.set_status(StatusCode.OK)
        except Exception as e:
            span.record_exception(e)
            span.set_status(StatusCode.ERROR, str(e))
            raise


@contextmanager
def phase_span(
    phase: str,
    iteration: int,
    **attributes: Any,
) -> Generator[Any, None, None]:
    """Create a span for one phase execution.

    This should be called within a pipeline_span context so phases are
    properly nested under their parent run.

    Args:
        phase: Phase name (e.g., "decomposition")
        iteration: 1-based execution count of this phase in the run
        **attributes: Additional span attributes
    """
    span_attributes = {"phase.name": phase, "phase.iteration": iteration}
    span_attributes.update(attributes)

    with get_tracer().start_as_current_span(
        name=f"phase:{phase}",
        attributes=span_attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
            span.set_status(StatusCode.OK)
        except Exception as e:
            record_error(span, e, phase=phase)
            raise


def record_phase_event(span, event_name: str, **attributes) -> None:
    """Record an event within a phase span.

    Args:
        span: The span to add the event to
        event_name: Name of the event (e.g., "loop_back", "agent_attempt_failed")
        **attributes: Event attributes
    """
    span.add_event(event_name, attributes=attributes)


def record_error(span, error: Exception, phase: str | None = None) -> None:
    """Record an error to a span with structured attributes."""
    error_message = str(error)

    span.set_attribute("error", True)
    span.set_attribute("error.type", type(error).__name__)
    span.set_attribute("error.message", error_message[:500])  # Truncate for safety
    if phase:
        span.set_attribute("error.phase", phase)

    span.record_exception(error)
    span.set_status(StatusCode.ERROR, error_message[:100])
