"""Phase Orchestrator.

Drives one pipeline run through the six phases on a Burr Application and
owns the run's ``PipelineRun`` state. This module is the high-level
execution layer: it adds telemetry, cancellation and failure bookkeeping on
top of the graph defined in :mod:`specforge.workflow.workflow_spec`.
"""

import dataclasses
import logging
import time
from collections.abc import Callable
from typing import Any

from specforge.agents.contracts import get_contract
from specforge.agents.invoker import AgentInvoker, Collaborator
from specforge.config import (
    DEFAULT_ITERATION_CONFIG,
    DEFAULT_RETRY_CONFIG,
    EventType,
    IterationConfig,
    PhaseName,
    PipelineSettings,
    PipelineStatus,
    RetryConfig,
)
from specforge.exceptions import ConfigurationError, PipelineCancelledError
from specforge.models.phases import DiscoveryInput, SpecPack
from specforge.telemetry.spans import pipeline_span
from specforge.workflow.burr_actions import PipelineContext
from specforge.workflow.events import EventEmitter, EventListener
from specforge.workflow.run_state import PipelineRun
from specforge.workflow.workflow_builder import build_workflow
from specforge.workflow.workflow_spec import TERMINAL_PHASE

logger = logging.getLogger(__name__)

PIPELINE_NAME = "spec-generation"


class PipelineOrchestrator:
    """Runs the discovery → synthesis pipeline with its three loop pairs.

    Args:
        collaborators: One collaborator per phase. A collaborator is any
            callable taking a ``PhaseRequest`` and returning a pydantic
            model, a dict, or text containing JSON.
        iteration_config: Loop budgets (defaults to 3 / 3 / unlimited).
        retry_config: Per-call retry, backoff and timeout policy.
        sleep: Blocking wait used between retry attempts.
        enable_tracking: Record runs in the Burr tracking UI.
        tracking_project: Burr tracking project; defaults to the workflow's.
        on_phase_complete: Callback ``(phase, next_route)`` after each phase.
    """

    def __init__(
        self,
        collaborators: dict[PhaseName, Collaborator],
        iteration_config: IterationConfig | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
        enable_tracking: bool = False,
        tracking_project: str | None = None,
        on_phase_complete: Callable[[str, str], None] | None = None,
    ):
        collaborators = {PhaseName(phase): c for phase, c in collaborators.items()}
        missing = [phase.value for phase in PhaseName if phase not in collaborators]
        if missing:
            raise ConfigurationError(f"Missing collaborators for phases: {', '.join(missing)}")

        self.iteration_config = iteration_config or DEFAULT_ITERATION_CONFIG
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self.enable_tracking = enable_tracking
        self.tracking_project = tracking_project
        self.on_phase_complete = on_phase_complete
        self._invokers = {
            phase: AgentInvoker(get_contract(phase), collaborators[phase], self.retry_config, sleep)
            for phase in PhaseName
        }
        self._emitter = EventEmitter()
        self._run: PipelineRun | None = None
        self._cancel_requested = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def on_event(self, listener: EventListener) -> None:
        """Register a listener for every PipelineEvent of subsequent runs."""
        self._emitter.on_event(listener)

    def cancel(self) -> None:
        """Request cancellation; honoured at the next phase boundary."""
        logger.info("Cancellation requested")
        self._cancel_requested = True

    def get_state(self) -> PipelineRun | None:
        """Return a snapshot of the current run, or None before ``start``."""
        if self._run is None:
            return None
        return self._run.snapshot()

    def start(self, initial_input: DiscoveryInput | dict | str) -> SpecPack:
        """Run the pipeline to completion and return the final spec pack.

        Raises:
            AgentInvocationError: A phase exhausted its retries.
            QualityGateError: A finite validation budget ran out.
            PipelineCancelledError: ``cancel()`` was observed between phases.
        """
        payload = self._coerce_input(initial_input)
        run = PipelineRun.create(self.iteration_config)
        self._run = run
        start_time = time.time()

        context = PipelineContext(
            run=run,
            emitter=self._emitter,
            invokers=self._invokers,
            iteration_config=self.iteration_config,
        )
        app = build_workflow(
            context,
            payload,
            on_phase_complete=self.on_phase_complete,
            enable_tracking=self.enable_tracking,
            tracking_project=self.tracking_project,
        )

        with pipeline_span(PIPELINE_NAME, payload.user_prompt, run_id=run.id) as span:
            logger.info("=" * 60)
            logger.info("PIPELINE EXECUTION STARTED")
            logger.info(f"Run ID: {run.id}")
            logger.info(f"User prompt provided (length={len(payload.user_prompt)})")
            logger.info("=" * 60)

            try:
                self._check_cancelled()
                for step_action, _, _ in app.iterate(halt_after=[TERMINAL_PHASE]):
                    if step_action.name != TERMINAL_PHASE:
                        self._check_cancelled()
            except Exception as e:
                self._fail_run(run, e)
                raise

            synthesis_output = app.state["synthesis"]
            spec_pack = synthesis_output.spec_pack
            run.finish(PipelineStatus.COMPLETED)
            execution_time = time.time() - start_time

            span.set_attribute("pipeline.duration_seconds", execution_time)
            span.set_attribute("pipeline.total_iterations", run.total_iterations)
            span.set_attribute("pipeline.confidence", spec_pack.quality.confidence_score)

            self._emitter.emit(
                EventType.PIPELINE_COMPLETED,
                confidence=spec_pack.quality.confidence_score,
                total_iterations=run.total_iterations,
                budget_exhausted=list(run.budget_exhausted),
                duration=execution_time,
            )

            logger.info("=" * 60)
            logger.info(
                f"PIPELINE COMPLETED in {execution_time:.1f}s "
                f"({run.total_iterations} iterations, "
                f"confidence {spec_pack.quality.confidence_score}/100)"
            )
            logger.info("=" * 60)
            return spec_pack

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce_input(initial_input: DiscoveryInput | dict | str) -> DiscoveryInput:
        if isinstance(initial_input, DiscoveryInput):
            return initial_input
        if isinstance(initial_input, str):
            return DiscoveryInput(user_prompt=initial_input)
        return DiscoveryInput.model_validate(initial_input)

    def _check_cancelled(self) -> None:
        if self._cancel_requested:
            raise PipelineCancelledError()

    def _fail_run(self, run: PipelineRun, error: Exception) -> None:
        run.finish(PipelineStatus.FAILED, error=str(error))
        logger.error("=" * 60)
        logger.error(f"PIPELINE FAILED in phase {run.current_phase.value}: {error}")
        logger.error("=" * 60)
        self._emitter.emit(
            EventType.PIPELINE_FAILED,
            run.current_phase,
            error=str(error),
            error_type=type(error).__name__,
        )


# =============================================================================
# Factories
# =============================================================================


def create_pipeline(
    collaborators: dict[PhaseName, Collaborator],
    iteration_config: IterationConfig | None = None,
    retry_config: RetryConfig | None = None,
    **kwargs: Any,
) -> PipelineOrchestrator:
    """Create an orchestrator over caller-supplied collaborators."""
    return PipelineOrchestrator(
        collaborators,
        iteration_config=iteration_config,
        retry_config=retry_config,
        **kwargs,
    )


def create_specforge_pipeline(
    preset: str | None = None,
    settings: PipelineSettings | None = None,
    llm_validation: bool = False,
) -> PipelineOrchestrator:
    """Create an orchestrator backed by Strands agents.

    Settings default to ``PipelineSettings.from_env()``; ``preset`` overrides
    the settings' model preset. Validation uses the local quality gate
    unless ``llm_validation`` is set.
    """
    from specforge.agents.agent_factory import create_phase_collaborators
    from specforge.telemetry import init_telemetry

    init_telemetry()

    settings = settings or PipelineSettings.from_env()
    if preset is not None:
        settings = dataclasses.replace(settings, preset=preset)

    collaborators = create_phase_collaborators(settings, llm_validation=llm_validation)
    logger.info(
        f"Created specforge pipeline (preset={settings.preset or 'default'}, "
        f"llm_validation={llm_validation})"
    )
    return PipelineOrchestrator(
        collaborators,
        iteration_config=settings.iteration,
        retry_config=settings.retry,
        enable_tracking=settings.enable_tracking,
    )
