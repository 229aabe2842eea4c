"""Pipeline builder.

Constructs the Burr Application for one PipelineRun from the declarative
``PIPELINE_SPEC``.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from burr.core import ApplicationBuilder
from burr.lifecycle import PostRunStepHook, PreRunStepHook
from burr.tracking import LocalTrackingClient

from specforge.models.phases import DiscoveryInput
from specforge.workflow.burr_actions import PipelineContext
from specforge.workflow.workflow_spec import PIPELINE_SPEC, WorkflowSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifecycle Hooks
# ---------------------------------------------------------------------------


@dataclass
class PipelineProgressHook(PostRunStepHook, PreRunStepHook):
    """Hook to log phase progress and report it to an optional callback."""

    on_phase_complete: Callable[[str, str], None] | None = None
    stage_order: list[str] | None = None

    def pre_run_step(self, *, action, **kwargs):
        """Called before each action runs."""
        stage_index = self._get_stage_index(action.name)
        total_stages = len(self.stage_order) if self.stage_order else 1
        logger.info(f"Starting: {action.name} ({stage_index + 1}/{total_stages})")

    def post_run_step(self, *, action, state, exception=None, **kwargs):
        """Called after each action completes (or raises)."""
        if exception is not None:
            logger.info(f"Aborted: {action.name} ({type(exception).__name__})")
            return

        route = state.get("route", "")
        logger.info(f"Completed: {action.name} (next={route or '-'})")

        if self.on_phase_complete:
            try:
                self.on_phase_complete(action.name, route)
            except (TypeError, AttributeError, ValueError) as e:
                logger.error(f"on_phase_complete callback failed: {e}")

    def _get_stage_index(self, stage_name: str) -> int:
        """Get 0-based index of stage."""
        if self.stage_order:
            try:
                return self.stage_order.index(stage_name)
            except ValueError:
                pass
        return 0


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def build_workflow(
    context: PipelineContext,
    initial_input: DiscoveryInput,
    spec: WorkflowSpec = PIPELINE_SPEC,
    on_phase_complete: Callable | None = None,
    enable_tracking: bool = False,
    tracking_project: str | None = None,
) -> Any:
    """Build a Burr Application for one pipeline run.

    Args:
        context: Run state, emitter, invokers and budgets for the actions.
        initial_input: Discovery input the run starts from.
        spec: Workflow specification.
        on_phase_complete: Callback ``(phase, next_route)`` after each step.
        enable_tracking: Enable Burr tracking UI.
        tracking_project: Override spec's tracking_project.

    Returns:
        Burr Application instance.
    """
    project = tracking_project or spec.tracking_project
    app_id = f"{project}-{context.run.id[:8]}"
    logger.info(f"App ID: {app_id}")

    tracker = None
    if enable_tracking:
        try:
            tracker = LocalTrackingClient(project=project)
            logger.info(f"Burr tracking enabled: {project}")
        except (OSError, ImportError, RuntimeError) as e:
            logger.warning(f"Could not enable tracking: {e}")

    progress_hook = PipelineProgressHook(
        on_phase_complete=on_phase_complete,
        stage_order=spec.stages,
    )

    # NOTE: the context is a non-serializable Python object stored in Burr
    # state, so Burr persistence (checkpoints) is not supported.
    state: dict[str, Any] = {
        "pipeline": context,
        "initial_input": initial_input,
    }
    state.update(spec.build_default_state())

    builder = (
        ApplicationBuilder()
        .with_actions(**spec.actions)
        .with_transitions(*spec.transitions)
        .with_state(**state)
        .with_entrypoint(spec.entrypoint)
        .with_hooks(progress_hook)
        .with_identifiers(app_id=app_id)
    )

    if tracker:
        builder = builder.with_tracker(tracker)

    return builder.build()
