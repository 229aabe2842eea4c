"""Burr actions for the specification pipeline.

Each action runs one phase through its Agent Invoker and writes a ``route``
key naming the next phase; the transitions in ``workflow_spec`` branch on
it. Loop signals are read off the typed phase output and never interpreted
beyond their boolean/list value.

The @action decorator specifies:
- reads: State keys this action needs to read
- writes: State keys this action will write to
"""

import logging
from dataclasses import dataclass

from burr.core import State, action
from pydantic import BaseModel

from specforge.agents.invoker import AgentInvoker
from specforge.config import EventType, IterationConfig, PhaseName, PhaseStatus
from specforge.exceptions import QualityGateError
from specforge.models.phases import (
    ChallengeInput,
    DecompositionInput,
    DesignInput,
    SynthesisInput,
    ValidationInput,
)
from specforge.models.quality import ValidationIssue
from specforge.telemetry.spans import current_span, phase_span, record_phase_event
from specforge.validators.quality_aggregator import loop_targets_for, with_advisories
from specforge.workflow.events import EventEmitter
from specforge.workflow.run_state import PipelineRun

logger = logging.getLogger(__name__)

# Loop pair names recorded in PipelineRun.budget_exhausted
DISCOVERY_CHALLENGE = "discovery_challenge"
DESIGN_DECOMPOSITION = "design_decomposition"

# Terminal route written by synthesis
ROUTE_DONE = "done"


# =============================================================================
# Pipeline Context
# =============================================================================


@dataclass
class PipelineContext:
    """Everything an action needs beyond plain state values.

    NOTE: this is a non-serializable object stored in Burr state (under
    ``pipeline``). Runs are in-process only; Burr persistence is not used.
    """

    run: PipelineRun
    emitter: EventEmitter
    invokers: dict[PhaseName, AgentInvoker]
    iteration_config: IterationConfig

    def execute_phase(self, phase: PhaseName, payload: BaseModel) -> BaseModel:
        """Run one phase execution and record it on the PipelineRun.

        Raises whatever the invoker raises, after marking the phase failed.
        """
        phase_state = self.run.phases[phase]
        iteration = phase_state.iterations + 1

        # Re-entry passes through ITERATING, then runs like a first entry
        if phase_state.iterations > 0:
            self.run.set_phase_status(phase, PhaseStatus.ITERATING)
            self.emitter.emit(EventType.ITERATION_STARTED, phase, iteration=iteration)
            self.run.set_phase_status(phase, PhaseStatus.RUNNING)
        else:
            self.run.set_phase_status(phase, PhaseStatus.RUNNING)
            self.emitter.emit(EventType.PHASE_STARTED, phase)

        phase_state.input = payload
        with phase_span(phase.value, iteration, run_id=self.run.id) as span:
            try:
                output = self.invokers[phase].invoke(payload)
            except Exception as e:
                self.fail_phase(phase, e)
                raise
            span.set_attribute("phase.total_iterations", self.run.total_iterations + 1)

        phase_state.output = output
        phase_state.iterations = iteration
        if phase is not PhaseName.DISCOVERY:
            self.run.total_iterations += 1
        return output

    def complete_phase(self, phase: PhaseName, **details) -> None:
        self.run.set_phase_status(phase, PhaseStatus.COMPLETED)
        self.emitter.emit(EventType.PHASE_COMPLETED, phase, **details)

    def fail_phase(self, phase: PhaseName, error: BaseException) -> None:
        self.run.phases[phase].error = str(error)
        self.run.set_phase_status(phase, PhaseStatus.FAILED)
        logger.error(f"Phase {phase.value} failed: {error}")
        self.emitter.emit(
            EventType.PHASE_FAILED, phase, error=str(error), error_type=type(error).__name__
        )

    def loop_back(self, source: PhaseName, target: PhaseName, **details) -> None:
        logger.info(f"Loop-back: {source.value} -> {target.value}")
        record_phase_event(
            current_span(), "loop_back", from_phase=source.value, to_phase=target.value
        )
        self.emitter.emit(EventType.LOOP_BACK, target, from_phase=source.value, **details)

    def budget_exhausted(self, loop_pair: str, budget: int) -> None:
        logger.warning(f"Loop {loop_pair} reached its budget of {budget}; continuing")
        self.run.mark_budget_exhausted(loop_pair)

    def budget_advisories(self) -> list[ValidationIssue]:
        """One warning per loop pair that ran out of budget."""
        budgets = {
            DISCOVERY_CHALLENGE: self.iteration_config.discovery_challenge_max,
            DESIGN_DECOMPOSITION: self.iteration_config.design_decomposition_max,
        }
        return [
            ValidationIssue(
                severity="warning",
                category="loop_budget",
                message=(
                    f"{pair.replace('_', '/')} loop stopped at its budget of "
                    f"{budgets[pair]} with a loop-back still requested"
                ),
                location=f"loop/{pair}",
                suggestion="Review the unresolved requests or raise the iteration budget",
            )
            for pair in self.run.budget_exhausted
        ]


# =============================================================================
# Phase Actions
# =============================================================================


@action(reads=["pipeline", "initial_input"], writes=["discovery", "route"])
def discovery(state: State) -> State:
    """Phase 1: Parse intent and draft requirements."""
    ctx: PipelineContext = state["pipeline"]
    output = ctx.execute_phase(PhaseName.DISCOVERY, state["initial_input"])
    ctx.complete_phase(PhaseName.DISCOVERY)
    return state.update(discovery=output, route=PhaseName.CHALLENGE.value)


@action(
    reads=["pipeline", "discovery", "dc_iterations"],
    writes=["challenge", "dc_iterations", "route"],
)
def challenge(state: State) -> State:
    """Phase 2: Challenge the draft; may request a discovery loop-back."""
    ctx: PipelineContext = state["pipeline"]
    discovery_output = state["discovery"]
    payload = ChallengeInput(
        discovery_output=discovery_output,
        answered_questions=discovery_output.clarifying_questions,
    )
    output = ctx.execute_phase(PhaseName.CHALLENGE, payload)

    pair_iterations = state["dc_iterations"] + 1
    budget = ctx.iteration_config.discovery_challenge_max

    if output.needs_discovery_loop and pair_iterations < budget:
        ctx.loop_back(
            PhaseName.CHALLENGE,
            PhaseName.DISCOVERY,
            reason=output.loop_reason,
            iteration=pair_iterations,
        )
        route = PhaseName.DISCOVERY.value
    else:
        details = {"iterations": pair_iterations}
        if output.needs_discovery_loop:
            details["max_iterations_reached"] = True
            ctx.budget_exhausted(DISCOVERY_CHALLENGE, budget)
        ctx.complete_phase(PhaseName.CHALLENGE, **details)
        route = PhaseName.DESIGN.value

    return state.update(challenge=output, dc_iterations=pair_iterations, route=route)


@action(
    reads=["pipeline", "discovery", "challenge", "design_focus"],
    writes=["design", "design_focus", "route"],
)
def design(state: State) -> State:
    """Phase 3: Architecture, verified tech stack, decisions and schemas."""
    ctx: PipelineContext = state["pipeline"]
    challenge_output = state["challenge"]
    payload = DesignInput(
        requirements=challenge_output.requirements_challenged,
        verified_tech=state["discovery"].mentioned_tech,
        challenges=challenge_output.challenges,
        focus_issues=state["design_focus"],
    )
    output = ctx.execute_phase(PhaseName.DESIGN, payload)
    ctx.complete_phase(PhaseName.DESIGN, decisions=len(output.decisions))
    return state.update(design=output, design_focus=[], route=PhaseName.DECOMPOSITION.value)


@action(
    reads=["pipeline", "challenge", "design", "dd_iterations", "decomposition_focus"],
    writes=["decomposition", "dd_iterations", "decomposition_focus", "design_focus", "route"],
)
def decomposition(state: State) -> State:
    """Phase 4: Break the design into atomic stories; may request a design loop-back."""
    ctx: PipelineContext = state["pipeline"]
    payload = DecompositionInput(
        design=state["design"],
        requirements=state["challenge"].requirements_challenged,
        focus_issues=state["decomposition_focus"],
    )
    output = ctx.execute_phase(PhaseName.DECOMPOSITION, payload)

    pair_iterations = state["dd_iterations"] + 1
    budget = ctx.iteration_config.design_decomposition_max
    design_focus: list[str] = []

    if output.has_non_atomic_tasks and pair_iterations < budget:
        ctx.loop_back(
            PhaseName.DECOMPOSITION,
            PhaseName.DESIGN,
            non_atomic_stories=list(output.non_atomic_stories),
            iteration=pair_iterations,
        )
        design_focus = [f"Story {sid} is not atomic" for sid in output.non_atomic_stories]
        route = PhaseName.DESIGN.value
    else:
        details = {"iterations": pair_iterations, "stories": len(output.stories)}
        if output.has_non_atomic_tasks:
            details["max_iterations_reached"] = True
            ctx.budget_exhausted(DESIGN_DECOMPOSITION, budget)
        ctx.complete_phase(PhaseName.DECOMPOSITION, **details)
        route = PhaseName.VALIDATION.value

    return state.update(
        decomposition=output,
        dd_iterations=pair_iterations,
        decomposition_focus=[],
        design_focus=design_focus,
        route=route,
    )


@action(
    reads=["pipeline", "design", "decomposition"],
    writes=["validation", "dd_iterations", "design_focus", "decomposition_focus", "route"],
)
def validation(state: State) -> State:
    """Phase 5: Quality gate; loops back until confidence reaches 100."""
    ctx: PipelineContext = state["pipeline"]
    design_output = state["design"]
    decomposition_output = state["decomposition"]
    payload = ValidationInput(
        stories=decomposition_output.stories,
        schemas=design_output.schemas,
        decisions=design_output.decisions,
        tech_stack=design_output.tech_stack,
        dependency_dag=decomposition_output.dependency_dag,
    )
    output = ctx.execute_phase(PhaseName.VALIDATION, payload)
    report = output.quality_report
    attempts = ctx.run.phases[PhaseName.VALIDATION].iterations

    if output.passes:
        advisories = ctx.budget_advisories()
        if advisories:
            output = output.model_copy(
                update={"quality_report": with_advisories(report, advisories)}
            )
            ctx.run.phases[PhaseName.VALIDATION].output = output
        ctx.complete_phase(
            PhaseName.VALIDATION, confidence=report.confidence_score, iterations=attempts
        )
        return state.update(
            validation=output,
            dd_iterations=0,
            design_focus=[],
            decomposition_focus=[],
            route=PhaseName.SYNTHESIS.value,
        )

    logger.info(
        f"Validation attempt {attempts} failed with confidence {report.confidence_score}/100"
    )
    cap = ctx.iteration_config.decomposition_validation_max
    if not ctx.iteration_config.validation_unlimited and attempts >= cap:
        error = QualityGateError(attempts, report.confidence_score)
        ctx.fail_phase(PhaseName.VALIDATION, error)
        raise error

    targets = output.loop_targets
    if targets is None or targets.is_empty:
        targets = loop_targets_for(report)

    if targets.design_issues:
        route = PhaseName.DESIGN.value
    elif targets.decomposition_issues:
        route = PhaseName.DECOMPOSITION.value
    else:
        route = PhaseName.VALIDATION.value

    if route != PhaseName.VALIDATION.value:
        ctx.loop_back(
            PhaseName.VALIDATION,
            PhaseName(route),
            confidence=report.confidence_score,
            failing_categories=list(report.failing_categories),
            iteration=attempts,
        )

    return state.update(
        validation=output,
        dd_iterations=0,
        design_focus=list(targets.design_issues),
        decomposition_focus=list(targets.decomposition_issues),
        route=route,
    )


@action(
    reads=["pipeline", "discovery", "challenge", "design", "decomposition", "validation"],
    writes=["synthesis", "route"],
)
def synthesis(state: State) -> State:
    """Phase 6: Assemble the final spec pack and exports."""
    ctx: PipelineContext = state["pipeline"]
    validation_output = state["validation"]
    payload = SynthesisInput(
        discovery=state["discovery"],
        challenge=state["challenge"],
        design=state["design"],
        decomposition=state["decomposition"],
        validation=validation_output,
    )
    output = ctx.execute_phase(PhaseName.SYNTHESIS, payload)

    # The gate's report is authoritative for the delivered artifact
    spec_pack = output.spec_pack.model_copy(update={"quality": validation_output.quality_report})
    output = output.model_copy(update={"spec_pack": spec_pack})
    ctx.run.phases[PhaseName.SYNTHESIS].output = output

    ctx.complete_phase(PhaseName.SYNTHESIS, stories=len(spec_pack.stories))
    return state.update(synthesis=output, route=ROUTE_DONE)
