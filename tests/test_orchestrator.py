"""End-to-end tests for the Phase Orchestrator on scripted collaborators."""

from unittest.mock import MagicMock, call

import pytest

from conftest import (
    ScriptedCollaborator,
    challenge_output,
    decision_dict,
    decomposition_output,
    design_output,
    discovery_output,
    story_dict,
)
from specforge.config import (
    EventType,
    IterationConfig,
    PhaseName,
    PhaseStatus,
    PipelineStatus,
    RetryConfig,
)
from specforge.exceptions import (
    AgentInvocationError,
    ConfigurationError,
    PipelineCancelledError,
    QualityGateError,
)
from specforge.models.phases import DiscoveryInput, SpecPack
from specforge.workflow import orchestrator as orchestrator_module
from specforge.workflow.orchestrator import PipelineOrchestrator, create_pipeline

PROMPT = "Build a todo app with offline sync"

D, C, DS, DC, V, S = (
    PhaseName.DISCOVERY,
    PhaseName.CHALLENGE,
    PhaseName.DESIGN,
    PhaseName.DECOMPOSITION,
    PhaseName.VALIDATION,
    PhaseName.SYNTHESIS,
)


def _trace(events):
    return [(e.type, e.phase) for e in events]


def _of_type(events, event_type):
    return [e for e in events if e.type is event_type]


# =============================================================================
# Happy path
# =============================================================================


class TestHappyPath:
    def test_single_pass_returns_complete_spec_pack(self, make_orchestrator, collaborators):
        orchestrator, events = make_orchestrator(collaborators)

        spec_pack = orchestrator.start(PROMPT)

        assert isinstance(spec_pack, SpecPack)
        assert spec_pack.is_complete
        assert spec_pack.quality.confidence_score == 100
        assert set(spec_pack.stories) == {"S1", "S2"}

        state = orchestrator.get_state()
        assert state.status is PipelineStatus.COMPLETED
        assert state.total_iterations == 5
        assert state.budget_exhausted == []
        assert all(p.status is PhaseStatus.COMPLETED for p in state.phases.values())
        assert all(p.iterations == 1 for p in state.phases.values())

    def test_challenge_receives_every_clarifying_question(self, make_orchestrator, collaborators):
        orchestrator, _ = make_orchestrator(collaborators)
        orchestrator.start(PROMPT)

        [request] = collaborators[C].requests
        [question] = request.payload.answered_questions
        assert question.answer is None
        assert question.recommended == "Web only for v1"

    def test_event_sequence(self, make_orchestrator, collaborators):
        orchestrator, events = make_orchestrator(collaborators)
        orchestrator.start(PROMPT)

        expected = []
        for phase in PhaseName:
            expected += [(EventType.PHASE_STARTED, phase), (EventType.PHASE_COMPLETED, phase)]
        expected.append((EventType.PIPELINE_COMPLETED, None))
        assert _trace(events) == expected

        completed = events[-1]
        assert completed.details["confidence"] == 100
        assert completed.details["total_iterations"] == 5
        assert completed.details["budget_exhausted"] == []

    def test_phase_timestamps_and_budgets(self, make_orchestrator, collaborators):
        orchestrator, _ = make_orchestrator(collaborators)
        orchestrator.start(PROMPT)
        state = orchestrator.get_state()

        for phase_state in state.phases.values():
            assert phase_state.started_at <= phase_state.completed_at
        assert state.phases[C].max_iterations == 3
        assert state.phases[V].max_iterations == 999
        assert state.completed_at is not None

    @pytest.mark.parametrize(
        "initial_input",
        [PROMPT, {"user_prompt": PROMPT}, DiscoveryInput(user_prompt=PROMPT)],
        ids=["str", "dict", "model"],
    )
    def test_accepts_prompt_forms(self, make_orchestrator, collaborators, initial_input):
        orchestrator, _ = make_orchestrator(collaborators)
        orchestrator.start(initial_input)
        request = collaborators[D].requests[0]
        assert request.payload.user_prompt == PROMPT

    def test_design_receives_discovery_tech_and_challenges(self, make_orchestrator, collaborators):
        orchestrator, _ = make_orchestrator(collaborators)
        orchestrator.start(PROMPT)
        payload = collaborators[DS].requests[0].payload
        assert [t.name for t in payload.verified_tech] == ["React"]
        assert payload.challenges[0].type == "scope"
        assert payload.focus_issues == []

    def test_create_pipeline_factory(self, collaborators, fast_retry):
        orchestrator = create_pipeline(collaborators, retry_config=fast_retry)
        assert isinstance(orchestrator, PipelineOrchestrator)
        assert orchestrator.get_state() is None


# =============================================================================
# Discovery <-> Challenge loop
# =============================================================================


class TestDiscoveryChallengeLoop:
    def test_single_loop_back(self, make_orchestrator, collaborators):
        collaborators[C] = ScriptedCollaborator(
            challenge_output(needs_loop=True, reason="Target platform is unclear"),
            challenge_output(),
        )
        orchestrator, events = make_orchestrator(collaborators)

        spec_pack = orchestrator.start(PROMPT)

        assert collaborators[D].calls == 2
        assert collaborators[C].calls == 2
        loop_backs = _of_type(events, EventType.LOOP_BACK)
        assert len(loop_backs) == 1
        assert loop_backs[0].phase is D
        assert loop_backs[0].details["from_phase"] == "challenge"
        assert loop_backs[0].details["reason"] == "Target platform is unclear"

        iteration_started = _of_type(events, EventType.ITERATION_STARTED)
        assert [(e.phase, e.details["iteration"]) for e in iteration_started] == [(D, 2), (C, 2)]
        assert orchestrator.get_state().total_iterations == 6
        assert spec_pack.quality.advisories == []

    def test_iteration_passes_through_iterating_back_to_running(
        self, make_orchestrator, collaborators
    ):
        collaborators[C] = ScriptedCollaborator(
            challenge_output(needs_loop=True, reason="Target platform is unclear"),
            challenge_output(),
        )
        seen = []

        def discovery(request):
            phase_state = orchestrator.get_state().phases[D]
            seen.append(("call", phase_state.status, phase_state.started_at))
            return discovery_output()

        collaborators[D] = ScriptedCollaborator(discovery)
        orchestrator, _ = make_orchestrator(collaborators)

        def on_iteration(event):
            if event.type is EventType.ITERATION_STARTED and event.phase is D:
                phase_state = orchestrator.get_state().phases[D]
                seen.append(("iteration", phase_state.status, phase_state.started_at))

        orchestrator.on_event(on_iteration)
        orchestrator.start(PROMPT)

        first_started = seen[0][2]
        assert seen == [
            ("call", PhaseStatus.RUNNING, first_started),
            ("iteration", PhaseStatus.ITERATING, first_started),
            ("call", PhaseStatus.RUNNING, first_started),
        ]
        assert orchestrator.get_state().phases[D].status is PhaseStatus.COMPLETED

    def test_budget_exhaustion_continues_with_advisory(self, make_orchestrator, collaborators):
        collaborators[C] = ScriptedCollaborator(challenge_output(needs_loop=True, reason="Vague"))
        orchestrator, events = make_orchestrator(
            collaborators, iteration_config=IterationConfig(discovery_challenge_max=3)
        )

        spec_pack = orchestrator.start(PROMPT)

        assert collaborators[D].calls == 3
        assert collaborators[C].calls == 3
        assert collaborators[DS].calls == 1
        assert len(_of_type(events, EventType.LOOP_BACK)) == 2

        challenge_done = [e for e in _of_type(events, EventType.PHASE_COMPLETED) if e.phase is C]
        assert challenge_done[0].details["max_iterations_reached"] is True
        assert challenge_done[0].details["iterations"] == 3

        state = orchestrator.get_state()
        assert state.budget_exhausted == ["discovery_challenge"]
        assert state.phases[C].iterations == 3
        assert state.total_iterations == 7

        # The artifact still passes; the exhausted loop is reported, not scored
        assert spec_pack.quality.confidence_score == 100
        assert spec_pack.quality.passes
        [advisory] = spec_pack.quality.advisories
        assert advisory.category == "loop_budget"
        assert advisory.severity == "warning"
        assert advisory.location == "loop/discovery_challenge"
        assert events[-1].details["budget_exhausted"] == ["discovery_challenge"]

    def test_budget_of_one_never_loops(self, make_orchestrator, collaborators):
        collaborators[C] = ScriptedCollaborator(challenge_output(needs_loop=True))
        orchestrator, events = make_orchestrator(
            collaborators, iteration_config=IterationConfig(discovery_challenge_max=1)
        )
        orchestrator.start(PROMPT)
        assert collaborators[D].calls == 1
        assert _of_type(events, EventType.LOOP_BACK) == []


# =============================================================================
# Design <-> Decomposition loop
# =============================================================================


class TestDesignDecompositionLoop:
    def test_non_atomic_stories_send_design_focus(self, make_orchestrator, collaborators):
        collaborators[DC] = ScriptedCollaborator(
            decomposition_output(non_atomic=("S1",)), decomposition_output()
        )
        orchestrator, events = make_orchestrator(collaborators)

        orchestrator.start(PROMPT)

        assert collaborators[DS].calls == 2
        assert collaborators[DC].calls == 2
        assert collaborators[DS].requests[0].payload.focus_issues == []
        assert collaborators[DS].requests[1].payload.focus_issues == ["Story S1 is not atomic"]

        [loop_back] = _of_type(events, EventType.LOOP_BACK)
        assert loop_back.phase is DS
        assert loop_back.details["from_phase"] == "decomposition"
        assert loop_back.details["non_atomic_stories"] == ["S1"]
        assert orchestrator.get_state().budget_exhausted == []

    def test_budget_exhaustion_records_pair(self, make_orchestrator, collaborators):
        collaborators[DC] = ScriptedCollaborator(decomposition_output(non_atomic=("S2",)))
        orchestrator, _ = make_orchestrator(
            collaborators, iteration_config=IterationConfig(design_decomposition_max=2)
        )

        spec_pack = orchestrator.start(PROMPT)

        assert collaborators[DC].calls == 2
        assert collaborators[DS].calls == 2
        assert orchestrator.get_state().budget_exhausted == ["design_decomposition"]
        assert [a.location for a in spec_pack.quality.advisories] == ["loop/design_decomposition"]


# =============================================================================
# Decomposition <-> Validation loop
# =============================================================================


class TestValidationLoop:
    FOUR_FILES = ("src/a.ts", "src/b.ts", "src/c.ts", "src/d.ts")

    def test_finite_cap_raises_quality_gate_error(self, make_orchestrator, collaborators):
        collaborators[DC] = ScriptedCollaborator(
            decomposition_output(stories=[story_dict("S1", self.FOUR_FILES)])
        )
        orchestrator, events = make_orchestrator(
            collaborators, iteration_config=IterationConfig(decomposition_validation_max=2)
        )

        with pytest.raises(QualityGateError, match="after 2 iterations") as exc_info:
            orchestrator.start(PROMPT)

        assert exc_info.value.confidence == 0
        assert collaborators[DC].calls == 2
        assert collaborators[S].calls == 0

        state = orchestrator.get_state()
        assert state.status is PipelineStatus.FAILED
        assert state.phases[V].status is PhaseStatus.FAILED
        assert state.phases[V].iterations == 2
        assert state.phases[S].status is PhaseStatus.PENDING

        [loop_back] = _of_type(events, EventType.LOOP_BACK)
        assert loop_back.phase is DC
        assert loop_back.details["failing_categories"] == ["atomic"]
        assert collaborators[DC].requests[1].payload.focus_issues

        assert _trace(events)[-2:] == [
            (EventType.PHASE_FAILED, V),
            (EventType.PIPELINE_FAILED, V),
        ]
        assert events[-1].details["error_type"] == "QualityGateError"

    def test_citation_failure_loops_to_design_until_clean(self, make_orchestrator, collaborators):
        collaborators[DS] = ScriptedCollaborator(
            design_output(decisions=[decision_dict(source="not-a-url")]), design_output()
        )
        orchestrator, events = make_orchestrator(collaborators)

        spec_pack = orchestrator.start(PROMPT)

        assert spec_pack.quality.confidence_score == 100
        assert collaborators[DS].calls == 2
        assert collaborators[DC].calls == 2
        focus = collaborators[DS].requests[1].payload.focus_issues
        assert any("invalid URL: not-a-url" in issue for issue in focus)

        [loop_back] = _of_type(events, EventType.LOOP_BACK)
        assert loop_back.phase is DS
        assert loop_back.details["from_phase"] == "validation"
        assert loop_back.details["confidence"] == 0

        state = orchestrator.get_state()
        assert state.phases[V].iterations == 2
        assert state.total_iterations == 8

    def test_unlimited_budget_keeps_looping_until_pass(self, make_orchestrator, collaborators):
        bad = decomposition_output(
            stories=[story_dict("S1"), story_dict("S2", ("src/sync/push.ts",), blocked_by=["S9"])]
        )
        collaborators[DC] = ScriptedCollaborator(bad, bad, bad, bad, decomposition_output())
        orchestrator, _ = make_orchestrator(collaborators)

        spec_pack = orchestrator.start(PROMPT)

        assert spec_pack.is_complete
        assert orchestrator.get_state().phases[V].iterations == 5


# =============================================================================
# Failures, cancellation, listeners
# =============================================================================


class TestDependencyConsistency:
    CYCLIC_STORIES = [
        story_dict("S1", blocked_by=["S2"]),
        story_dict("S2", ("src/sync/push.ts",), blocked_by=["S1"]),
    ]

    def test_cycle_hidden_behind_empty_dag_is_rejected(self, make_orchestrator, collaborators):
        collaborators[DC] = ScriptedCollaborator(
            decomposition_output(stories=self.CYCLIC_STORIES, dag={})
        )
        orchestrator, _ = make_orchestrator(collaborators)

        with pytest.raises(AgentInvocationError, match="dependency_dag has no entry for story S1"):
            orchestrator.start(PROMPT)

        assert orchestrator.get_state().phases[V].iterations == 0
        assert collaborators[S].calls == 0

    def test_inconsistent_decomposition_is_retried(self, make_orchestrator, collaborators):
        collaborators[DC] = ScriptedCollaborator(
            decomposition_output(stories=self.CYCLIC_STORIES, dag={}), decomposition_output()
        )
        orchestrator, _ = make_orchestrator(
            collaborators, retry_config=RetryConfig(max_retries=1, base_delay=0, timeout=None)
        )

        spec_pack = orchestrator.start(PROMPT)

        assert collaborators[DC].calls == 2
        assert spec_pack.quality.breakdown.dag.score == 100


class TestFailures:
    def test_agent_failure_fails_phase_and_run(self, make_orchestrator, collaborators):
        collaborators[DS] = ScriptedCollaborator(RuntimeError("model overloaded"))
        orchestrator, events = make_orchestrator(
            collaborators, retry_config=RetryConfig(max_retries=2, base_delay=0, timeout=None)
        )

        with pytest.raises(AgentInvocationError) as exc_info:
            orchestrator.start(PROMPT)

        assert exc_info.value.attempts == 3
        assert collaborators[DS].calls == 3
        assert collaborators[DC].calls == 0

        state = orchestrator.get_state()
        assert state.status is PipelineStatus.FAILED
        assert state.phases[DS].status is PhaseStatus.FAILED
        assert "model overloaded" in state.phases[DS].error
        assert state.phases[DC].status is PhaseStatus.PENDING

        assert _trace(events)[-2:] == [
            (EventType.PHASE_FAILED, DS),
            (EventType.PIPELINE_FAILED, DS),
        ]

    def test_missing_collaborator(self, collaborators):
        del collaborators[S]
        with pytest.raises(ConfigurationError, match="Missing collaborators for phases: synthesis"):
            PipelineOrchestrator(collaborators)


class TestCancellation:
    def test_cancel_from_listener_stops_at_next_boundary(self, make_orchestrator, collaborators):
        orchestrator, events = make_orchestrator(collaborators)

        def cancel_after_challenge(event):
            if event.type is EventType.PHASE_COMPLETED and event.phase is C:
                orchestrator.cancel()

        orchestrator.on_event(cancel_after_challenge)

        with pytest.raises(PipelineCancelledError):
            orchestrator.start(PROMPT)

        assert collaborators[DS].calls == 0
        state = orchestrator.get_state()
        assert state.status is PipelineStatus.FAILED
        assert state.phases[C].status is PhaseStatus.COMPLETED
        assert events[-1].type is EventType.PIPELINE_FAILED
        assert events[-1].details["error_type"] == "PipelineCancelledError"

    def test_cancel_before_start(self, make_orchestrator, collaborators):
        orchestrator, _ = make_orchestrator(collaborators)
        orchestrator.cancel()
        with pytest.raises(PipelineCancelledError):
            orchestrator.start(PROMPT)
        assert collaborators[D].calls == 0


class TestListenersAndSnapshots:
    def test_failing_listener_does_not_abort_run(self, make_orchestrator, collaborators):
        orchestrator, events = make_orchestrator(collaborators)

        def broken(event):
            raise RuntimeError("listener bug")

        orchestrator.on_event(broken)
        spec_pack = orchestrator.start(PROMPT)

        assert spec_pack.is_complete
        assert events[-1].type is EventType.PIPELINE_COMPLETED

    def test_events_are_immutable(self, make_orchestrator, collaborators):
        orchestrator, events = make_orchestrator(collaborators)
        orchestrator.start(PROMPT)
        with pytest.raises(TypeError):
            events[0].details["extra"] = 1
        assert events[0].to_dict()["type"] == "phase_started"

    def test_state_is_none_before_start(self, make_orchestrator, collaborators):
        orchestrator, _ = make_orchestrator(collaborators)
        assert orchestrator.get_state() is None

    def test_snapshot_is_independent(self, make_orchestrator, collaborators):
        orchestrator, _ = make_orchestrator(collaborators)
        orchestrator.start(PROMPT)

        snapshot = orchestrator.get_state()
        snapshot.total_iterations = 99
        snapshot.phases[D].iterations = 42

        fresh = orchestrator.get_state()
        assert fresh.total_iterations == 5
        assert fresh.phases[D].iterations == 1

    def test_snapshot_serializes(self, make_orchestrator, collaborators):
        orchestrator, _ = make_orchestrator(collaborators)
        orchestrator.start(PROMPT)
        data = orchestrator.get_state().to_dict()
        assert data["status"] == "completed"
        assert data["phases"]["validation"]["output"]["passes"] is True


class TestWorkflowHooks:
    def test_on_phase_complete_sees_every_phase_and_route(self, collaborators, fast_retry):
        callback = MagicMock()
        orchestrator = PipelineOrchestrator(
            collaborators, retry_config=fast_retry, sleep=MagicMock(), on_phase_complete=callback
        )

        orchestrator.start(PROMPT)

        assert callback.call_args_list[0] == call("discovery", "challenge")
        assert callback.call_args_list[-1] == call("synthesis", "done")
        assert [c.args[0] for c in callback.call_args_list] == [p.value for p in PhaseName]

    def test_tracking_project_reaches_the_builder(self, monkeypatch, collaborators, fast_retry):
        seen = {}
        real_build = orchestrator_module.build_workflow

        def recording_build(*args, **kwargs):
            seen.update(kwargs)
            return real_build(*args, **kwargs)

        monkeypatch.setattr(orchestrator_module, "build_workflow", recording_build)
        orchestrator = create_pipeline(
            collaborators, retry_config=fast_retry, sleep=MagicMock(), tracking_project="nightly-specs"
        )

        orchestrator.start(PROMPT)

        assert seen["tracking_project"] == "nightly-specs"
        assert seen["enable_tracking"] is False
