"""Tests for the Agent Invoker: bounded retry, backoff, timeout, shape checks."""

import json
import threading
import time
from unittest.mock import MagicMock, call

import pytest

from conftest import ScriptedCollaborator, discovery_output
from specforge.agents.contracts import get_contract
from specforge.agents.invoker import AgentInvoker
from specforge.config import PhaseName, RetryConfig
from specforge.exceptions import (
    AgentInvocationError,
    AgentTimeoutError,
    OutputParseError,
    ShapeValidationError,
)
from specforge.models.phases import DiscoveryOutput

PROMPT = {"user_prompt": "Build a todo app"}


def _invoker(collaborator, max_retries=3, timeout=None, sleep=None, **retry):
    config = RetryConfig(max_retries=max_retries, timeout=timeout, **retry)
    return AgentInvoker(
        get_contract(PhaseName.DISCOVERY), collaborator, config, sleep=sleep or MagicMock()
    )


# =============================================================================
# Retry bound
# =============================================================================


class TestRetryBound:
    """A failing collaborator is called exactly max_retries + 1 times."""

    @pytest.mark.parametrize("max_retries", [0, 1, 3, 5])
    def test_always_failing_collaborator(self, max_retries):
        collaborator = ScriptedCollaborator(RuntimeError("connection reset"))
        invoker = _invoker(collaborator, max_retries=max_retries)

        with pytest.raises(AgentInvocationError) as exc_info:
            invoker.invoke(PROMPT)

        assert collaborator.calls == max_retries + 1
        assert exc_info.value.attempts == max_retries + 1
        assert isinstance(exc_info.value.last_error, RuntimeError)
        assert exc_info.value.__cause__ is exc_info.value.last_error

    def test_succeeds_after_transient_failures(self):
        collaborator = ScriptedCollaborator(
            RuntimeError("throttled"), RuntimeError("throttled"), discovery_output()
        )
        result = _invoker(collaborator).invoke_with_result(PROMPT)

        assert result.success
        assert result.attempts == 3
        assert isinstance(result.output, DiscoveryOutput)
        assert len(result.errors) == 2
        assert result.error is None

    def test_invoke_with_result_never_raises_for_call_failures(self):
        collaborator = ScriptedCollaborator(RuntimeError("boom"))
        result = _invoker(collaborator, max_retries=1).invoke_with_result(PROMPT)
        assert not result.success
        assert result.attempts == 2
        assert result.errors[-1] == "attempt 2: RuntimeError: boom"


# =============================================================================
# Backoff
# =============================================================================


class TestBackoff:
    def test_exponential_delays_capped(self):
        sleep = MagicMock()
        collaborator = ScriptedCollaborator(RuntimeError("down"))
        invoker = _invoker(
            collaborator, max_retries=5, sleep=sleep, base_delay=1.0, max_delay=10.0
        )

        with pytest.raises(AgentInvocationError):
            invoker.invoke(PROMPT)

        # One wait between each pair of attempts; none after the last
        assert sleep.call_args_list == [call(1.0), call(2.0), call(4.0), call(8.0), call(10.0)]

    def test_no_sleep_on_first_attempt_success(self):
        sleep = MagicMock()
        _invoker(ScriptedCollaborator(discovery_output()), sleep=sleep).invoke(PROMPT)
        sleep.assert_not_called()

    def test_calculate_delay(self):
        config = RetryConfig(base_delay=0.5, max_delay=3.0)
        assert [config.calculate_delay(a) for a in range(4)] == [0.5, 1.0, 2.0, 3.0]


# =============================================================================
# Parsing and shape validation
# =============================================================================


class TestOutputAcceptance:
    def test_accepts_json_text_in_code_fence(self):
        text = "Here you go:\n```json\n" + json.dumps(discovery_output()) + "\n```"
        output = _invoker(ScriptedCollaborator(text)).invoke(PROMPT)
        assert output.parsed_intent == "A personal todo app with offline sync"

    def test_unparsable_response_is_retried(self):
        collaborator = ScriptedCollaborator("I could not do that.", discovery_output())
        result = _invoker(collaborator).invoke_with_result(PROMPT)
        assert result.success
        assert result.attempts == 2
        assert "OutputParseError" in result.errors[0]

    def test_shape_failure_is_retried_then_raised(self):
        bad = discovery_output()
        bad["clarifying_questions"] = []
        collaborator = ScriptedCollaborator(bad)

        with pytest.raises(AgentInvocationError) as exc_info:
            _invoker(collaborator, max_retries=2).invoke(PROMPT)

        assert collaborator.calls == 3
        last = exc_info.value.last_error
        assert isinstance(last, ShapeValidationError)
        assert "clarifying_questions must contain at least one question" in last.problems

    def test_schema_violation_reports_field_location(self):
        bad = discovery_output()
        del bad["requirements_draft"]
        result = _invoker(ScriptedCollaborator(bad), max_retries=0).invoke_with_result(PROMPT)
        assert isinstance(result.error, ShapeValidationError)
        assert any(p.startswith("requirements_draft") for p in result.error.problems)

    def test_malformed_input_is_not_retried(self):
        collaborator = ScriptedCollaborator(discovery_output())
        with pytest.raises(Exception):
            _invoker(collaborator).invoke({"user_prompt": ""})
        assert collaborator.calls == 0

    def test_request_carries_payload_and_prompt(self):
        collaborator = ScriptedCollaborator(discovery_output())
        _invoker(collaborator).invoke(PROMPT)
        request = collaborator.requests[0]
        assert request.phase is PhaseName.DISCOVERY
        assert request.payload.user_prompt == "Build a todo app"
        assert "## Discovery phase input" in request.prompt
        assert '"parsed_intent"' in request.prompt


# =============================================================================
# Timeout
# =============================================================================


class TestTimeout:
    def test_hung_call_times_out_and_is_retried(self):
        calls = []

        def collaborator(request):
            calls.append(request)
            if len(calls) == 1:
                time.sleep(0.2)
                return "too late"
            return discovery_output()

        result = _invoker(collaborator, timeout=0.05).invoke_with_result(PROMPT)

        assert result.success
        assert result.attempts == 2
        assert "AgentTimeoutError" in result.errors[0]

    def test_timeout_error_type(self):
        def collaborator(request):
            time.sleep(0.2)

        result = _invoker(collaborator, max_retries=0, timeout=0.05).invoke_with_result(PROMPT)

        assert isinstance(result.error, AgentTimeoutError)
        assert not isinstance(result.error, OutputParseError)

    def test_timed_out_calls_never_overlap_or_outlive_invoke(self):
        lock = threading.Lock()
        in_flight = 0
        peak = 0

        def collaborator(request):
            nonlocal in_flight, peak
            with lock:
                in_flight += 1
                peak = max(peak, in_flight)
            try:
                time.sleep(0.15)
            finally:
                with lock:
                    in_flight -= 1

        result = _invoker(collaborator, max_retries=2, timeout=0.05).invoke_with_result(PROMPT)

        assert not result.success
        assert result.attempts == 3
        assert all("AgentTimeoutError" in e for e in result.errors)
        assert peak == 1
        assert in_flight == 0
