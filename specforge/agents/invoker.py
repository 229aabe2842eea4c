"""Agent Invoker: bounded retry, backoff, timeout and shape validation.

Every phase call goes through the same wrapper:

    build request -> call collaborator -> parse -> shape-check -> accept

Any failure along that chain (transport error, timeout, unparsable
response, failed shape validation) is retried with exponential backoff,
up to ``max_retries + 1`` attempts in total. The loop is explicit and
produces an ``InvocationResult``; ``invoke()`` raises
``AgentInvocationError`` once attempts run out.
"""

import concurrent.futures
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from specforge.agents.contracts import PhaseContract, PhaseRequest
from specforge.config import DEFAULT_RETRY_CONFIG, PhaseName, RetryConfig
from specforge.exceptions import AgentInvocationError, AgentTimeoutError
from specforge.telemetry.spans import current_span, record_phase_event

logger = logging.getLogger(__name__)

Collaborator = Callable[[PhaseRequest], Any]


@dataclass
class InvocationResult:
    """Outcome of one invocation, including every failed attempt."""

    phase: PhaseName
    success: bool = False
    output: BaseModel | None = None
    error: BaseException | None = None
    attempts: int = 0
    errors: list[str] = field(default_factory=list)
    duration: float = 0.0


class AgentInvoker:
    """Wraps one phase collaborator with retry and output validation.

    Args:
        contract: Phase-specific request builder, parser and shape validator.
        collaborator: Callable receiving a PhaseRequest; returns a pydantic
            model, a dict, or text containing JSON. May raise.
        retry_config: Attempt budget, backoff and per-call timeout.
        sleep: Blocking wait used between attempts (injectable for tests).
    """

    def __init__(
        self,
        contract: PhaseContract,
        collaborator: Collaborator,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.contract = contract
        self.collaborator = collaborator
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self._sleep = sleep

    @property
    def phase(self) -> PhaseName:
        return self.contract.phase

    def invoke_with_result(self, payload: BaseModel | dict) -> InvocationResult:
        """Run the bounded attempt loop and report the outcome.

        Never raises for collaborator failures; a malformed *input* payload
        is a programming error and propagates as pydantic ValidationError.
        """
        request = self.contract.build_request(payload)
        max_attempts = self.retry_config.max_attempts
        result = InvocationResult(phase=self.phase)
        start_time = time.time()

        for attempt in range(max_attempts):
            result.attempts = attempt + 1
            try:
                raw = self._call(request)
                output = self.contract.accept(raw)
            except Exception as e:  # Intentional catch-all: every call failure is retryable
                result.error = e
                result.errors.append(f"attempt {attempt + 1}: {type(e).__name__}: {e}")
                record_phase_event(
                    current_span(),
                    "agent_attempt_failed",
                    phase=self.phase.value,
                    attempt=attempt + 1,
                    error_type=type(e).__name__,
                )

                if attempt + 1 < max_attempts:
                    delay = self.retry_config.calculate_delay(attempt)
                    logger.warning(
                        "Agent %s failed (attempt %d/%d): %s. Retrying in %.1fs...",
                        self.phase.value,
                        attempt + 1,
                        max_attempts,
                        e,
                        delay,
                    )
                    self._sleep(delay)
                continue

            result.success = True
            result.output = output
            result.error = None
            break

        result.duration = time.time() - start_time
        if result.success:
            logger.info(
                f"Agent {self.phase.value} succeeded on attempt {result.attempts}/{max_attempts} "
                f"({result.duration:.1f}s)"
            )
        else:
            logger.error(
                f"Agent {self.phase.value} failed after {result.attempts} attempt(s): {result.error}"
            )
        return result

    def invoke(self, payload: BaseModel | dict) -> BaseModel:
        """Return the validated output or raise once attempts are exhausted.

        Raises:
            AgentInvocationError: Chained to the last attempt's error.
        """
        result = self.invoke_with_result(payload)
        if result.success:
            return result.output
        raise AgentInvocationError(self.phase.value, result.attempts, result.error) from result.error

    def _call(self, request: PhaseRequest) -> Any:
        """Call the collaborator, enforcing the per-call timeout when set.

        A call that overruns is reported as ``AgentTimeoutError``, but only
        after it has settled: a late worker never overlaps the next attempt
        and never outlives ``invoke``. The model client's own read timeout
        bounds how long that wait can take.
        """
        timeout = self.retry_config.timeout
        if timeout is None:
            return self.collaborator(request)

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"specforge-{self.phase.value}"
        ) as executor:
            future = executor.submit(self.collaborator, request)
            try:
                return future.result(timeout=timeout)
            except concurrent.futures.TimeoutError:
                logger.warning(
                    "Agent %s exceeded %.0fs; waiting for the call to settle before retrying",
                    self.phase.value,
                    timeout,
                )
                concurrent.futures.wait([future])
                raise AgentTimeoutError(
                    f"{self.phase.value} agent did not respond within {timeout:.0f}s"
                ) from None
