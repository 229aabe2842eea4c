"""Error taxonomy for the specification pipeline.

Agent-call failures (transport, timeout, parse, shape) are retried by the
invoker and surface as ``AgentInvocationError`` once attempts run out.
Validation issues are never exceptions; they live inside a QualityReport.
"""


class SpecforgeError(Exception):
    """Base class for all specforge errors."""

    pass


class ConfigurationError(SpecforgeError):
    """Raised when pipeline settings are invalid."""

    pass


# =============================================================================
# Agent call errors (retryable)
# =============================================================================


class AgentCallError(SpecforgeError):
    """A single collaborator call failed; the invoker may retry it."""

    pass


class AgentTimeoutError(AgentCallError):
    """The collaborator did not answer within the per-call timeout."""

    pass


class OutputParseError(AgentCallError):
    """The collaborator's response could not be parsed into JSON."""

    pass


class ShapeValidationError(AgentCallError):
    """The parsed output is missing required fields or violates constraints."""

    def __init__(self, phase: str, problems: list[str]):
        self.phase = phase
        self.problems = list(problems)
        summary = "; ".join(self.problems[:5])
        if len(self.problems) > 5:
            summary += f" (+{len(self.problems) - 5} more)"
        super().__init__(f"Invalid {phase} output: {summary}")


class AgentInvocationError(SpecforgeError):
    """All attempts for a collaborator call were exhausted."""

    def __init__(self, phase: str, attempts: int, last_error: BaseException | None):
        self.phase = phase
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{phase} agent failed after {attempts} attempt(s): {last_error}")


# =============================================================================
# Pipeline errors (terminal)
# =============================================================================


class PipelineError(SpecforgeError):
    """Terminal pipeline failure."""

    pass


class QualityGateError(PipelineError):
    """The validation loop exhausted a finite budget without passing."""

    def __init__(self, iterations: int, confidence: int | None = None):
        self.iterations = iterations
        self.confidence = confidence
        super().__init__(f"Failed to reach 100% confidence after {iterations} iterations")


class PipelineCancelledError(PipelineError):
    """The caller cancelled the run; observed at a phase boundary."""

    def __init__(self, message: str = "Pipeline cancelled"):
        super().__init__(message)
