"""
Agent factory for the phase collaborators.

Each LLM-backed phase gets a Strands ``Agent`` built from the phase's
system prompt and the model resolved for its tier. The validation phase
defaults to the local quality gate, which needs no model.
"""

import logging
from typing import Any

from strands import Agent

from specforge.agents.contracts import PhaseRequest
from specforge.agents.model_provider import create_model
from specforge.agents.output_utils import extract_text_from_result
from specforge.agents.prompt_loader import load_phase_prompt
from specforge.agents.quality_gate import QualityGateCollaborator
from specforge.config import LLMConfig, PhaseName, PipelineSettings

# Configure module logger
logger = logging.getLogger(__name__)


def create_phase_agent(
    phase: PhaseName,
    llm_config: LLMConfig,
    timeout: float | None = None,
    trace_attributes: dict[str, Any] | None = None,
) -> Agent:
    """
    Create a Strands Agent for one phase.

    Args:
        phase: Phase the agent serves
        llm_config: Model tier, id, temperature and token budget
        timeout: Client-level request timeout in seconds
        trace_attributes: Optional attributes for OpenTelemetry tracing.
            These appear in all spans created by this agent.

    Returns:
        Configured Agent instance

    Raises:
        PromptLoadError: If the prompt file cannot be loaded
    """
    model = create_model(
        model_id=llm_config.model_id,
        tier=llm_config.tier,
        max_tokens=llm_config.max_tokens,
        temperature=llm_config.temperature,
        timeout=timeout,
    )

    final_trace_attributes = {"agent.name": f"{phase.value}_agent", "phase.name": phase.value}
    if trace_attributes:
        final_trace_attributes.update(trace_attributes)

    agent = Agent(
        system_prompt=load_phase_prompt(phase),
        name=f"{phase.value}_agent",
        model=model,
        tools=[],
        callback_handler=None,
        trace_attributes=final_trace_attributes,
    )

    logger.info(
        f"Created {phase.value}_agent with model_tier={llm_config.tier.value}, "
        f"max_tokens={llm_config.max_tokens}"
    )
    return agent


class StrandsPhaseCollaborator:
    """Phase collaborator backed by a Strands Agent.

    A fresh agent is created for every call so a retry never sees the
    conversation history of a failed attempt.
    """

    def __init__(
        self,
        phase: PhaseName,
        llm_config: LLMConfig | None = None,
        timeout: float | None = None,
        trace_attributes: dict[str, Any] | None = None,
    ):
        self.phase = phase
        self.llm_config = llm_config or LLMConfig()
        self.timeout = timeout
        self.trace_attributes = trace_attributes

    def __call__(self, request: PhaseRequest) -> str:
        agent = create_phase_agent(
            self.phase,
            self.llm_config,
            timeout=self.timeout,
            trace_attributes=self.trace_attributes,
        )
        logger.info(f"Running {self.phase.value}_agent with prompt length: {len(request.prompt)}")
        return extract_text_from_result(agent(request.prompt))


def create_phase_collaborators(
    settings: PipelineSettings | None = None,
    llm_validation: bool = False,
) -> dict[PhaseName, Any]:
    """
    Create the full set of collaborators for a pipeline.

    Args:
        settings: Pipeline settings (preset, LLM config, timeouts)
        llm_validation: Use an LLM auditor for validation instead of the
            local quality gate

    Returns:
        Mapping of every phase to its collaborator
    """
    settings = settings or PipelineSettings()
    llm_configs = settings.llm_configs()

    collaborators: dict[PhaseName, Any] = {}
    for phase in PhaseName:
        if phase is PhaseName.VALIDATION and not llm_validation:
            collaborators[phase] = QualityGateCollaborator()
            continue
        collaborators[phase] = StrandsPhaseCollaborator(
            phase, llm_configs[phase], timeout=settings.retry.timeout
        )
    return collaborators
