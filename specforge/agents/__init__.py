"""Phase collaborators and the Agent Invoker.

The invoker is identical for every phase; each phase contributes only a
``PhaseContract`` (request builder, parser, shape validator).
"""

from .contracts import PHASE_CONTRACTS, PhaseContract, PhaseRequest, get_contract
from .invoker import AgentInvoker, Collaborator, InvocationResult
from .output_utils import extract_json_from_text, extract_payload, extract_text_from_result
from .prompt_loader import PromptLoadError, clear_prompt_cache, load_phase_prompt
from .quality_gate import QualityGateCollaborator


# Lazy import for Strands-backed modules so contracts and the invoker can be
# used without constructing any model client.
def __getattr__(name):
    """Lazy import for agent factory helpers."""
    if name in ("StrandsPhaseCollaborator", "create_phase_agent", "create_phase_collaborators"):
        from . import agent_factory

        return getattr(agent_factory, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Contracts
    "PHASE_CONTRACTS",
    "PhaseContract",
    "PhaseRequest",
    "get_contract",
    # Invoker
    "AgentInvoker",
    "Collaborator",
    "InvocationResult",
    # Output extraction
    "extract_json_from_text",
    "extract_payload",
    "extract_text_from_result",
    # Prompts
    "PromptLoadError",
    "clear_prompt_cache",
    "load_phase_prompt",
    # Collaborators
    "QualityGateCollaborator",
    "StrandsPhaseCollaborator",
    "create_phase_agent",
    "create_phase_collaborators",
]
