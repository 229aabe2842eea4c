"""Phase contracts: the phase-specific pieces the Agent Invoker is given.

A PhaseContract bundles, for one phase:
- the typed input and output models
- a request builder (typed input -> PhaseRequest)
- a parser (raw collaborator result -> typed output)
- a shape validator (typed output -> list of problems)

The invoker itself is identical for every phase; only the contract varies.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from specforge.agents.output_utils import extract_payload
from specforge.agents.shapes import (
    check_challenge_output,
    check_decomposition_output,
    check_design_output,
    check_discovery_output,
    check_synthesis_output,
    check_validation_output,
)
from specforge.config import PhaseName
from specforge.exceptions import OutputParseError, ShapeValidationError
from specforge.models.phases import (
    ChallengeInput,
    ChallengeOutput,
    DecompositionInput,
    DecompositionOutput,
    DesignInput,
    DesignOutput,
    DiscoveryInput,
    DiscoveryOutput,
    SynthesisInput,
    SynthesisOutput,
    ValidationInput,
    ValidationOutput,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseRequest:
    """What a collaborator receives for one call.

    ``payload`` is the typed phase input for collaborators that work on
    structured data; ``prompt`` is the rendered message for LLM agents.
    """

    phase: PhaseName
    payload: BaseModel
    prompt: str


# Default request rendering: phase heading, JSON input, and the JSON schema
# the response must satisfy.
def render_request(phase: PhaseName, payload: BaseModel, output_model: type[BaseModel]) -> str:
    input_json = payload.model_dump_json(indent=2, by_alias=True, exclude_none=True)
    schema_json = json.dumps(output_model.model_json_schema(by_alias=True), indent=2)
    return (
        f"## {phase.value.title()} phase input\n\n"
        f"```json\n{input_json}\n```\n\n"
        f"Respond with a single JSON object that validates against this schema "
        f"(no prose outside the JSON):\n\n"
        f"```json\n{schema_json}\n```"
    )


@dataclass(frozen=True)
class PhaseContract:
    """Request/response contract for one phase collaborator."""

    phase: PhaseName
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    shape_check: Callable[[Any], list[str]]

    def build_request(self, payload: BaseModel | dict) -> PhaseRequest:
        """Build a PhaseRequest from the phase's typed input."""
        if not isinstance(payload, self.input_model):
            payload = self.input_model.model_validate(payload)
        return PhaseRequest(
            phase=self.phase,
            payload=payload,
            prompt=render_request(self.phase, payload, self.output_model),
        )

    def parse(self, raw: Any) -> BaseModel:
        """Parse a raw collaborator result into the phase's output model.

        Raises:
            OutputParseError: If no JSON object can be extracted.
            ShapeValidationError: If the JSON does not match the output model.
        """
        if isinstance(raw, self.output_model):
            data = raw.model_dump(mode="json", by_alias=True)
        else:
            data = extract_payload(raw)
        if data is None:
            raise OutputParseError(f"{self.phase.value} response contained no JSON object")

        try:
            return self.output_model.model_validate(data)
        except ValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            ]
            raise ShapeValidationError(self.phase.value, problems) from e

    def check_shape(self, output: BaseModel) -> list[str]:
        return self.shape_check(output)

    def accept(self, raw: Any) -> BaseModel:
        """Parse and shape-check; raises on any failure."""
        output = self.parse(raw)
        problems = self.check_shape(output)
        if problems:
            raise ShapeValidationError(self.phase.value, problems)
        return output


PHASE_CONTRACTS: dict[PhaseName, PhaseContract] = {
    PhaseName.DISCOVERY: PhaseContract(
        PhaseName.DISCOVERY, DiscoveryInput, DiscoveryOutput, check_discovery_output
    ),
    PhaseName.CHALLENGE: PhaseContract(
        PhaseName.CHALLENGE, ChallengeInput, ChallengeOutput, check_challenge_output
    ),
    PhaseName.DESIGN: PhaseContract(
        PhaseName.DESIGN, DesignInput, DesignOutput, check_design_output
    ),
    PhaseName.DECOMPOSITION: PhaseContract(
        PhaseName.DECOMPOSITION,
        DecompositionInput,
        DecompositionOutput,
        check_decomposition_output,
    ),
    PhaseName.VALIDATION: PhaseContract(
        PhaseName.VALIDATION, ValidationInput, ValidationOutput, check_validation_output
    ),
    PhaseName.SYNTHESIS: PhaseContract(
        PhaseName.SYNTHESIS, SynthesisInput, SynthesisOutput, check_synthesis_output
    ),
}


def get_contract(phase: PhaseName | str) -> PhaseContract:
    return PHASE_CONTRACTS[PhaseName(phase)]
