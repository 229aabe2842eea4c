"""Local validation collaborator.

Answers the validation phase without an LLM: runs the five deterministic
validators over the request payload and routes failing categories to the
upstream phase that must fix them.
"""

import logging
from datetime import datetime

from specforge.agents.contracts import PhaseRequest
from specforge.models.phases import ValidationInput, ValidationOutput
from specforge.validators.quality_aggregator import (
    aggregate_validation_input,
    loop_targets_for,
)

logger = logging.getLogger(__name__)


class QualityGateCollaborator:
    """Deterministic stand-in for the validation agent.

    Args:
        clock: Optional callable returning the reference time used for
            citation freshness (defaults to now).
    """

    def __init__(self, clock=None):
        self._clock = clock

    def __call__(self, request: PhaseRequest) -> ValidationOutput:
        payload = request.payload
        if not isinstance(payload, ValidationInput):
            payload = ValidationInput.model_validate(payload)

        now: datetime | None = self._clock() if self._clock else None
        report = aggregate_validation_input(payload, now=now)

        loop_targets = None if report.passes else loop_targets_for(report)
        if loop_targets is not None:
            logger.info(
                f"Quality gate routing: {len(loop_targets.design_issues)} design issue(s), "
                f"{len(loop_targets.decomposition_issues)} decomposition issue(s)"
            )
        return ValidationOutput(
            quality_report=report,
            passes=report.passes,
            loop_targets=loop_targets,
        )
