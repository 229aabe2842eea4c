"""Run state for one pipeline execution.

A ``PipelineRun`` is owned by exactly one orchestrator and mutated in place
as phases execute. Callers only ever see deep-copied snapshots.
"""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from specforge.config import (
    EventType,
    IterationConfig,
    PhaseName,
    PhaseStatus,
    PipelineStatus,
)


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class PhaseState:
    """Per-phase bookkeeping: status, last IO, iteration count, timestamps."""

    phase: PhaseName
    max_iterations: int = 1
    status: PhaseStatus = PhaseStatus.PENDING
    input: BaseModel | None = None
    output: BaseModel | None = None
    iterations: int = 0
    error: str | None = None
    started_at: str | None = None
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "status": self.status.value,
            "iterations": self.iterations,
            "max_iterations": self.max_iterations,
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "input": self.input.model_dump(mode="json", by_alias=True) if self.input else None,
            "output": self.output.model_dump(mode="json", by_alias=True) if self.output else None,
        }


@dataclass(frozen=True)
class PipelineEvent:
    """Immutable notification delivered to event listeners."""

    type: EventType
    phase: PhaseName | None = None
    timestamp: str = field(default_factory=utc_now)
    details: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        if not isinstance(self.details, MappingProxyType):
            object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "phase": self.phase.value if self.phase else None,
            "timestamp": self.timestamp,
            "details": dict(self.details),
        }


def initial_phase_states(iteration_config: IterationConfig) -> dict[PhaseName, PhaseState]:
    """Build the PhaseState map with each phase's configured budget."""
    budgets = {
        PhaseName.DISCOVERY: 1,
        PhaseName.CHALLENGE: iteration_config.discovery_challenge_max,
        PhaseName.DESIGN: 1,
        PhaseName.DECOMPOSITION: iteration_config.design_decomposition_max,
        PhaseName.VALIDATION: iteration_config.validation_budget,
        PhaseName.SYNTHESIS: 1,
    }
    return {phase: PhaseState(phase=phase, max_iterations=budgets[phase]) for phase in PhaseName}


@dataclass
class PipelineRun:
    """Identity, overall status and per-phase history of one run."""

    phases: dict[PhaseName, PhaseState]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: PipelineStatus = PipelineStatus.RUNNING
    current_phase: PhaseName = PhaseName.DISCOVERY
    total_iterations: int = 0
    started_at: str = field(default_factory=utc_now)
    completed_at: str | None = None
    error: str | None = None
    budget_exhausted: list[str] = field(default_factory=list)

    @classmethod
    def create(cls, iteration_config: IterationConfig) -> "PipelineRun":
        return cls(phases=initial_phase_states(iteration_config))

    @property
    def is_finished(self) -> bool:
        return self.status is not PipelineStatus.RUNNING

    def set_phase_status(self, phase: PhaseName, status: PhaseStatus) -> None:
        """Move a phase to ``status`` and stamp the matching timestamp.

        ``started_at`` records the first time the phase ran; later
        iterations keep it.
        """
        state = self.phases[phase]
        state.status = status
        self.current_phase = phase
        if status is PhaseStatus.RUNNING and state.started_at is None:
            state.started_at = utc_now()
        elif status in (PhaseStatus.COMPLETED, PhaseStatus.FAILED):
            state.completed_at = utc_now()

    def mark_budget_exhausted(self, loop_pair: str) -> None:
        if loop_pair not in self.budget_exhausted:
            self.budget_exhausted.append(loop_pair)

    def finish(self, status: PipelineStatus, error: str | None = None) -> None:
        self.status = status
        self.error = error
        self.completed_at = utc_now()

    def snapshot(self) -> "PipelineRun":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "current_phase": self.current_phase.value,
            "total_iterations": self.total_iterations,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "error": self.error,
            "budget_exhausted": list(self.budget_exhausted),
            "phases": {phase.value: state.to_dict() for phase, state in self.phases.items()},
        }
