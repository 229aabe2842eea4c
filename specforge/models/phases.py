"""Pydantic models for the typed input/output of each pipeline phase.

Each phase collaborator receives a ``*Input`` model and must return JSON
that validates against the matching ``*Output`` model. Loop-back signals
(``needs_discovery_loop``, ``has_non_atomic_tasks``, ``loop_targets``) are
plain data fields; the orchestrator only reads them.
"""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from specforge.models.artifact import Decision, Story, TechStack
from specforge.models.quality import QualityReport

ChallengeType = Literal["feasibility", "scope", "security", "ux", "performance"]
ChallengeStatus = Literal["open", "addressed", "accepted", "dismissed"]


def _coerce_list(v):
    if v is None or v == "":
        return []
    if isinstance(v, str):
        return [x.strip() for x in v.split(",") if x.strip()]
    return v


# =============================================================================
# Phase 1: Discovery
# =============================================================================


class ClarifyingQuestion(BaseModel):
    question: str
    rationale: str = ""
    recommended: str = ""
    alternatives: list[str] = Field(default_factory=list)
    answer: str | None = None


class MentionedTech(BaseModel):
    """A technology the user mentioned that design must verify."""

    name: str
    context: str = ""
    verified: bool = False


class RequirementsDraft(BaseModel):
    goal: str
    scope: list[str] = Field(default_factory=list)
    non_goals: list[str] = Field(default_factory=list)

    @field_validator("scope", "non_goals", mode="before")
    @classmethod
    def coerce_to_list(cls, v):
        return _coerce_list(v)


class DiscoveryInput(BaseModel):
    user_prompt: str = Field(min_length=1)
    project_context: str | None = None


class DiscoveryOutput(BaseModel):
    parsed_intent: str
    clarifying_questions: list[ClarifyingQuestion]
    mentioned_tech: list[MentionedTech] = Field(default_factory=list)
    requirements_draft: RequirementsDraft

    @field_validator("mentioned_tech", mode="before")
    @classmethod
    def coerce_tech(cls, v):
        v = _coerce_list(v)
        return [{"name": item} if isinstance(item, str) else item for item in v]


# =============================================================================
# Phase 2: Challenge
# =============================================================================


class Challenge(BaseModel):
    type: ChallengeType
    concern: str
    evidence: str = ""
    suggested_resolution: str = ""
    status: ChallengeStatus = "open"
    resolution: str | None = None


class ChallengedRequirements(RequirementsDraft):
    acceptance_criteria: list[str] = Field(default_factory=list)

    @field_validator("acceptance_criteria", mode="before")
    @classmethod
    def coerce_criteria(cls, v):
        return _coerce_list(v)


class ChallengeInput(BaseModel):
    discovery_output: DiscoveryOutput
    answered_questions: list[ClarifyingQuestion] = Field(default_factory=list)


class ChallengeOutput(BaseModel):
    challenges: list[Challenge]
    requirements_challenged: ChallengedRequirements
    needs_discovery_loop: bool = False
    loop_reason: str | None = None


# =============================================================================
# Phase 3: Design
# =============================================================================


class DesignInput(BaseModel):
    requirements: ChallengedRequirements
    verified_tech: list[MentionedTech] = Field(default_factory=list)
    challenges: list[Challenge] = Field(default_factory=list)
    focus_issues: list[str] = Field(
        default_factory=list, description="Quality-gate findings to address on a rerun"
    )


class DesignOutput(BaseModel):
    architecture: str
    tech_stack: TechStack
    file_structure: str
    decisions: list[Decision] = Field(default_factory=list)
    schemas: dict[str, str] = Field(default_factory=dict)
    needs_refinement: bool = False
    refinement_notes: list[str] = Field(default_factory=list)


# =============================================================================
# Phase 4: Decomposition
# =============================================================================


class Sprint(BaseModel):
    name: str
    theme: str = ""
    story_ids: list[str] = Field(default_factory=list)


class DecompositionInput(BaseModel):
    design: DesignOutput
    requirements: ChallengedRequirements
    focus_issues: list[str] = Field(default_factory=list)


class DecompositionOutput(BaseModel):
    sprints: dict[str, Sprint] = Field(default_factory=dict)
    stories: list[Story]
    dependency_dag: dict[str, list[str]] = Field(default_factory=dict)
    has_non_atomic_tasks: bool = False
    non_atomic_stories: list[str] = Field(default_factory=list)

    @field_validator("non_atomic_stories", mode="before")
    @classmethod
    def coerce_to_list(cls, v):
        return _coerce_list(v)


# =============================================================================
# Phase 5: Validation
# =============================================================================


class LoopTargets(BaseModel):
    design_issues: list[str] = Field(default_factory=list)
    decomposition_issues: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.design_issues and not self.decomposition_issues


class ValidationInput(BaseModel):
    stories: list[Story]
    schemas: dict[str, str] = Field(default_factory=dict)
    decisions: list[Decision] = Field(default_factory=list)
    tech_stack: TechStack | None = None
    dependency_dag: dict[str, list[str]] = Field(default_factory=dict)


class ValidationOutput(BaseModel):
    quality_report: QualityReport
    passes: bool
    loop_targets: LoopTargets | None = None


# =============================================================================
# Phase 6: Synthesis
# =============================================================================


class SpecPackMeta(BaseModel):
    version: str = "1.0.0"
    name: str
    description: str = ""
    created_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    created_by: str = "specforge"


class SpecPackRequirements(BaseModel):
    goal: str
    scope: list[str] = Field(default_factory=list)
    non_goals: list[str] = Field(default_factory=list)
    acceptance_criteria: list[str] = Field(default_factory=list)


class SpecPack(BaseModel):
    """The final, fully elaborated specification artifact."""

    meta: SpecPackMeta
    requirements: SpecPackRequirements
    tech_stack: TechStack
    sprints: dict[str, Sprint] = Field(default_factory=dict)
    stories: dict[str, Story]
    schemas: dict[str, str] = Field(default_factory=dict)
    quality: QualityReport
    debate_trail: dict[str, Any] = Field(default_factory=dict)

    @field_validator("stories", mode="before")
    @classmethod
    def index_stories(cls, v):
        """Accept a list of stories and index it by story id."""
        if isinstance(v, list):
            return {
                (s.id if isinstance(s, Story) else s.get("id", str(i))): s
                for i, s in enumerate(v)
            }
        return v

    @property
    def is_complete(self) -> bool:
        return self.quality.passes and self.quality.confidence_score == 100


class SpecExports(BaseModel):
    markdown: str
    json_: str = Field(alias="json")

    model_config = {"populate_by_name": True}


class SynthesisInput(BaseModel):
    discovery: DiscoveryOutput
    challenge: ChallengeOutput
    design: DesignOutput
    decomposition: DecompositionOutput
    validation: ValidationOutput


class SynthesisOutput(BaseModel):
    spec_pack: SpecPack
    executive_summary: str
    exports: SpecExports
