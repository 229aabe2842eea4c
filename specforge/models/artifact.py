"""Pydantic models for the specification artifact.

These are the validation subjects the quality gate reads:
- Story/StoryStep/AffectedFile: atomic units of work produced by decomposition
- Decision/RejectedAlternative: architecture decisions produced by design
- TechStack/TechStackEntry: verified technology versions produced by design
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

FileAction = Literal["CREATE", "MODIFY", "DELETE"]
StoryDomain = Literal["frontend", "backend", "pipeline", "infra"]
StoryStatus = Literal["ready", "pending", "blocked", "in_progress", "done"]


def _coerce_list(v):
    """LLMs sometimes return empty string or None instead of []."""
    if v is None or v == "":
        return []
    if isinstance(v, str):
        return [x.strip() for x in v.split(",") if x.strip()]
    return v


# =============================================================================
# Stories
# =============================================================================


class AffectedFile(BaseModel):
    """A file a story declares it will touch."""

    path: str = Field(description="Repository-relative file path")
    action: FileAction = Field(default="MODIFY", description="CREATE, MODIFY or DELETE")

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v):
        return v.upper() if isinstance(v, str) else v


class StoryStep(BaseModel):
    """One ordered implementation step inside a story."""

    step: int = Field(default=1, description="1-based step number")
    action: FileAction = Field(description="CREATE, MODIFY or DELETE")
    file: str = Field(description="Target file path")
    code: str = Field(default="", description="Complete code payload for the step")

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v):
        return v.upper() if isinstance(v, str) else v


class Story(BaseModel):
    """An atomic unit of work touching at most three files."""

    id: str = Field(description="Story ID e.g. S1")
    title: str = Field(default="", description="Short descriptive title")
    domain: StoryDomain = Field(default="backend")
    status: StoryStatus = Field(default="pending")
    files_affected: list[AffectedFile] = Field(default_factory=list)
    steps: list[StoryStep] = Field(default_factory=list)
    blocked_by: list[str] = Field(default_factory=list, description="Story IDs this depends on")
    blocks: list[str] = Field(default_factory=list, description="Story IDs waiting on this one")
    acceptance_criteria: list[str] = Field(default_factory=list)

    @field_validator("blocked_by", "blocks", "acceptance_criteria", mode="before")
    @classmethod
    def coerce_to_list(cls, v):
        return _coerce_list(v)

    @field_validator("files_affected", mode="before")
    @classmethod
    def coerce_file_paths(cls, v):
        """Accept bare path strings as MODIFY entries."""
        v = _coerce_list(v)
        return [{"path": item} if isinstance(item, str) else item for item in v]

    def distinct_files(self) -> list[str]:
        """Every distinct path touched by declared files and by steps, in first-seen order."""
        paths = [f.path for f in self.files_affected] + [step.file for step in self.steps]
        return list(dict.fromkeys(p for p in paths if p))


# =============================================================================
# Decisions and tech stack
# =============================================================================


class RejectedAlternative(BaseModel):
    """An option considered and rejected for a decision."""

    option: str
    reason: str = ""


class Decision(BaseModel):
    """An architecture decision backed by a verification source."""

    id: str = Field(description="Decision ID e.g. D1")
    topic: str = Field(default="")
    decision: str = Field(description="The chosen option")
    alternatives: list[RejectedAlternative] = Field(default_factory=list)
    verification_source: str = Field(default="", description="URL backing the decision")
    verified_at: str = Field(default="", description="When the source was checked")

    @field_validator("alternatives", mode="before")
    @classmethod
    def coerce_alternatives(cls, v):
        if v is None or v == "":
            return []
        return [{"option": item} if isinstance(item, str) else item for item in v]


class TechStackEntry(BaseModel):
    """A pinned technology with its documentation source."""

    name: str
    version: str = ""
    docs_url: str = ""
    verified_at: str = ""


class TechStack(BaseModel):
    """The verified technology stack chosen during design."""

    entries: list[TechStackEntry] = Field(default_factory=list)
    verified_at: str = ""
