"""Typed data models for the specification pipeline."""

from .artifact import (
    AffectedFile,
    Decision,
    RejectedAlternative,
    Story,
    StoryStep,
    TechStack,
    TechStackEntry,
)
from .phases import (
    Challenge,
    ChallengedRequirements,
    ChallengeInput,
    ChallengeOutput,
    ClarifyingQuestion,
    DecompositionInput,
    DecompositionOutput,
    DesignInput,
    DesignOutput,
    DiscoveryInput,
    DiscoveryOutput,
    LoopTargets,
    MentionedTech,
    RequirementsDraft,
    SpecExports,
    SpecPack,
    SpecPackMeta,
    SpecPackRequirements,
    Sprint,
    SynthesisInput,
    SynthesisOutput,
    ValidationInput,
    ValidationOutput,
)
from .quality import (
    QUALITY_CATEGORIES,
    CategoryResult,
    QualityBreakdown,
    QualityReport,
    ValidationIssue,
)

__all__ = [
    # Artifact
    "AffectedFile",
    "Decision",
    "RejectedAlternative",
    "Story",
    "StoryStep",
    "TechStack",
    "TechStackEntry",
    # Phases
    "Challenge",
    "ChallengedRequirements",
    "ChallengeInput",
    "ChallengeOutput",
    "ClarifyingQuestion",
    "DecompositionInput",
    "DecompositionOutput",
    "DesignInput",
    "DesignOutput",
    "DiscoveryInput",
    "DiscoveryOutput",
    "LoopTargets",
    "MentionedTech",
    "RequirementsDraft",
    "SpecExports",
    "SpecPack",
    "SpecPackMeta",
    "SpecPackRequirements",
    "Sprint",
    "SynthesisInput",
    "SynthesisOutput",
    "ValidationInput",
    "ValidationOutput",
    # Quality
    "QUALITY_CATEGORIES",
    "CategoryResult",
    "QualityBreakdown",
    "QualityReport",
    "ValidationIssue",
]
