"""specforge: a six-phase specification pipeline with a deterministic quality gate.

Usage:
    from specforge import create_specforge_pipeline

    pipeline = create_specforge_pipeline(preset="balanced")
    spec_pack = pipeline.start("Build a todo app with offline sync")
"""

from .config import (
    EventType,
    IterationConfig,
    PhaseName,
    PhaseStatus,
    PipelineSettings,
    PipelineStatus,
    RetryConfig,
)
from .exceptions import (
    AgentInvocationError,
    ConfigurationError,
    PipelineCancelledError,
    QualityGateError,
    SpecforgeError,
)
from .models import DiscoveryInput, QualityReport, SpecPack, Story, ValidationIssue
from .validators import aggregate_quality
from .workflow import (
    PipelineEvent,
    PipelineOrchestrator,
    PipelineRun,
    create_pipeline,
    create_specforge_pipeline,
)

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "PipelineOrchestrator",
    "create_pipeline",
    "create_specforge_pipeline",
    "PipelineRun",
    "PipelineEvent",
    # Config
    "EventType",
    "IterationConfig",
    "PhaseName",
    "PhaseStatus",
    "PipelineSettings",
    "PipelineStatus",
    "RetryConfig",
    # Models
    "DiscoveryInput",
    "QualityReport",
    "SpecPack",
    "Story",
    "ValidationIssue",
    "aggregate_quality",
    # Errors
    "SpecforgeError",
    "ConfigurationError",
    "AgentInvocationError",
    "QualityGateError",
    "PipelineCancelledError",
]
