"""Burr-based pipeline engine for specforge.

The six phases run as Burr actions; loop-backs are transitions on the
``route`` state key. ``PipelineOrchestrator`` owns a ``PipelineRun`` and
drives the application step by step.
"""

from .events import EventEmitter, EventListener
from .orchestrator import PipelineOrchestrator, create_pipeline, create_specforge_pipeline
from .run_state import PhaseState, PipelineEvent, PipelineRun
from .workflow_builder import PipelineProgressHook, build_workflow
from .workflow_spec import PIPELINE_SPEC, WorkflowSpec

__all__ = [
    # Orchestration
    "PipelineOrchestrator",
    "create_pipeline",
    "create_specforge_pipeline",
    # Run state
    "PipelineRun",
    "PhaseState",
    "PipelineEvent",
    # Events
    "EventEmitter",
    "EventListener",
    # Burr wiring
    "PIPELINE_SPEC",
    "WorkflowSpec",
    "PipelineProgressHook",
    "build_workflow",
]
