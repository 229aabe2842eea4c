"""Shared test fixtures and helpers.

Builders return plain dicts shaped like collaborator JSON so the same data
exercises parsing, shape checks and the quality gate.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from specforge.config import IterationConfig, PhaseName, RetryConfig
from specforge.models.artifact import Decision, Story
from specforge.workflow.orchestrator import PipelineOrchestrator


def today() -> str:
    return datetime.now(UTC).date().isoformat()


def days_ago(days: int) -> str:
    return (datetime.now(UTC) - timedelta(days=days)).date().isoformat()


# ---------------------------------------------------------------------------
# Artifact builders
# ---------------------------------------------------------------------------

COMPLETE_CODE = """\
export function addTask(tasks: Task[], title: string): Task[] {
  const task = { id: crypto.randomUUID(), title, done: false };
  return tasks.concat([task]);
}
"""


def story_dict(story_id="S1", files=("src/tasks/add.ts",), code=COMPLETE_CODE, blocked_by=()):
    """A story with one CREATE step per file."""
    return {
        "id": story_id,
        "title": f"Story {story_id}",
        "domain": "backend",
        "files_affected": [{"path": f, "action": "CREATE"} for f in files],
        "steps": [
            {"step": i + 1, "action": "CREATE", "file": f, "code": code}
            for i, f in enumerate(files)
        ],
        "blocked_by": list(blocked_by),
        "acceptance_criteria": ["Task is added to the list"],
    }


def make_story(**kwargs) -> Story:
    return Story.model_validate(story_dict(**kwargs))


def decision_dict(
    decision_id="D1",
    source="https://react.dev/reference/react",
    verified_at=None,
    alternatives=None,
):
    if alternatives is None:
        alternatives = [
            {"option": "Vue", "reason": "Team has no Vue experience"},
            {"option": "Svelte", "reason": "Smaller ecosystem for our needs"},
        ]
    return {
        "id": decision_id,
        "topic": "Frontend framework",
        "decision": "React 19",
        "alternatives": alternatives,
        "verification_source": source,
        "verified_at": verified_at if verified_at is not None else today(),
    }


def make_decision(**kwargs) -> Decision:
    return Decision.model_validate(decision_dict(**kwargs))


# ---------------------------------------------------------------------------
# Phase output builders
# ---------------------------------------------------------------------------


def discovery_output():
    return {
        "parsed_intent": "A personal todo app with offline sync",
        "clarifying_questions": [
            {
                "question": "Which platforms must be supported?",
                "rationale": "Drives the client architecture",
                "recommended": "Web only for v1",
                "alternatives": ["Web and iOS"],
            }
        ],
        "mentioned_tech": ["React"],
        "requirements_draft": {
            "goal": "Manage personal tasks offline",
            "scope": ["Add tasks", "Sync when online"],
            "non_goals": ["Team sharing"],
        },
    }


def challenge_output(needs_loop=False, reason=None):
    return {
        "challenges": [
            {
                "type": "scope",
                "concern": "Conflict resolution for offline edits is unspecified",
                "suggested_resolution": "Last write wins per field",
            }
        ],
        "requirements_challenged": {
            "goal": "Manage personal tasks offline",
            "scope": ["Add tasks", "Sync when online"],
            "non_goals": ["Team sharing"],
            "acceptance_criteria": ["Tasks added offline appear after reconnect"],
        },
        "needs_discovery_loop": needs_loop,
        "loop_reason": reason,
    }


def design_output(decisions=None, schemas=None):
    return {
        "architecture": "Single-page React app with an IndexedDB cache and a REST sync API",
        "tech_stack": {
            "entries": [
                {
                    "name": "react",
                    "version": "19.0.0",
                    "docs_url": "https://react.dev",
                    "verified_at": today(),
                }
            ],
            "verified_at": today(),
        },
        "file_structure": "src/\n  tasks/\n  sync/",
        "decisions": decisions if decisions is not None else [decision_dict()],
        "schemas": schemas
        if schemas is not None
        else {"task": "export interface Task { id: string; title: string; done: boolean }"},
    }


def decomposition_output(stories=None, dag=None, non_atomic=()):
    if stories is None:
        stories = [
            story_dict("S1"),
            story_dict("S2", ("src/sync/push.ts",), blocked_by=["S1"]),
        ]
    if dag is None:
        dag = {s["id"]: list(s.get("blocked_by", [])) for s in stories}
    return {
        "sprints": {"sprint_1": {"name": "Sprint 1", "story_ids": [s["id"] for s in stories]}},
        "stories": stories,
        "dependency_dag": dag,
        "has_non_atomic_tasks": bool(non_atomic),
        "non_atomic_stories": list(non_atomic),
    }


def synthesize(request):
    """Synthesis collaborator that assembles the spec pack from its input."""
    payload = request.payload
    return {
        "spec_pack": {
            "meta": {"name": "todo-app"},
            "requirements": {"goal": payload.challenge.requirements_challenged.goal},
            "tech_stack": payload.design.tech_stack.model_dump(),
            "stories": [s.model_dump() for s in payload.decomposition.stories],
            "schemas": payload.design.schemas,
            "quality": payload.validation.quality_report.model_dump(),
        },
        "executive_summary": "Offline-first todo app in two atomic stories.",
        "exports": {"markdown": "# Todo app", "json": "{}"},
    }


# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------


class ScriptedCollaborator:
    """Collaborator that replays responses in order.

    The last response repeats once the script runs out. A response may be
    an exception (raised), a callable (called with the request) or data
    (returned as-is).
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(request)
        return response

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def collaborators():
    """A full, passing set of collaborators; tests replace entries as needed."""
    from specforge.agents.quality_gate import QualityGateCollaborator

    return {
        PhaseName.DISCOVERY: ScriptedCollaborator(discovery_output()),
        PhaseName.CHALLENGE: ScriptedCollaborator(challenge_output()),
        PhaseName.DESIGN: ScriptedCollaborator(design_output()),
        PhaseName.DECOMPOSITION: ScriptedCollaborator(decomposition_output()),
        PhaseName.VALIDATION: QualityGateCollaborator(),
        PhaseName.SYNTHESIS: ScriptedCollaborator(synthesize),
    }


@pytest.fixture
def fast_retry():
    """No retries, no timeout thread."""
    return RetryConfig(max_retries=0, base_delay=0.0, max_delay=0.0, timeout=None)


@pytest.fixture
def make_orchestrator(fast_retry):
    """Factory building an orchestrator with a recorded event list."""

    def _make(collaborators, iteration_config=None, retry_config=None):
        orchestrator = PipelineOrchestrator(
            collaborators,
            iteration_config=iteration_config or IterationConfig(),
            retry_config=retry_config or fast_retry,
            sleep=MagicMock(),
        )
        events = []
        orchestrator.on_event(events.append)
        return orchestrator, events

    return _make
