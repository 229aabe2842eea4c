"""Phase-specific output shape validators.

Pydantic enforces types, required fields and enum membership when a
response is parsed. These functions check the remaining constraints a
model cannot express on its own: non-empty collections, non-blank
strings, and cross-field consistency. Each returns a list of problems;
an empty list means the shape is acceptable.
"""

from specforge.models.phases import (
    ChallengeOutput,
    DecompositionOutput,
    DesignOutput,
    DiscoveryOutput,
    SynthesisOutput,
    ValidationOutput,
)
from specforge.validators.completeness import has_incomplete_code


def _blank(value: str | None) -> bool:
    return not value or not value.strip()


def check_discovery_output(output: DiscoveryOutput) -> list[str]:
    problems: list[str] = []
    if _blank(output.parsed_intent):
        problems.append("parsed_intent is empty")
    if not output.clarifying_questions:
        problems.append("clarifying_questions must contain at least one question")
    for i, q in enumerate(output.clarifying_questions):
        for field_name in ("question", "rationale", "recommended"):
            if _blank(getattr(q, field_name)):
                problems.append(f"clarifying_questions[{i}].{field_name} is empty")
    if _blank(output.requirements_draft.goal):
        problems.append("requirements_draft.goal is empty")
    return problems


def check_challenge_output(output: ChallengeOutput) -> list[str]:
    problems: list[str] = []
    if not output.challenges:
        problems.append("challenges must contain at least one challenge")
    for i, challenge in enumerate(output.challenges):
        if _blank(challenge.concern):
            problems.append(f"challenges[{i}].concern is empty")
    if _blank(output.requirements_challenged.goal):
        problems.append("requirements_challenged.goal is empty")
    return problems


def check_design_output(output: DesignOutput) -> list[str]:
    problems: list[str] = []
    if _blank(output.architecture):
        problems.append("architecture is empty")
    if _blank(output.file_structure):
        problems.append("file_structure is empty")
    if _blank(output.tech_stack.verified_at):
        problems.append("tech_stack.verified_at is missing")
    for i, decision in enumerate(output.decisions):
        for field_name in ("id", "topic", "decision"):
            if _blank(getattr(decision, field_name)):
                problems.append(f"decisions[{i}].{field_name} is empty")
        if not decision.alternatives:
            problems.append(f"decisions[{i}] must list at least one rejected alternative")
    return problems


def check_decomposition_output(output: DecompositionOutput) -> list[str]:
    problems: list[str] = []
    if not output.stories:
        problems.append("stories must contain at least one story")

    ids = [story.id for story in output.stories]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        problems.append(f"duplicate story ids: {', '.join(duplicates)}")

    for story in output.stories:
        if story.id not in output.dependency_dag:
            problems.append(f"dependency_dag has no entry for story {story.id}")
        elif set(output.dependency_dag[story.id]) != set(story.blocked_by):
            problems.append(
                f"story {story.id} blocked_by {sorted(story.blocked_by)} does not match "
                f"dependency_dag {sorted(output.dependency_dag[story.id])}"
            )
        for step in story.steps:
            if _blank(step.file):
                problems.append(f"story {story.id} step {step.step} has no target file")
            if has_incomplete_code(step.code):
                problems.append(f"story {story.id} step {step.step} contains incomplete code")
    return problems


def check_validation_output(output: ValidationOutput) -> list[str]:
    problems: list[str] = []
    if output.passes != output.quality_report.passes:
        problems.append("passes does not match quality_report.passes")
    if not output.passes and output.loop_targets is None:
        problems.append("loop_targets is required when validation does not pass")
    return problems


def check_synthesis_output(output: SynthesisOutput) -> list[str]:
    problems: list[str] = []
    if _blank(output.executive_summary):
        problems.append("executive_summary is empty")
    if not output.spec_pack.stories:
        problems.append("spec_pack.stories is empty")
    if _blank(output.spec_pack.requirements.goal):
        problems.append("spec_pack.requirements.goal is empty")
    if _blank(output.exports.markdown):
        problems.append("exports.markdown is empty")
    if _blank(output.exports.json_):
        problems.append("exports.json is empty")
    return problems
