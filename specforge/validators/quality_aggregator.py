"""Quality aggregator.

Runs the five validators over the accumulated artifact and reduces them to
one confidence score: the minimum category score. The artifact passes only
at 100.

The aggregator does not decide what happens next. ``blamed_phases`` only
classifies which upstream phase each failing category implicates so the
validation loop knows where to restart.
"""

import logging
from datetime import datetime

from specforge.config import PhaseName
from specforge.models.artifact import Decision, Story, TechStack
from specforge.models.phases import LoopTargets, ValidationInput
from specforge.models.quality import QualityBreakdown, QualityReport, ValidationIssue
from specforge.validators.atomic import check_atomic_stories
from specforge.validators.citations import check_citations
from specforge.validators.completeness import scan_story_completeness
from specforge.validators.dependency_graph import check_dependency_graph, merge_story_dependencies
from specforge.validators.schema_balance import check_schemas

logger = logging.getLogger(__name__)

# Failing category -> upstream phase that produced the offending data
CATEGORY_BLAME: dict[str, PhaseName] = {
    "completeness": PhaseName.DECOMPOSITION,
    "atomic": PhaseName.DECOMPOSITION,
    "schemas": PhaseName.DECOMPOSITION,
    "dag": PhaseName.DECOMPOSITION,
    "citations": PhaseName.DESIGN,
}


def aggregate_quality(
    stories: list[Story],
    decisions: list[Decision],
    schemas: dict[str, str],
    dependency_dag: dict[str, list[str]] | None = None,
    tech_stack: TechStack | None = None,
    now: datetime | None = None,
) -> QualityReport:
    """Run all five validators and build the QualityReport.

    Args:
        stories: Stories from decomposition.
        decisions: Architecture decisions from design.
        schemas: Named schema text blobs from design.
        dependency_dag: Story dependency map; an absent map scores 100.
        tech_stack: Optional verified tech stack for the citation checker.
        now: Reference time for citation freshness.
    """
    breakdown = QualityBreakdown(
        completeness=scan_story_completeness(stories),
        citations=check_citations(decisions, tech_stack, now=now),
        atomic=check_atomic_stories(stories),
        schemas=check_schemas(schemas),
        dag=check_dependency_graph(dependency_dag or {}),
    )
    confidence = breakdown.min_score()

    report = QualityReport(
        confidence_score=confidence,
        passes=confidence == 100,
        breakdown=breakdown,
    )
    logger.info(
        "Quality gate: confidence=%d passes=%s (%s)",
        confidence,
        report.passes,
        ", ".join(f"{name}={result.score}" for name, result in breakdown.items()),
    )
    return report


def aggregate_validation_input(payload: ValidationInput, now: datetime | None = None) -> QualityReport:
    """Gate a ValidationInput; story ``blocked_by`` edges count as DAG edges."""
    return aggregate_quality(
        stories=payload.stories,
        decisions=payload.decisions,
        schemas=payload.schemas,
        dependency_dag=merge_story_dependencies(payload.dependency_dag, payload.stories),
        tech_stack=payload.tech_stack,
        now=now,
    )


def blamed_phases(report: QualityReport) -> list[PhaseName]:
    """Upstream phases implicated by failing categories, design first."""
    blamed = {CATEGORY_BLAME[name] for name in report.failing_categories}
    return [phase for phase in (PhaseName.DESIGN, PhaseName.DECOMPOSITION) if phase in blamed]


def loop_targets_for(report: QualityReport) -> LoopTargets:
    """Route each failing category's issue messages to the phase it blames."""
    targets = LoopTargets()
    for name, result in report.breakdown.items():
        if result.passed:
            continue
        messages = [issue.message for issue in result.issues] or [
            f"{name} scored {result.score}"
        ]
        if CATEGORY_BLAME[name] is PhaseName.DESIGN:
            targets.design_issues.extend(messages)
        else:
            targets.decomposition_issues.extend(messages)
    return targets


def with_advisories(report: QualityReport, advisories: list[ValidationIssue]) -> QualityReport:
    """Return a copy of the report with unscored advisories appended."""
    if not advisories:
        return report
    return report.model_copy(update={"advisories": [*report.advisories, *advisories]})


def render_quality_summary(report: QualityReport) -> str:
    """Render a plain-text summary of a QualityReport."""
    verdict = "PASS" if report.passes else "FAIL"
    lines = [
        f"Quality Report: {verdict} (confidence {report.confidence_score}/100)",
        f"Validated at: {report.validated_at}",
        "",
    ]
    for name, result in report.breakdown.items():
        mark = "ok" if result.passed else "FAIL"
        lines.append(f"  [{mark}] {name}: {result.score}/100")
        for issue in result.issues:
            where = f" @ {issue.location}" if issue.location else ""
            lines.append(f"      - {issue.severity.upper()}: {issue.message}{where}")
            if issue.suggestion:
                lines.append(f"        fix: {issue.suggestion}")

    if report.advisories:
        lines.append("")
        lines.append("Advisories:")
        for issue in report.advisories:
            lines.append(f"  - {issue.severity.upper()}: {issue.message}")

    return "\n".join(lines)
