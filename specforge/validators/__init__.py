"""Deterministic quality validators.

Each validator is a plain function taking a slice of the artifact and
returning a CategoryResult(score, issues). The aggregator composes them.
"""

from .atomic import (
    MAX_FILES_PER_STORY,
    check_atomic_stories,
    count_files_affected,
    non_atomic_story_ids,
    suggest_split,
)
from .citations import check_citations, check_decision, is_valid_date, is_valid_url
from .completeness import has_incomplete_code, scan_code, scan_story_completeness
from .dependency_graph import check_dependency_graph, find_cycles, merge_story_dependencies
from .quality_aggregator import (
    aggregate_quality,
    aggregate_validation_input,
    blamed_phases,
    loop_targets_for,
    render_quality_summary,
    with_advisories,
)
from .schema_balance import check_schema, check_schemas

__all__ = [
    # Completeness
    "scan_code",
    "scan_story_completeness",
    "has_incomplete_code",
    # Citations
    "check_citations",
    "check_decision",
    "is_valid_url",
    "is_valid_date",
    # Atomic
    "MAX_FILES_PER_STORY",
    "check_atomic_stories",
    "count_files_affected",
    "non_atomic_story_ids",
    "suggest_split",
    # Schemas
    "check_schema",
    "check_schemas",
    # DAG
    "check_dependency_graph",
    "find_cycles",
    "merge_story_dependencies",
    # Aggregation
    "aggregate_quality",
    "aggregate_validation_input",
    "blamed_phases",
    "loop_targets_for",
    "render_quality_summary",
    "with_advisories",
]
