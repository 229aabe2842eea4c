"""Atomic task size checker.

A story is atomic when it touches at most three distinct files (declared
``files_affected`` plus every step's target file). The rule is binary at
the category level: one violation drives the score to 0.
"""

import logging
import math
from collections import defaultdict

from specforge.models.artifact import Story
from specforge.models.quality import CategoryResult, ValidationIssue

logger = logging.getLogger(__name__)

MAX_FILES_PER_STORY = 3


def count_files_affected(story: Story) -> int:
    return len(story.distinct_files())


def suggest_split(story: Story) -> list[str]:
    """Suggest smaller stories by grouping files per directory.

    Files are sorted and grouped by their parent directory (``root`` for
    top-level files); directories are taken in sorted order and each group
    is chunked into runs of at most three files.

    Returns:
        One label per suggested story, e.g.
        ``"S4-1: src/api (2 files: orders.ts, users.ts)"``. Empty when the
        story is already atomic.
    """
    files = story.distinct_files()
    if len(files) <= MAX_FILES_PER_STORY:
        return []

    by_dir: dict[str, list[str]] = defaultdict(list)
    for path in sorted(files):
        directory, _, _ = path.rpartition("/")
        by_dir[directory or "root"].append(path)

    suggestions: list[str] = []
    for directory, dir_files in sorted(by_dir.items()):
        for start in range(0, len(dir_files), MAX_FILES_PER_STORY):
            chunk = dir_files[start : start + MAX_FILES_PER_STORY]
            names = ", ".join(path.rsplit("/", 1)[-1] for path in chunk)
            suggestions.append(
                f"{story.id}-{len(suggestions) + 1}: {directory} ({len(chunk)} files: {names})"
            )
    return suggestions


def check_story_atomic(story: Story) -> list[ValidationIssue]:
    files = story.distinct_files()
    if len(files) <= MAX_FILES_PER_STORY:
        return []

    parts = math.ceil(len(files) / MAX_FILES_PER_STORY)
    split = "; ".join(suggest_split(story))
    return [
        ValidationIssue(
            severity="error",
            category="atomic",
            message=f"Story {story.id} touches {len(files)} files (max: {MAX_FILES_PER_STORY})",
            location=story.id,
            suggestion=f"Split into at least {parts} smaller stories: {split}",
        )
    ]


def check_atomic_stories(stories: list[Story]) -> CategoryResult:
    """Score 100 when every story is atomic, else 0 with one error per violator."""
    issues: list[ValidationIssue] = []
    for story in stories:
        issues.extend(check_story_atomic(story))

    if issues:
        logger.debug(f"Atomic: {len(issues)} non-atomic stor{'y' if len(issues) == 1 else 'ies'}")
    return CategoryResult(score=0 if issues else 100, issues=issues)


def non_atomic_story_ids(stories: list[Story]) -> list[str]:
    return [s.id for s in stories if count_files_affected(s) > MAX_FILES_PER_STORY]
