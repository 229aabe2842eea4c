"""Dependency-graph checker.

Treats the story dependency map (story id -> ids it depends on) as a
directed graph and rejects cycles and dangling edges.
"""

import logging

from specforge.models.artifact import Story
from specforge.models.quality import CategoryResult, ValidationIssue

logger = logging.getLogger(__name__)


def find_cycles(dag: dict[str, list[str]]) -> list[list[str]]:
    """Depth-first cycle detection.

    Each cycle is returned once, as the path from the first revisited
    node back to itself, e.g. ``["A", "B", "C", "A"]``. Nodes are visited
    in mapping order, so results are deterministic.
    """
    visited: set[str] = set()
    cycles: list[list[str]] = []
    seen_cycles: set[frozenset[str]] = set()

    for root in dag:
        if root in visited:
            continue

        # Explicit stack of (node, iterator over its deps) keeps deep graphs
        # off the interpreter recursion limit.
        path: list[str] = [root]
        on_path: set[str] = {root}
        stack = [(root, iter(dag.get(root, [])))]
        visited.add(root)

        while stack:
            node, deps = stack[-1]
            dep = next(deps, None)
            if dep is None:
                stack.pop()
                path.pop()
                on_path.discard(node)
                continue

            if dep in on_path:
                cycle = path[path.index(dep) :] + [dep]
                key = frozenset(cycle)
                if key not in seen_cycles:
                    seen_cycles.add(key)
                    cycles.append(cycle)
                continue

            if dep in visited or dep not in dag:
                continue

            visited.add(dep)
            path.append(dep)
            on_path.add(dep)
            stack.append((dep, iter(dag.get(dep, []))))

    return cycles


def merge_story_dependencies(dag: dict[str, list[str]], stories: list[Story]) -> dict[str, list[str]]:
    """Union of the declared map and every story's ``blocked_by`` edges.

    Map order is kept; stories missing from the map are appended.
    """
    merged = {node: list(deps) for node, deps in dag.items()}
    for story in stories:
        deps = merged.setdefault(story.id, [])
        for dep in story.blocked_by:
            if dep not in deps:
                deps.append(dep)
    return merged


def check_dependency_graph(dag: dict[str, list[str]]) -> CategoryResult:
    """Score 100 for an acyclic graph whose edges all resolve, else 0.

    Each cycle is reported as a single error naming the full path; each
    edge to an unknown node is a separate error.
    """
    issues: list[ValidationIssue] = []

    for cycle in find_cycles(dag):
        issues.append(
            ValidationIssue(
                severity="error",
                category="dag",
                message=f"Circular dependency detected: {' → '.join(cycle)}",
                location="dependency_dag",
                suggestion="Remove the circular dependency",
            )
        )

    for node, deps in dag.items():
        for dep in deps:
            if dep not in dag:
                issues.append(
                    ValidationIssue(
                        severity="error",
                        category="dag",
                        message=f'Story "{node}" depends on unknown story "{dep}"',
                        location=f"dependency_dag/{node}",
                        suggestion=f'Add story "{dep}" or remove it from blocked_by',
                    )
                )

    if issues:
        logger.debug(f"Dependency graph: {len(issues)} issue(s)")
    return CategoryResult(score=0 if issues else 100, issues=issues)
