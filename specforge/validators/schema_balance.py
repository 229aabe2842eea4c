"""Structural schema checks.

Cheap syntax sanity checks over the named schema text blobs produced by
design. A full compile is out of reach here, so the checks are:
balanced braces and parentheses, a non-empty export surface, and no
incompletion markers.
"""

import re

from specforge.models.quality import CategoryResult, ValidationIssue
from specforge.validators.completeness import has_incomplete_code

_EMPTY_EXPORT_RE = re.compile(r"export\s*\{\s*\}")
_REAL_EXPORT_RE = re.compile(r"export\s+(type|interface|const|function|class|enum)\b")

_PAIRS = (("{", "}", "braces"), ("(", ")", "parentheses"))


def _issue(severity: str, message: str, name: str, suggestion: str) -> ValidationIssue:
    return ValidationIssue(
        severity=severity,
        category="schema",
        message=message,
        location=f"schemas/{name}",
        suggestion=suggestion,
    )


def check_schema(name: str, content: str) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    for opener, closer, label in _PAIRS:
        if content.count(opener) != content.count(closer):
            issues.append(
                _issue(
                    "error",
                    f'Schema "{name}" has mismatched {label}',
                    name,
                    f"Check for missing {opener} or {closer}",
                )
            )

    if _EMPTY_EXPORT_RE.search(content) and not _REAL_EXPORT_RE.search(content):
        issues.append(
            _issue("warning", f'Schema "{name}" has empty export', name, "Add actual type exports")
        )

    if has_incomplete_code(content):
        issues.append(
            _issue(
                "error",
                f'Schema "{name}" contains incomplete code',
                name,
                "Complete all type definitions",
            )
        )

    return issues


def check_schemas(schemas: dict[str, str]) -> CategoryResult:
    """Score 100 when no schema has an error-severity issue, else 0."""
    issues: list[ValidationIssue] = []
    for name, content in schemas.items():
        issues.extend(check_schema(name, content))

    has_errors = any(i.severity == "error" for i in issues)
    return CategoryResult(score=0 if has_errors else 100, issues=issues)
