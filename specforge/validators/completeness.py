"""Code completeness scanner.

Flags code payloads that are not fully written out: ellipses, TODO/FIXME
markers, lazy back-references ("same as above"), stub throws, and empty
function bodies. Every match is an error tied to story/step/file:line.

These are mechanical checks that run over story steps without LLM calls.
"""

import logging
import re
from dataclasses import dataclass

from specforge.models.artifact import Story, StoryStep
from specforge.models.quality import CategoryResult, ValidationIssue

logger = logging.getLogger(__name__)

# Points deducted per completeness issue
ISSUE_PENALTY = 5


@dataclass(frozen=True)
class IncompletionMarker:
    """A regex that identifies unfinished code and the message to report."""

    pattern: re.Pattern
    message: str


def _marker(regex: str, message: str, flags: int = 0) -> IncompletionMarker:
    return IncompletionMarker(re.compile(regex, flags), message)


_I = re.IGNORECASE

INCOMPLETION_MARKERS: tuple[IncompletionMarker, ...] = (
    # Ellipsis
    _marker(r"\.{3}", "Ellipsis (...) found - code must be complete"),
    _marker("…", "Ellipsis character (…) found - code must be complete"),
    # TODO / FIXME in every comment style
    _marker(r"//\s*TODO", "TODO comment found - must be implemented", _I),
    _marker(r"//\s*FIXME", "FIXME comment found - must be fixed", _I),
    _marker(r"/\*\s*TODO", "TODO block comment found - must be implemented", _I),
    _marker(r"/\*\s*FIXME", "FIXME block comment found - must be fixed", _I),
    _marker(r"#\s*TODO", "TODO comment found - must be implemented", _I),
    _marker(r"#\s*FIXME", "FIXME comment found - must be fixed", _I),
    # Placeholder comments
    _marker(r"//\s*\.\.\.", "Placeholder comment (...) found"),
    _marker(r"/\*\s*\.\.\.", "Placeholder block comment found"),
    _marker(r"//\s*implementation", 'Vague "implementation" comment found', _I),
    _marker(r"//\s*handle\s+(other|remaining|rest)", "Incomplete handling comment found", _I),
    _marker(r"//\s*add\s+(more|other|remaining)", "Incomplete addition comment found", _I),
    _marker(r"#\s*placeholder", "Placeholder comment found", _I),
    # Lazy references
    _marker(
        r"similar\s+to\s+(above|below|previous)",
        '"Similar to above" reference - write actual code',
        _I,
    ),
    _marker(r"as\s+shown\s+(above|below|before)", '"As shown above" reference - write actual code', _I),
    _marker(
        r"same\s+as\s+(above|below|before|previous)",
        '"Same as above" reference - write actual code',
        _I,
    ),
    _marker(r"see\s+(above|below|other)", '"See above" reference - write actual code', _I),
    _marker(
        r"rest\s+of\s+(the\s+)?implementation",
        '"Rest of implementation" found - complete it',
        _I,
    ),
    _marker(r"etc\.?$", 'Incomplete list ending with "etc"', _I | re.MULTILINE),
    _marker(r"and\s+so\s+on", '"And so on" found - complete the list', _I),
    # Stubs
    _marker(
        r"throw\s+new\s+Error\s*\(\s*['\"]not\s+implemented",
        "Not implemented error found",
        _I,
    ),
    _marker(r"throw\s+new\s+Error\s*\(\s*['\"]TODO", "TODO error found", _I),
    _marker(r"pass\s*#\s*TODO", "Python pass with TODO found", _I),
    _marker(r"raise\s+NotImplementedError", "NotImplementedError found", _I),
    # Vague placeholders
    _marker(r"//\s*logic\s*(goes\s+)?here", '"Logic here" placeholder found', _I),
    _marker(r"//\s*code\s*(goes\s+)?here", '"Code here" placeholder found', _I),
    _marker(r"(//|#)\s*(your|add)\s+(code|logic)\s+here", '"Your code here" placeholder found', _I),
    _marker(r"//\s*insert", '"Insert" placeholder comment found', _I),
)

# Empty or undefined-returning bodies; skipped for type-definition blocks
EMPTY_BODY_MARKERS: tuple[IncompletionMarker, ...] = (
    _marker(r"\{\s*\}", "Empty function body found"),
    _marker(r"=>\s*undefined\s*;?$", "Arrow function returning undefined", re.MULTILINE),
    _marker(r"return\s+undefined\s*;?\s*\}", "Function returning undefined without logic"),
    _marker(r"async\s+\([^)]*\)\s*=>\s*\{\s*\}", "Empty async arrow function"),
    _marker(r"async\s+function\s+\w+\s*\([^)]*\)\s*\{\s*\}", "Empty async function"),
)

_TYPE_CONTEXT_RE = re.compile(r"type\s+\w+\s*=|interface\s+\w+")


def _line_number(code: str, offset: int) -> int:
    return code.count("\n", 0, offset) + 1


def scan_code(code: str, location: str) -> list[ValidationIssue]:
    """Scan one code payload and return an error per incompletion marker match.

    Args:
        code: Source text to scan.
        location: Prefix for issue locations; the line number is appended.

    Returns:
        List of completeness issues, in catalog order.
    """
    issues: list[ValidationIssue] = []

    for marker in INCOMPLETION_MARKERS:
        for match in marker.pattern.finditer(code):
            issues.append(
                ValidationIssue(
                    severity="error",
                    category="completeness",
                    message=marker.message,
                    location=f"{location}:{_line_number(code, match.start())}",
                    suggestion="Replace with complete implementation",
                )
            )

    if not _TYPE_CONTEXT_RE.search(code):
        for marker in EMPTY_BODY_MARKERS:
            for match in marker.pattern.finditer(code):
                issues.append(
                    ValidationIssue(
                        severity="error",
                        category="completeness",
                        message=marker.message,
                        location=f"{location}:{_line_number(code, match.start())}",
                        suggestion="Implement the function body",
                    )
                )

    return issues


def has_incomplete_code(code: str) -> bool:
    """Quick check: does the text contain any incompletion marker?"""
    return any(marker.pattern.search(code) for marker in INCOMPLETION_MARKERS)


def scan_step(step: StoryStep, story_id: str) -> list[ValidationIssue]:
    return scan_code(step.code, f"{story_id}/step:{step.step}/{step.file}")


def scan_story_completeness(stories: list[Story]) -> CategoryResult:
    """Scan every step of every story.

    Score is 100 with no issues and drops by 5 per issue, floored at 0.
    """
    issues: list[ValidationIssue] = []
    for story in stories:
        for step in story.steps:
            issues.extend(scan_step(step, story.id))

    score = max(0, 100 - ISSUE_PENALTY * len(issues))
    if issues:
        logger.debug(f"Completeness: {len(issues)} issue(s) across {len(stories)} stories")
    return CategoryResult(score=score, issues=issues)
