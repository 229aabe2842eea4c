"""Citation coverage checker.

Every architecture decision must point at an http(s) source and carry a
parseable, reasonably fresh verification date, with the rejected
alternatives documented. Tech-stack entries must pin an exact version.

Scoring: any error zeroes the category; otherwise each warning costs 10.
"""

import logging
import re
from datetime import UTC, datetime, timedelta
from urllib.parse import urlparse

from specforge.models.artifact import Decision, TechStack, TechStackEntry
from specforge.models.quality import CategoryResult, ValidationIssue

logger = logging.getLogger(__name__)

FRESHNESS_DAYS = 90
MIN_ALTERNATIVES = 2
WARNING_PENALTY = 10

_ISO_DATE_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:\d{2})?)?$"
)
_COMMON_DATE_FORMATS = (
    (re.compile(r"^\d{2}/\d{2}/\d{4}$"), "%m/%d/%Y"),
    (re.compile(r"^[A-Z][a-z]+ \d{1,2}, \d{4}$"), "%B %d, %Y"),
)


def is_valid_url(value: str) -> bool:
    """True when the value parses as an http(s) URL with a host."""
    if not value or any(ch.isspace() for ch in value):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_date(value: str) -> datetime | None:
    """Parse ISO 8601 or a common date format; returns an aware UTC datetime."""
    if not value:
        return None
    value = value.strip()

    parsed = None
    if _ISO_DATE_RE.match(value):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        for pattern, fmt in _COMMON_DATE_FORMATS:
            if pattern.match(value):
                try:
                    parsed = datetime.strptime(value, fmt)
                except ValueError:
                    return None
                break

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_valid_date(value: str) -> bool:
    return parse_date(value) is not None


def is_recent(value: datetime, now: datetime | None = None) -> bool:
    now = now or datetime.now(UTC)
    return value >= now - timedelta(days=FRESHNESS_DAYS)


def _issue(severity: str, message: str, location: str, suggestion: str) -> ValidationIssue:
    return ValidationIssue(
        severity=severity,
        category="citation",
        message=message,
        location=location,
        suggestion=suggestion,
    )


def _check_source_and_date(
    label: str,
    source: str,
    verified_at: str,
    location: str,
    now: datetime | None,
    require_date: bool = True,
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    if not source:
        issues.append(
            _issue(
                "error",
                f"{label} missing verification source URL",
                location,
                "Add a verification source URL",
            )
        )
    elif not is_valid_url(source):
        issues.append(
            _issue(
                "error",
                f"{label} has invalid URL: {source}",
                location,
                "Provide a valid HTTP/HTTPS URL",
            )
        )

    if not verified_at:
        if require_date:
            issues.append(
                _issue(
                    "error",
                    f"{label} missing verification date",
                    location,
                    "Add a verified_at date",
                )
            )
        return issues

    parsed = parse_date(verified_at)
    if parsed is None:
        issues.append(
            _issue(
                "error",
                f"{label} has invalid date: {verified_at}",
                location,
                "Use ISO 8601 format: YYYY-MM-DD or YYYY-MM-DDTHH:MM:SSZ",
            )
        )
    elif not is_recent(parsed, now):
        issues.append(
            _issue(
                "warning",
                f"{label} verification is over {FRESHNESS_DAYS} days old",
                location,
                "Re-verify with current sources",
            )
        )
    return issues


def check_decision(decision: Decision, now: datetime | None = None) -> list[ValidationIssue]:
    """Validate one decision's citation, freshness and alternatives."""
    label = f'Decision "{decision.topic or decision.id}"'
    location = f"decision/{decision.id}"

    issues = _check_source_and_date(
        label, decision.verification_source, decision.verified_at, location, now
    )

    count = len(decision.alternatives)
    if count == 0:
        issues.append(
            _issue(
                "error",
                f"{label} has no rejected alternatives documented",
                location,
                f"Document at least {MIN_ALTERNATIVES} alternatives that were considered",
            )
        )
    elif count < MIN_ALTERNATIVES:
        issues.append(
            _issue(
                "warning",
                f"{label} documents {count} alternative (min: {MIN_ALTERNATIVES})",
                location,
                f"Document at least {MIN_ALTERNATIVES} alternatives that were considered",
            )
        )

    for alt in decision.alternatives:
        if not alt.reason.strip():
            issues.append(
                _issue(
                    "warning",
                    f'{label} rejects "{alt.option}" without a reason',
                    location,
                    "State why the alternative was rejected",
                )
            )

    return issues


def check_tech_entry(entry: TechStackEntry, now: datetime | None = None) -> list[ValidationIssue]:
    """Validate an exact version plus the docs source of one tech entry."""
    label = f'Tech "{entry.name}"'
    location = f"tech_stack/{entry.name}"
    issues: list[ValidationIssue] = []

    if not entry.version or entry.version.strip().lower() == "latest":
        issues.append(
            _issue(
                "error",
                f'{label} has no specific version (found: "{entry.version or "undefined"}")',
                location,
                'Specify an exact version number, not "latest"',
            )
        )

    issues.extend(
        _check_source_and_date(
            label, entry.docs_url, entry.verified_at, location, now, require_date=False
        )
    )
    return issues


def check_tech_stack(tech_stack: TechStack, now: datetime | None = None) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if not tech_stack.verified_at:
        issues.append(
            _issue(
                "error",
                "Tech stack missing verification timestamp",
                "tech_stack",
                "Add verified_at timestamp to tech_stack",
            )
        )
    for entry in tech_stack.entries:
        issues.extend(check_tech_entry(entry, now))
    return issues


def check_citations(
    decisions: list[Decision],
    tech_stack: TechStack | None = None,
    now: datetime | None = None,
) -> CategoryResult:
    """Check every decision (and the tech stack, when given) for citations.

    Args:
        decisions: Architecture decisions from the design phase.
        tech_stack: Optional verified stack to check versions and sources.
        now: Reference time for the freshness threshold (defaults to now).

    Returns:
        CategoryResult scored 0 on any error, else 100 minus 10 per warning.
    """
    issues: list[ValidationIssue] = []
    for decision in decisions:
        issues.extend(check_decision(decision, now))
    if tech_stack is not None:
        issues.extend(check_tech_stack(tech_stack, now))

    errors = sum(1 for i in issues if i.severity == "error")
    warnings = len(issues) - errors
    score = 0 if errors else max(0, 100 - WARNING_PENALTY * warnings)

    if issues:
        logger.debug(f"Citations: {errors} error(s), {warnings} warning(s)")
    return CategoryResult(score=score, issues=issues)
