"""Quality gate result models.

A QualityReport holds one CategoryResult per validator. Its confidence score
is the minimum category score and it passes only at 100.
"""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

Severity = Literal["error", "warning"]
IssueCategory = Literal["completeness", "citation", "atomic", "schema", "dag", "loop_budget"]

QUALITY_CATEGORIES = ("completeness", "citations", "atomic", "schemas", "dag")


class ValidationIssue(BaseModel):
    """A single problem found by a validator."""

    severity: Severity
    category: IssueCategory
    message: str
    location: str = ""
    suggestion: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == "error"


class CategoryResult(BaseModel):
    """Score and issues for one validator category."""

    score: int = Field(ge=0, le=100)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def passed(self) -> bool:
        return self.score == 100


class QualityBreakdown(BaseModel):
    """Per-category results of the five validators."""

    completeness: CategoryResult
    citations: CategoryResult
    atomic: CategoryResult
    schemas: CategoryResult
    dag: CategoryResult

    def items(self) -> list[tuple[str, CategoryResult]]:
        return [(name, getattr(self, name)) for name in QUALITY_CATEGORIES]

    def min_score(self) -> int:
        return min(result.score for _, result in self.items())


class QualityReport(BaseModel):
    """Aggregated quality verdict over the whole artifact."""

    confidence_score: int = Field(ge=0, le=100)
    passes: bool
    breakdown: QualityBreakdown
    advisories: list[ValidationIssue] = Field(
        default_factory=list, description="Unscored notes such as exhausted loop budgets"
    )
    validated_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    @model_validator(mode="after")
    def check_score_invariants(self):
        expected = self.breakdown.min_score()
        if self.confidence_score != expected:
            raise ValueError(
                f"confidence_score {self.confidence_score} must equal the minimum "
                f"category score {expected}"
            )
        if self.passes != (self.confidence_score == 100):
            raise ValueError("passes must be true exactly when confidence_score is 100")
        return self

    @property
    def issues(self) -> list[ValidationIssue]:
        """All scored issues across categories."""
        return [issue for _, result in self.breakdown.items() for issue in result.issues]

    @property
    def failing_categories(self) -> list[str]:
        return [name for name, result in self.breakdown.items() if not result.passed]
