"""Output models for risk assessment and stored review records."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

RiskLevel = Literal["low", "medium", "high", "critical"]
Severity = Literal["info", "low", "medium", "high", "critical"]
RiskFactorName = Literal[
    "changeSize", "fileCount", "criticalFiles", "complexity", "testCoverage"
]

RISK_FACTOR_LABELS: dict[str, str] = {
    "changeSize": "Change Size",
    "fileCount": "File Count",
    "criticalFiles": "Critical Files",
    "complexity": "Complexity",
    "testCoverage": "Test Coverage",
}


class RiskFactor(BaseModel):
    """One scored dimension of a diff."""

    model_config = ConfigDict(frozen=True)

    name: RiskFactorName
    score: int = Field(ge=0, le=100)
    weight: float
    impact_level: RiskLevel
    description: str
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        """Human label used in summaries."""
        return RISK_FACTOR_LABELS[self.name]


class RiskScore(BaseModel):
    """Combined risk assessment of a diff."""

    model_config = ConfigDict(frozen=True)

    overall: int = Field(ge=0, le=100)
    level: RiskLevel
    factors: tuple[RiskFactor, ...]
    summary: str

    def factor(self, name: str) -> RiskFactor:
        """Return the factor with the given name.

        Raises:
            KeyError: If no factor has that name
        """
        for risk_factor in self.factors:
            if risk_factor.name == name:
                return risk_factor
        raise KeyError(name)


class ReviewComment(BaseModel):
    """A single inline review comment.

    ``posted_to_github`` and ``github_comment_id`` belong to the review store;
    values supplied by an assembler are ignored when a result is persisted.
    """

    model_config = ConfigDict(from_attributes=True)

    file_path: str
    line_number: int = Field(ge=1)
    severity: Severity
    category: str
    message: str
    suggestion: str | None = None
    code_snippet: str | None = None
    posted_to_github: bool = False
    github_comment_id: int | None = None

    @property
    def coordinate(self) -> tuple[str, int]:
        """Identity key used to match comments across analyses."""
        return self.file_path, self.line_number

    @property
    def coordinate_key(self) -> str:
        """String form of the coordinate, ``"path:line"``."""
        return f"{self.file_path}:{self.line_number}"


class ReviewSummary(BaseModel):
    """Summary of the review produced by the assembler."""

    overall_assessment: str
    key_findings: list[str] = Field(default_factory=list)
    critical_issues: int = 0
    high_priority_issues: int = 0
    medium_priority_issues: int = 0
    low_priority_issues: int = 0
    positive_aspects: list[str] = Field(default_factory=list)
    areas_of_concern: list[str] = Field(default_factory=list)
    approval_recommendation: Literal["approve", "request-changes", "comment"]
    overall_score: int = Field(ge=0, le=100)
    approved: bool
    requires_changes: bool


class ImpactRecord(BaseModel):
    """Significant findings of one category, derived from high/critical comments."""

    category: str
    severity: Severity
    affected_files: list[str]
    description: str
    recommendations: str


class CodeReviewResult(BaseModel):
    """Complete assessment record handed to the review store."""

    risk_score: RiskScore
    comments: list[ReviewComment] = Field(default_factory=list)
    summary: ReviewSummary
    simulation: dict[str, Any] | None = None
    documentation_suggestions: list[Any] = Field(default_factory=list)
    testing_suggestions: list[Any] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    estimated_review_time: int = Field(default=0, description="Estimated review time in minutes")
    pr_title: str = ""
    commit_sha: str | None = None
    files_analyzed: int = 0
    lines_added: int = 0
    lines_removed: int = 0

    @property
    def total_comments(self) -> int:
        return len(self.comments)


class ReviewRecord(BaseModel):
    """Detached snapshot of a persisted review."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: str
    pr_number: int
    pr_title: str = ""
    commit_sha: str | None = None
    status: str
    risk_level: RiskLevel
    risk_score_numeric: int
    overall_score: int
    approved: bool
    requires_changes: bool
    files_analyzed: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    comments: list[ReviewComment] = Field(default_factory=list)
    risk_factors: list[dict[str, Any]] = Field(default_factory=list)
    impacts: list[dict[str, Any]] = Field(default_factory=list)
    summary: dict[str, Any] = Field(default_factory=dict)
    simulation: dict[str, Any] | None = None
    documentation_suggestions: list[Any] = Field(default_factory=list)
    testing_suggestions: list[Any] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    @property
    def posted_coordinates(self) -> set[str]:
        return {c.coordinate_key for c in self.comments if c.posted_to_github}


class CommentPosting(BaseModel):
    """Result of posting one comment to GitHub."""

    file_path: str
    line_number: int
    github_comment_id: int


class PostingResult(BaseModel):
    """Outcome of marking comments as posted."""

    updated: int = 0


class ReviewStats(BaseModel):
    """Aggregate review statistics for a project."""

    total: int = 0
    approved: int = 0
    requires_changes: int = 0
    avg_score: float = 0.0
    risk_distribution: dict[str, int] = Field(
        default_factory=lambda: {"low": 0, "medium": 0, "high": 0, "critical": 0}
    )
