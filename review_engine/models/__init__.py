"""Data models for the review engine."""

from .code_review import Base, CodeReview, CodeReviewComment
from .github_types import DiffSummary, FileChange, RateLimitInfo
from .outputs import (
    CodeReviewResult,
    CommentPosting,
    ImpactRecord,
    PostingResult,
    ReviewComment,
    ReviewRecord,
    ReviewStats,
    ReviewSummary,
    RiskFactor,
    RiskScore,
)

__all__ = [
    "Base",
    "CodeReview",
    "CodeReviewComment",
    "DiffSummary",
    "FileChange",
    "RateLimitInfo",
    "CodeReviewResult",
    "CommentPosting",
    "ImpactRecord",
    "PostingResult",
    "ReviewComment",
    "ReviewRecord",
    "ReviewStats",
    "ReviewSummary",
    "RiskFactor",
    "RiskScore",
]
