"""Review summary and impact derivation for assembled review results."""

import logging
import math
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any, Literal

from review_engine.config.rule_weights import RuleWeightsConfig
from review_engine.models.github_types import DiffSummary
from review_engine.models.outputs import (
    CodeReviewResult,
    ImpactRecord,
    ReviewComment,
    ReviewSummary,
    RiskScore,
    Severity,
)

logger = logging.getLogger(__name__)

SEVERITY_RANK: dict[str, int] = {
    "critical": 4,
    "high": 3,
    "medium": 2,
    "low": 1,
    "info": 0,
}

IMPACTFUL_SEVERITIES = {"high", "critical"}

CATEGORY_RECOMMENDATIONS: dict[str, str] = {
    "security": "Review authentication, validate inputs, and add missing security tests.",
    "performance": "Optimize hotspots; consider profiling and adding performance benchmarks.",
    "complexity": "Refactor large functions; add unit tests before restructuring.",
    "documentation": "Add or update README/module docs for changed critical logic.",
    "testing": "Increase coverage for modified critical paths and edge cases.",
}

Recommendation = Literal["approve", "request-changes", "comment"]


def _recommend(
    counts: Counter[str], risk_score: RiskScore, config: RuleWeightsConfig
) -> Recommendation:
    rules = config.approval_rules
    if rules.request_changes_on_critical and (
        counts["critical"] >= rules.min_critical_issues_for_block
        or risk_score.level == "critical"
    ):
        return "request-changes"
    if counts["high"] >= rules.min_high_issues_for_block:
        return "request-changes"
    if rules.request_changes_on_high_risk and risk_score.level in ("high", "critical"):
        return "request-changes"
    if rules.comment_on_medium_issues and counts["medium"] > 0:
        return "comment"
    if counts["critical"] or counts["high"]:
        # Below the blocking minimum, but still worth a comment
        return "comment"
    return "approve"


def _overall_assessment(
    risk_score: RiskScore, comments: Sequence[ReviewComment]
) -> str:
    if not comments:
        return f"{risk_score.level.capitalize()} risk change with no inline findings. {risk_score.summary}."
    return (
        f"{risk_score.level.capitalize()} risk change with {len(comments)} inline "
        f"finding(s). {risk_score.summary}."
    )


def build_review_summary(
    comments: Sequence[ReviewComment],
    risk_score: RiskScore,
    diff: DiffSummary,
    config: RuleWeightsConfig,
) -> ReviewSummary:
    """
    Summarize comments and risk into a recommendation and quality score.

    The quality score starts at 100 and loses the configured severity penalty
    per comment plus 30% of the overall risk score, floored at 0.
    """
    counts: Counter[str] = Counter(c.severity for c in comments)
    penalties = config.severity_penalties.model_dump()

    key_findings = []
    if counts["critical"]:
        key_findings.append(f"{counts['critical']} critical security/quality issues found")
    if counts["high"]:
        key_findings.append(f"{counts['high']} high-priority issues need attention")
    if risk_score.level in ("high", "critical"):
        key_findings.append(f"High-risk changes detected: {risk_score.summary}")

    positive_aspects = []
    if diff.total_additions < 200:
        positive_aspects.append("Manageable change size")
    if len(comments) < 5:
        positive_aspects.append("Generally clean code")

    areas_of_concern = []
    if counts["critical"]:
        areas_of_concern.append("Critical security vulnerabilities")
    if diff.total_additions > 500:
        areas_of_concern.append("Large changeset - consider splitting")

    recommendation = _recommend(counts, risk_score, config)
    severity_penalty = sum(
        count * penalties.get(severity, 0) for severity, count in counts.items()
    )
    risk_penalty = math.floor(risk_score.overall * 0.3 + 0.5)
    overall_score = max(0, min(100, int(100 - severity_penalty - risk_penalty)))

    return ReviewSummary(
        overall_assessment=_overall_assessment(risk_score, comments),
        key_findings=key_findings,
        critical_issues=counts["critical"],
        high_priority_issues=counts["high"],
        medium_priority_issues=counts["medium"],
        low_priority_issues=counts["low"],
        positive_aspects=positive_aspects,
        areas_of_concern=areas_of_concern,
        approval_recommendation=recommendation,
        overall_score=overall_score,
        approved=recommendation == "approve",
        requires_changes=recommendation == "request-changes",
    )


def generate_impacts(comments: Iterable[ReviewComment]) -> list[ImpactRecord]:
    """Group high/critical comments by category into impact records."""
    grouped: dict[str, dict[str, Any]] = {}
    for comment in comments:
        if comment.severity not in IMPACTFUL_SEVERITIES:
            continue
        group = grouped.setdefault(
            comment.category, {"files": [], "severity": "high", "messages": []}
        )
        if comment.file_path not in group["files"]:
            group["files"].append(comment.file_path)
        if SEVERITY_RANK[comment.severity] > SEVERITY_RANK[group["severity"]]:
            group["severity"] = comment.severity
        group["messages"].append(comment.message)

    impacts = []
    for category, group in grouped.items():
        severity: Severity = group["severity"]
        impacts.append(
            ImpactRecord(
                category=category,
                severity=severity,
                affected_files=group["files"],
                description=(
                    f"{len(group['messages'])} significant {category} issue(s) detected."
                ),
                recommendations=CATEGORY_RECOMMENDATIONS.get(
                    category, f"Address {category} issues with priority: {severity}."
                ),
            )
        )
    return impacts


def generate_recommendations(
    comments: Sequence[ReviewComment],
    risk_score: RiskScore,
    documentation_suggestions: Sequence[Any] = (),
    testing_suggestions: Sequence[Any] = (),
) -> list[str]:
    """Short list of next steps for the PR author."""
    recommendations = []
    if any(c.severity == "critical" for c in comments):
        recommendations.append("Address all critical security issues before merging")
    if risk_score.level in ("high", "critical"):
        recommendations.append("High-risk changes detected - extra testing recommended")
    if testing_suggestions:
        recommendations.append("Add unit tests to maintain code quality")
    if documentation_suggestions:
        recommendations.append("Improve documentation for better maintainability")
    if any(c.category == "complexity" for c in comments):
        recommendations.append("Consider refactoring complex functions")
    return recommendations


def estimate_review_time(diff: DiffSummary) -> int:
    """Rough minutes a human needs: 5 base, 2 per file, 5 per hundred changed lines."""
    changed_lines = diff.total_additions + diff.total_deletions
    return math.ceil(5 + 2 * diff.file_count + changed_lines / 100 * 5)


def assemble_review_result(
    diff: DiffSummary,
    risk_score: RiskScore,
    config: RuleWeightsConfig,
    comments: Sequence[ReviewComment] = (),
    simulation: dict[str, Any] | None = None,
    documentation_suggestions: Sequence[Any] = (),
    testing_suggestions: Sequence[Any] = (),
    pr_title: str = "",
    commit_sha: str | None = None,
) -> CodeReviewResult:
    """Combine a risk score with externally generated findings into a result."""
    comment_list = list(comments)
    summary = build_review_summary(comment_list, risk_score, diff, config)
    logger.debug(
        f"Assembled review: {len(comment_list)} comments, "
        f"recommendation={summary.approval_recommendation}"
    )
    return CodeReviewResult(
        risk_score=risk_score,
        comments=comment_list,
        summary=summary,
        simulation=simulation,
        documentation_suggestions=list(documentation_suggestions),
        testing_suggestions=list(testing_suggestions),
        recommendations=generate_recommendations(
            comment_list, risk_score, documentation_suggestions, testing_suggestions
        ),
        estimated_review_time=estimate_review_time(diff),
        pr_title=pr_title,
        commit_sha=commit_sha,
        files_analyzed=diff.file_count,
        lines_added=diff.total_additions,
        lines_removed=diff.total_deletions,
    )
