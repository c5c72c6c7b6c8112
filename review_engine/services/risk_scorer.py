"""Risk scoring for pull request diffs.

Five independent evaluators score one dimension of a diff each; the scorer
combines them into a weighted mean and a discrete level. Everything here is
a pure function of ``(diff, config)``: no I/O, no shared state, no errors.
Degenerate input (an empty diff, zero weights) falls back to the lowest
score rather than raising.
"""

import logging
import math

from review_engine.config.rule_weights import BALANCED_PRESET, RuleWeightsConfig
from review_engine.models.github_types import DiffSummary
from review_engine.models.outputs import RiskFactor, RiskLevel, RiskScore
from review_engine.utils.filters import is_code_file, is_critical_file, is_test_file

logger = logging.getLogger(__name__)

# Large single-file change, in changed lines
LARGE_FILE_CHANGES = 200


def score_to_level(score: float) -> RiskLevel:
    """Map a 0-100 score to a risk level.

    The same four bands classify both individual factors and the overall score.
    """
    if score >= 80:
        return "critical"
    if score >= 60:
        return "high"
    if score >= 30:
        return "medium"
    return "low"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def assess_change_size(diff: DiffSummary, config: RuleWeightsConfig) -> RiskFactor:
    """Assess risk from the total number of added and removed lines."""
    thresholds = config.change_size_thresholds
    total = diff.total_changes

    score: int
    impact: RiskLevel
    if total < thresholds.small:
        score, impact = 10, "low"
    elif total < thresholds.medium:
        score, impact = 30, "low"
    elif total < thresholds.large:
        score, impact = 60, "medium"
    elif total < thresholds.very_large:
        score, impact = 80, "high"
    else:
        score, impact = 95, "critical"

    return RiskFactor(
        name="changeSize",
        score=score,
        weight=config.risk_factor_weights.change_size,
        impact_level=impact,
        description=(
            f"{total} lines changed "
            f"({diff.total_additions}+ / {diff.total_deletions}-)"
        ),
        details={"total_changes": total},
    )


def assess_file_count(diff: DiffSummary, config: RuleWeightsConfig) -> RiskFactor:
    """Assess risk from the number of changed files."""
    thresholds = config.file_count_thresholds
    count = diff.file_count

    score: int
    impact: RiskLevel
    if count <= thresholds.few:
        score, impact = 10, "low"
    elif count <= thresholds.moderate:
        score, impact = 40, "medium"
    elif count <= thresholds.many:
        score, impact = 70, "high"
    else:
        score, impact = 90, "critical"

    return RiskFactor(
        name="fileCount",
        score=score,
        weight=config.risk_factor_weights.file_count,
        impact_level=impact,
        description=f"{count} files modified",
        details={"file_count": count},
    )


def assess_critical_files(diff: DiffSummary, config: RuleWeightsConfig) -> RiskFactor:
    """Assess risk from changes to sensitive paths."""
    critical = [f.path for f in diff.files_changed if is_critical_file(f.path)]
    count = len(critical)

    score: int
    impact: RiskLevel
    if count == 0:
        score, impact = 5, "low"
    elif count == 1:
        score, impact = 50, "medium"
    elif count == 2:
        score, impact = 75, "high"
    else:
        score, impact = 95, "critical"

    if critical:
        description = f"{count} critical files modified: {', '.join(critical)}"
    else:
        description = "No critical files modified"

    return RiskFactor(
        name="criticalFiles",
        score=score,
        weight=config.risk_factor_weights.critical_files,
        impact_level=impact,
        description=description,
        details={"files": critical},
    )


def assess_complexity(diff: DiffSummary, config: RuleWeightsConfig) -> RiskFactor:
    """Assess structural complexity: removals, renames, large files, mixed change types."""
    files = diff.files_changed
    removed = sum(1 for f in files if f.status == "removed")
    renamed = sum(1 for f in files if f.status == "renamed")
    added = sum(1 for f in files if f.status == "added")
    modified = sum(1 for f in files if f.status == "modified")
    large = sum(1 for f in files if f.change_count > LARGE_FILE_CHANGES)

    complexity = 0
    # Removed files can break callers; renames can break imports
    if removed:
        complexity += 30
    if renamed:
        complexity += 20
    complexity += min(large * 10, 30)
    if all((added, modified, removed)):
        complexity += 20

    score = min(complexity, 100)

    parts = []
    if removed:
        parts.append(f"{removed} removed")
    if renamed:
        parts.append(f"{renamed} renamed")
    if added:
        parts.append(f"{added} added")
    description = f"Mixed changes: {', '.join(parts)}" if parts else "Standard modifications"

    return RiskFactor(
        name="complexity",
        score=score,
        weight=config.risk_factor_weights.complexity,
        impact_level=score_to_level(score),
        description=description,
        details={"removed": removed, "renamed": renamed, "large_files": large},
    )


def assess_test_coverage(diff: DiffSummary, config: RuleWeightsConfig) -> RiskFactor:
    """Assess risk from the ratio of added test lines to added code lines."""
    live = [f for f in diff.files_changed if f.status != "removed"]
    code_additions = sum(
        f.additions for f in live if is_code_file(f.path) and not is_test_file(f.path)
    )
    test_additions = sum(f.additions for f in live if is_test_file(f.path))

    score: int
    impact: RiskLevel
    if code_additions == 0:
        score, impact = 0, "low"
        description = "No code changes to test"
    else:
        ratio = test_additions / code_additions
        if ratio >= 0.5:
            score, impact = 10, "low"
        elif ratio >= 0.2:
            score, impact = 40, "medium"
        elif ratio > 0:
            score, impact = 70, "high"
        else:
            score, impact = 90, "critical"

        if test_additions == 0:
            description = "No test files modified - tests may be needed"
        else:
            description = f"Test ratio: {_round_half_up(ratio * 100)}%"

    return RiskFactor(
        name="testCoverage",
        score=score,
        weight=config.risk_factor_weights.test_coverage,
        impact_level=impact,
        description=description,
        details={"code_additions": code_additions, "test_additions": test_additions},
    )


def calculate_weighted_score(factors: list[RiskFactor]) -> int:
    """Weighted mean of factor scores, rounded half-up; 0 when no weight is set."""
    total_weight = sum(f.weight for f in factors)
    if total_weight <= 0:
        return 0
    weighted_sum = sum(f.score * f.weight for f in factors)
    return min(max(_round_half_up(weighted_sum / total_weight), 0), 100)


def generate_risk_summary(factors: list[RiskFactor]) -> str:
    """Name the factors whose impact is high or critical."""
    elevated = [f.label for f in factors if f.impact_level in ("high", "critical")]

    if not elevated:
        return "Low-risk changes overall"
    if len(elevated) == 1:
        return f"Elevated risk due to: {elevated[0]}"
    return f"High-risk factors: {', '.join(elevated)}"


def calculate_risk(
    diff: DiffSummary, config: RuleWeightsConfig = BALANCED_PRESET
) -> RiskScore:
    """
    Calculate the risk score of a diff.

    Args:
        diff: Normalized PR diff
        config: Rule weights; the caller is expected to have validated it

    Returns:
        RiskScore with the overall score, level, the five factors and a summary
    """
    factors = [
        assess_change_size(diff, config),
        assess_file_count(diff, config),
        assess_critical_files(diff, config),
        assess_complexity(diff, config),
        assess_test_coverage(diff, config),
    ]

    overall = calculate_weighted_score(factors)
    risk = RiskScore(
        overall=overall,
        level=score_to_level(overall),
        factors=tuple(factors),
        summary=generate_risk_summary(factors),
    )
    logger.debug(
        f"Risk for {diff.file_count} files using '{config.name}': "
        f"{risk.overall} ({risk.level})"
    )
    return risk
