"""Configurable rule weights for risk scoring and review summaries.

A :class:`RuleWeightsConfig` is a plain value passed into the scorer. The
three presets are ordinary instances of it. Field aliases are camelCase so
configurations saved as JSON (``{"riskFactorWeights": {"changeSize": ...}}``)
load unchanged; snake_case keys are accepted too.

Nothing here validates on construction. Call :func:`validate_rule_weights`
(or :func:`ensure_valid_rule_weights`) once per configuration.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel, to_snake

from review_engine.config.settings import Settings
from review_engine.exceptions import RuleValidationError

logger = logging.getLogger(__name__)


class _RuleModel(BaseModel):
    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )


class RiskFactorWeights(_RuleModel):
    """Weight of each risk factor, each expected in [0, 1]."""

    change_size: float
    file_count: float
    critical_files: float
    complexity: float
    test_coverage: float


class ChangeSizeThresholds(_RuleModel):
    """Line-count band boundaries, strictly ascending."""

    small: int
    medium: int
    large: int
    very_large: int


class FileCountThresholds(_RuleModel):
    """File-count band boundaries, strictly ascending."""

    few: int
    moderate: int
    many: int


class SeverityPenalties(_RuleModel):
    """Score penalty per comment of each severity, used by the summary."""

    critical: float
    high: float
    medium: float
    low: float
    info: float


class ApprovalRules(_RuleModel):
    """When a summary recommends requesting changes or commenting."""

    request_changes_on_critical: bool = True
    request_changes_on_high_risk: bool = True
    min_critical_issues_for_block: int = 1
    min_high_issues_for_block: int = 1
    comment_on_medium_issues: bool = True


class RuleWeightsConfig(_RuleModel):
    """Complete rule weights configuration."""

    name: str = "custom"
    description: str = ""
    risk_factor_weights: RiskFactorWeights
    change_size_thresholds: ChangeSizeThresholds
    file_count_thresholds: FileCountThresholds
    severity_penalties: SeverityPenalties
    approval_rules: ApprovalRules = Field(default_factory=ApprovalRules)


class RuleValidationResult(BaseModel):
    """Outcome of :func:`validate_rule_weights`."""

    valid: bool
    errors: list[str] = Field(default_factory=list)


BALANCED_PRESET = RuleWeightsConfig(
    name="balanced",
    description="Balanced risk assessment suitable for most projects",
    risk_factor_weights=RiskFactorWeights(
        change_size=0.25,
        file_count=0.15,
        critical_files=0.35,
        complexity=0.15,
        test_coverage=0.10,
    ),
    change_size_thresholds=ChangeSizeThresholds(
        small=50, medium=200, large=500, very_large=1000
    ),
    file_count_thresholds=FileCountThresholds(few=3, moderate=10, many=20),
    severity_penalties=SeverityPenalties(
        critical=25, high=15, medium=5, low=2, info=0
    ),
    approval_rules=ApprovalRules(),
)

STRICT_PRESET = RuleWeightsConfig(
    name="strict",
    description="Strict standards for critical projects (security, payments, etc.)",
    risk_factor_weights=RiskFactorWeights(
        change_size=0.20,
        file_count=0.15,
        critical_files=0.45,
        complexity=0.15,
        test_coverage=0.05,
    ),
    change_size_thresholds=ChangeSizeThresholds(
        small=30, medium=100, large=300, very_large=700
    ),
    file_count_thresholds=FileCountThresholds(few=2, moderate=5, many=10),
    severity_penalties=SeverityPenalties(
        critical=30, high=20, medium=10, low=5, info=1
    ),
    approval_rules=ApprovalRules(min_high_issues_for_block=2),
)

LENIENT_PRESET = RuleWeightsConfig(
    name="lenient",
    description="Lenient standards for rapid development and prototyping",
    risk_factor_weights=RiskFactorWeights(
        change_size=0.30,
        file_count=0.20,
        critical_files=0.25,
        complexity=0.15,
        test_coverage=0.10,
    ),
    change_size_thresholds=ChangeSizeThresholds(
        small=100, medium=500, large=1000, very_large=2000
    ),
    file_count_thresholds=FileCountThresholds(few=5, moderate=15, many=30),
    severity_penalties=SeverityPenalties(
        critical=20, high=10, medium=3, low=1, info=0
    ),
    approval_rules=ApprovalRules(
        request_changes_on_high_risk=False,
        min_critical_issues_for_block=2,
        min_high_issues_for_block=5,
        comment_on_medium_issues=False,
    ),
)

RULE_PRESETS: dict[str, RuleWeightsConfig] = {
    "balanced": BALANCED_PRESET,
    "strict": STRICT_PRESET,
    "lenient": LENIENT_PRESET,
}

# Section keys, thresholds listed in ascending band order
_WEIGHT_KEYS = ("change_size", "file_count", "critical_files", "complexity", "test_coverage")
_CHANGE_SIZE_KEYS = ("small", "medium", "large", "very_large")
_FILE_COUNT_KEYS = ("few", "moderate", "many")


def get_preset(name: str) -> RuleWeightsConfig:
    """Get a preset by name, falling back to BALANCED."""
    return RULE_PRESETS.get(name.lower(), BALANCED_PRESET)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _section(
    config: RuleWeightsConfig | Mapping[str, Any], field: str, errors: list[str]
) -> dict[str, Any] | None:
    """Return one section of a config as a snake_case dict, or None if absent or malformed."""
    if isinstance(config, RuleWeightsConfig):
        return getattr(config, field).model_dump()

    raw = config.get(field, config.get(to_camel(field)))
    if raw is None:
        return None
    if isinstance(raw, BaseModel):
        return raw.model_dump()
    if not isinstance(raw, Mapping):
        errors.append(f"{to_camel(field)} must be an object")
        return None
    return {to_snake(key): value for key, value in raw.items()}


def _check_ascending(
    values: dict[str, Any], keys: tuple[str, ...], label: str, errors: list[str]
) -> None:
    missing = [key for key in keys if values.get(key) is None]
    if missing:
        errors.append(f"{label} thresholds missing: {', '.join(missing)}")
        return
    not_numbers = [key for key in keys if not _is_number(values[key])]
    if not_numbers:
        errors.append(f"{label} thresholds must be numbers: {', '.join(not_numbers)}")
        return
    ordered = [values[key] for key in keys]
    if any(lower >= upper for lower, upper in zip(ordered, ordered[1:])):
        errors.append(
            f"{label} thresholds must be in ascending order: {' < '.join(keys)}"
        )


def validate_rule_weights(
    config: RuleWeightsConfig | Mapping[str, Any],
) -> RuleValidationResult:
    """
    Validate a rule weights configuration.

    Accepts a full :class:`RuleWeightsConfig` or a partial mapping; only the
    sections present are checked.

    Checks:
        - each risk-factor weight lies in [0, 1] (the weights need not sum to 1)
        - change size thresholds are strictly ascending
        - file count thresholds are strictly ascending

    Severity penalties and approval rules are intentionally not validated.

    Returns:
        RuleValidationResult with ``valid`` and the list of error messages
    """
    errors: list[str] = []

    weights = _section(config, "risk_factor_weights", errors)
    if weights is not None:
        for key in _WEIGHT_KEYS:
            value = weights.get(key)
            if value is None:
                errors.append(f"{key} weight is missing")
            elif not _is_number(value):
                errors.append(f"{key} weight must be a number (currently {value!r})")
            elif not 0 <= value <= 1:
                errors.append(f"{key} weight must be between 0 and 1 (currently {value})")

    change_size = _section(config, "change_size_thresholds", errors)
    if change_size is not None:
        _check_ascending(change_size, _CHANGE_SIZE_KEYS, "Change size", errors)

    file_count = _section(config, "file_count_thresholds", errors)
    if file_count is not None:
        _check_ascending(file_count, _FILE_COUNT_KEYS, "File count", errors)

    return RuleValidationResult(valid=not errors, errors=errors)


def ensure_valid_rule_weights(config: RuleWeightsConfig) -> RuleWeightsConfig:
    """Return ``config`` unchanged, or raise RuleValidationError listing every problem."""
    result = validate_rule_weights(config)
    if not result.valid:
        raise RuleValidationError(result.errors)
    return config


def merge_with_defaults(
    partial: Mapping[str, Any],
    defaults: RuleWeightsConfig = BALANCED_PRESET,
) -> RuleWeightsConfig:
    """
    Overlay a partial configuration onto ``defaults`` section by section.

    Keys may be camelCase or snake_case. Keys inside a section replace the
    default values of that section; sections not mentioned keep the defaults.
    """
    merged = defaults.model_dump()
    for key, value in partial.items():
        field = _field_name(key)
        if field is None:
            logger.warning(f"Ignoring unknown rule weights key: {key}")
            continue
        if isinstance(value, Mapping) and isinstance(merged.get(field), dict):
            merged[field] = merged[field] | {to_snake(k): v for k, v in value.items()}
        elif value is not None:
            merged[field] = value
    return RuleWeightsConfig.model_validate(merged)


def resolve_rule_weights(settings: Settings) -> RuleWeightsConfig:
    """
    Build the configured rule weights from settings and validate them once.

    Raises:
        RuleValidationError: If the resulting configuration is invalid
    """
    config = get_preset(settings.rule_weights_preset)
    if settings.rule_weights_overrides:
        config = merge_with_defaults(settings.rule_weights_overrides, config)
    logger.info(f"Using rule weights '{config.name}'")
    return ensure_valid_rule_weights(config)


def _field_name(key: str) -> str | None:
    for name, info in RuleWeightsConfig.model_fields.items():
        if key in (name, info.alias):
            return name
    return None
