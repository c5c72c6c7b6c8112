"""Unit tests for rule weights presets, validation and merging."""

import pytest
from pydantic import ValidationError

from review_engine.config.rule_weights import (
    BALANCED_PRESET,
    LENIENT_PRESET,
    RULE_PRESETS,
    STRICT_PRESET,
    RuleWeightsConfig,
    ensure_valid_rule_weights,
    get_preset,
    merge_with_defaults,
    resolve_rule_weights,
    validate_rule_weights,
)
from review_engine.config.settings import Settings
from review_engine.exceptions import RuleValidationError


class TestPresets:
    """Tests for the named presets."""

    @pytest.mark.parametrize("preset", [BALANCED_PRESET, STRICT_PRESET, LENIENT_PRESET])
    def test_presets_are_valid(self, preset):
        result = validate_rule_weights(preset)

        assert result.valid
        assert result.errors == []

    @pytest.mark.parametrize("preset", [BALANCED_PRESET, STRICT_PRESET, LENIENT_PRESET])
    def test_weights_sum_to_one(self, preset):
        assert sum(preset.risk_factor_weights.model_dump().values()) == pytest.approx(1.0)

    def test_get_preset(self):
        assert get_preset("STRICT") is STRICT_PRESET
        assert get_preset("lenient") is LENIENT_PRESET
        assert get_preset("unknown") is BALANCED_PRESET
        assert set(RULE_PRESETS) == {"balanced", "strict", "lenient"}

    def test_camel_case_round_trip(self):
        data = BALANCED_PRESET.model_dump(by_alias=True)

        assert data["riskFactorWeights"]["criticalFiles"] == 0.35
        assert data["changeSizeThresholds"]["veryLarge"] == 1000
        assert RuleWeightsConfig.model_validate(data) == BALANCED_PRESET

    def test_presets_are_immutable(self):
        with pytest.raises(ValidationError):
            BALANCED_PRESET.risk_factor_weights.change_size = 0.9


class TestValidateRuleWeights:
    """Tests for validate_rule_weights."""

    def test_change_size_thresholds_out_of_order(self):
        result = validate_rule_weights(
            {
                "changeSizeThresholds": {
                    "small": 500,
                    "medium": 300,
                    "large": 800,
                    "veryLarge": 1200,
                }
            }
        )

        assert result.valid is False
        assert len(result.errors) == 1
        assert "ascending order" in result.errors[0]
        assert result.errors[0].startswith("Change size")

    def test_equal_thresholds_are_not_ascending(self):
        result = validate_rule_weights(
            {"fileCountThresholds": {"few": 5, "moderate": 5, "many": 20}}
        )

        assert not result.valid
        assert "File count thresholds must be in ascending order" in result.errors[0]

    def test_weight_out_of_range(self):
        result = validate_rule_weights(
            {
                "risk_factor_weights": {
                    "change_size": 1.5,
                    "file_count": 0.1,
                    "critical_files": -0.1,
                    "complexity": 0.1,
                    "test_coverage": 0.1,
                }
            }
        )

        assert not result.valid
        assert result.errors == [
            "change_size weight must be between 0 and 1 (currently 1.5)",
            "critical_files weight must be between 0 and 1 (currently -0.1)",
        ]

    def test_weights_need_not_sum_to_one(self):
        result = validate_rule_weights(
            {
                "riskFactorWeights": {
                    "changeSize": 1,
                    "fileCount": 1,
                    "criticalFiles": 1,
                    "complexity": 1,
                    "testCoverage": 1,
                }
            }
        )

        assert result.valid

    def test_missing_keys_are_reported(self):
        result = validate_rule_weights(
            {"changeSizeThresholds": {"small": 10, "medium": 20}}
        )

        assert result.errors == ["Change size thresholds missing: large, very_large"]

    def test_penalties_are_not_validated(self):
        config = BALANCED_PRESET.model_copy(
            update={
                "severity_penalties": BALANCED_PRESET.severity_penalties.model_copy(
                    update={"critical": -500}
                )
            }
        )

        assert validate_rule_weights(config).valid

    def test_empty_mapping_is_valid(self):
        assert validate_rule_weights({}).valid

    def test_non_numeric_weight_is_reported(self):
        result = validate_rule_weights(
            {
                "riskFactorWeights": {
                    "changeSize": "high",
                    "fileCount": 0.1,
                    "criticalFiles": True,
                    "complexity": 0.1,
                    "testCoverage": 0.1,
                }
            }
        )

        assert not result.valid
        assert result.errors == [
            "change_size weight must be a number (currently 'high')",
            "critical_files weight must be a number (currently True)",
        ]

    def test_non_numeric_thresholds_are_reported(self):
        result = validate_rule_weights(
            {
                "changeSizeThresholds": {
                    "small": "500",
                    "medium": 300,
                    "large": 800,
                    "veryLarge": 1200,
                }
            }
        )

        assert result.errors == ["Change size thresholds must be numbers: small"]

    def test_section_that_is_not_an_object(self):
        result = validate_rule_weights(
            {"riskFactorWeights": [0.2, 0.2], "fileCountThresholds": 5}
        )

        assert result.errors == [
            "riskFactorWeights must be an object",
            "fileCountThresholds must be an object",
        ]

    def test_ensure_valid_raises_with_all_errors(self):
        config = merge_with_defaults(
            {
                "riskFactorWeights": {"complexity": 2},
                "fileCountThresholds": {"few": 30},
            }
        )

        with pytest.raises(RuleValidationError) as exc_info:
            ensure_valid_rule_weights(config)

        assert len(exc_info.value.errors) == 2


class TestMergeWithDefaults:
    """Tests for overlaying partial configurations."""

    def test_overrides_single_key(self):
        merged = merge_with_defaults({"riskFactorWeights": {"testCoverage": 0.3}})

        assert merged.risk_factor_weights.test_coverage == 0.3
        assert merged.risk_factor_weights.critical_files == 0.35
        assert merged.change_size_thresholds == BALANCED_PRESET.change_size_thresholds

    def test_snake_case_keys_and_other_defaults(self):
        merged = merge_with_defaults(
            {"approval_rules": {"comment_on_medium_issues": False}, "name": "team"},
            STRICT_PRESET,
        )

        assert merged.name == "team"
        assert merged.approval_rules.comment_on_medium_issues is False
        assert merged.approval_rules.min_high_issues_for_block == 2
        assert merged.risk_factor_weights == STRICT_PRESET.risk_factor_weights

    def test_unknown_keys_are_ignored(self):
        merged = merge_with_defaults({"riskThresholds": {"low": 10}})

        assert merged == BALANCED_PRESET


class TestResolveRuleWeights:
    """Tests for building the configured rule weights."""

    def test_preset_with_overrides(self):
        settings = Settings(
            _env_file=None,
            rule_weights_preset="lenient",
            rule_weights_overrides={"fileCountThresholds": {"many": 40}},
        )

        config = resolve_rule_weights(settings)

        assert config.file_count_thresholds.many == 40
        assert config.file_count_thresholds.few == 5
        assert config.name == "lenient"

    def test_invalid_overrides_raise(self):
        settings = Settings(
            _env_file=None,
            rule_weights_overrides={"changeSizeThresholds": {"small": 5000}},
        )

        with pytest.raises(RuleValidationError):
            resolve_rule_weights(settings)
