"""Tests for configuration objects and presets."""

import pytest

from repsense.config import (
    DEFAULT_CHECK_WEIGHTS,
    ConfidenceThresholds,
    FilterConfig,
    InvalidConfigError,
    PipelineConfig,
    SquatConfig,
    ValidatorConfig,
    VelocityConfig,
)


# ============================================================================
# ConfidenceThresholds
# ============================================================================

class TestConfidenceThresholds:
    def test_defaults(self):
        t = ConfidenceThresholds()
        assert t.angle == 0.5
        assert t.velocity == 0.3
        assert t.rom == 0.5
        assert t.high_priority == 0.5
        assert t.medium_priority == 0.3
        assert t.average == 0.4

    def test_out_of_unit_range_rejected(self):
        with pytest.raises(InvalidConfigError, match="angle"):
            ConfidenceThresholds(angle=1.5)

    def test_invalid_config_is_value_error(self):
        with pytest.raises(ValueError):
            ConfidenceThresholds(velocity=-0.1)

    def test_strict_is_stricter_than_lenient(self):
        strict, lenient = ConfidenceThresholds.strict(), ConfidenceThresholds.lenient()
        assert strict.high_priority > lenient.high_priority
        assert strict.average > lenient.average


# ============================================================================
# Component configs
# ============================================================================

class TestComponentConfigs:
    def test_filter_rejects_non_positive_cutoff(self):
        with pytest.raises(InvalidConfigError, match="min_cutoff"):
            FilterConfig(min_cutoff=0.0)

    def test_filter_rejects_negative_beta(self):
        with pytest.raises(InvalidConfigError, match="beta"):
            FilterConfig(beta=-1.0)

    def test_velocity_window_must_be_positive(self):
        with pytest.raises(InvalidConfigError, match="window"):
            VelocityConfig(window=0)

    def test_validator_weights_sum_to_one(self):
        assert sum(DEFAULT_CHECK_WEIGHTS.values()) == pytest.approx(1.0)
        ValidatorConfig()

    def test_validator_rejects_bad_weights(self):
        weights = dict(DEFAULT_CHECK_WEIGHTS, proportions=0.5)
        with pytest.raises(InvalidConfigError, match="sum to 1.0"):
            ValidatorConfig(weights=weights)

    def test_validator_rejects_inverted_range(self):
        with pytest.raises(InvalidConfigError, match="thigh_to_shin"):
            ValidatorConfig(thigh_to_shin=(1.5, 0.5))

    def test_validator_rejects_zero_gap(self):
        with pytest.raises(InvalidConfigError, match="max_gap_us"):
            ValidatorConfig(max_gap_us=0)

    def test_validator_presets(self):
        assert ValidatorConfig.strict().threshold > ValidatorConfig().threshold > ValidatorConfig.lenient().threshold

    def test_squat_standing_must_exceed_parallel(self):
        with pytest.raises(InvalidConfigError, match="standing_angle"):
            SquatConfig(standing_angle=90.0, parallel_angle=90.0)

    def test_squat_form_weights(self):
        with pytest.raises(InvalidConfigError, match="form_weights"):
            SquatConfig(form_weights=(0.5, 0.5, 0.5))


# ============================================================================
# PipelineConfig
# ============================================================================

class TestPipelineConfig:
    def test_default_history_capacity(self):
        assert PipelineConfig().history_capacity == 30

    def test_zero_history_capacity_rejected(self):
        with pytest.raises(InvalidConfigError, match="history_capacity"):
            PipelineConfig(history_capacity=0)

    @pytest.mark.parametrize("name", ["default", "strict", "lenient"])
    def test_presets_by_name(self, name):
        assert isinstance(PipelineConfig.preset(name), PipelineConfig)

    def test_unknown_preset(self):
        with pytest.raises(InvalidConfigError, match="unknown preset"):
            PipelineConfig.preset("extreme")

    def test_strict_preset_carries_strict_validator(self):
        assert PipelineConfig.strict().validator == ValidatorConfig.strict()

    def test_with_overrides(self):
        cfg = PipelineConfig().with_overrides(enable_validation=False, history_capacity=10)
        assert cfg.enable_validation is False
        assert cfg.history_capacity == 10
        assert PipelineConfig().enable_validation is True
