"""Unit tests for ABR configuration loading and validation."""

import pytest
from pydantic import ValidationError

from abr.bandwidth_estimator import BandwidthEstimator
from abr.config import AbrConfig
from abr.quality_selector import QualitySelector


class TestAbrConfig:
    def test_defaults(self):
        config = AbrConfig()

        assert config.window_size_ms == 3000
        assert config.min_samples == 3
        assert config.ewma_fast_alpha == 0.3
        assert config.ewma_slow_alpha == 0.1
        assert config.safety_factor == 0.7
        assert config.min_switch_interval_ms == 5000
        assert config.up_switch_threshold == 1.5
        assert config.down_switch_threshold == 0.8
        assert config.min_buffer_for_upswitch == 10.0
        assert config.critical_buffer_level == 5.0
        assert config.max_consecutive_switches == 2
        assert config.stability_period_ms == 30000
        assert config.trend_window_size == 5
        assert config.trend_threshold == 0.1

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("ABR_SAFETY_FACTOR", "0.5")
        monkeypatch.setenv("ABR_STABILITY_PERIOD_MS", "10000")

        config = AbrConfig()

        assert config.safety_factor == 0.5
        assert config.stability_period_ms == 10000

    def test_field_name_override(self):
        assert AbrConfig(window_size_ms=5000).window_size_ms == 5000

    def test_alpha_order_is_validated(self):
        with pytest.raises(ValidationError):
            AbrConfig(ewma_fast_alpha=0.1, ewma_slow_alpha=0.2)

    def test_buffer_thresholds_are_validated(self):
        with pytest.raises(ValidationError):
            AbrConfig(critical_buffer_level=12.0, min_buffer_for_upswitch=10.0)

    def test_bounds(self):
        with pytest.raises(ValidationError):
            AbrConfig(safety_factor=0.0)

    def test_components_from_config(self):
        config = AbrConfig(safety_factor=0.5, min_switch_interval_ms=1000)

        estimator = BandwidthEstimator.from_config(config)
        selector = QualitySelector.from_config(config)

        assert estimator.safety_factor == 0.5
        assert selector.min_switch_interval_ms == 1000
