"""
Tests for analysis parameters and environment settings.
"""

import pytest

from lifeconnections.config import AnalysisConfig, Settings
from lifeconnections.utils.enums import Confounder, CorrelationType


class TestAnalysisConfig:

    def test_defaults(self):
        config = AnalysisConfig()
        assert config.lookback_days == 90
        assert config.min_sample_size == 14
        assert config.min_p_value == 0.05
        assert config.min_effect_size == 0.3
        assert config.max_time_lag_days == 3
        assert config.rolling_window_days == 30
        assert config.fdr_level == 0.05
        assert config.correlation_type == CorrelationType.rank
        assert config.top_n == 10
        assert config.confounder == Confounder.day_of_week

    def test_is_frozen(self):
        config = AnalysisConfig()
        with pytest.raises(Exception):
            config.top_n = 3

    @pytest.mark.parametrize("overrides", [
        {'min_sample_size': 2},
        {'min_p_value': 0},
        {'min_p_value': 1.5},
        {'fdr_level': 0},
        {'min_effect_size': -0.1},
        {'max_time_lag_days': -1},
        {'rolling_window_days': 2},
        {'top_n': 0},
        {'max_concurrency': 0},
        {'confounder_retention': 1.2},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            AnalysisConfig(**overrides)


class TestSettings:

    def test_analysis_config_from_environment(self, monkeypatch):
        monkeypatch.setenv("TOP_N_CONNECTIONS", "5")
        monkeypatch.setenv("MAX_TIME_LAG_DAYS", "0")
        monkeypatch.setenv("FDR_LEVEL", "0.1")

        config = Settings().analysis_config()

        assert config.top_n == 5
        assert config.max_time_lag_days == 0
        assert config.fdr_level == 0.1
        assert config.min_sample_size == 14
