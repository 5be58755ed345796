"""Tests for lag-1 autocorrelation and the Bartlett effective sample size."""

import numpy as np

from lifeconnections.ml.correlation.autocorrelation import (
    MIN_EFFECTIVE_SAMPLE_SIZE,
    effective_sample_size,
    lag1_autocorrelation,
)


class TestLag1Autocorrelation:
    """Verify lag-1 autocorrelation on known shapes."""

    def test_linear_series_is_highly_autocorrelated(self):
        assert lag1_autocorrelation(np.arange(30)) >= 0.7

    def test_alternating_series_is_negative(self):
        values = [1.0, -1.0] * 15
        assert abs(lag1_autocorrelation(values) + 1.0) <= 0.15

    def test_short_series_returns_zero(self):
        assert lag1_autocorrelation([1.0, 2.0]) == 0.0

    def test_constant_series_returns_zero(self):
        assert lag1_autocorrelation([4.0] * 10) == 0.0

    def test_extreme_magnitudes(self):
        assert abs(lag1_autocorrelation(np.arange(1, 31) * 1e200) - 1.0) < 1e-6
        assert abs(lag1_autocorrelation(np.arange(1, 31) * 1e-200) - 1.0) < 1e-6


class TestEffectiveSampleSize:
    """nEff shrinks with autocorrelation and stays within [3, n]."""

    def test_autocorrelated_data_has_fewer_effective_samples(self):
        values = np.arange(60, dtype=float)
        r1 = lag1_autocorrelation(values)
        assert effective_sample_size(60, r1) < 60

    def test_less_autocorrelated_data_keeps_more_samples(self):
        rng = np.random.RandomState(0)
        noise = rng.normal(size=60)
        walk = np.cumsum(noise)
        n_eff_noise = effective_sample_size(60, lag1_autocorrelation(noise))
        n_eff_walk = effective_sample_size(60, lag1_autocorrelation(walk))
        assert n_eff_noise > n_eff_walk

    def test_never_below_floor(self):
        assert effective_sample_size(30, 0.999) == MIN_EFFECTIVE_SAMPLE_SIZE
        assert effective_sample_size(30, 1.0) == MIN_EFFECTIVE_SAMPLE_SIZE

    def test_never_above_n(self):
        assert effective_sample_size(30, 0.0) == 30
        assert effective_sample_size(5, 0.0) <= 5

    def test_negative_autocorrelation_uses_magnitude(self):
        assert effective_sample_size(40, -0.5) == effective_sample_size(40, 0.5)
