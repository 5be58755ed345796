"""
Rank (Spearman-style) and linear (Pearson-style) correlation for aligned pairs.

- Rank: monotonic correlation on average ranks, robust to outliers (primary)
- Linear: straight Pearson r on the raw values (secondary)

Significance is tested on the effective sample size, not the raw count, so
autocorrelated daily series do not look more certain than they are.
"""

import math
from typing import Tuple

import numpy as np
from scipy import stats

from lifeconnections.ml.correlation.autocorrelation import effective_sample_size, lag1_autocorrelation
from lifeconnections.ml.correlation.base import (
    AlignedPair, CorrelationResult, DegenerateSeriesError, InsufficientDataError,
)
from lifeconnections.utils.enums import CorrelationType


# |r| is clipped to this before converting to Cohen's d
MAX_ABS_R_FOR_EFFECT = 0.999


def rank_data(values) -> np.ndarray:
    """Ranks starting at 1; ties get the average of the ranks they span."""
    return stats.rankdata(np.asarray(values, dtype=float), method='average')


def _paired_arrays(x, y) -> Tuple[np.ndarray, np.ndarray]:
    """
    Validate two equal-length, non-constant arrays.

    Raises:
        DegenerateSeriesError: if either array has zero variance
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) != len(y):
        raise ValueError(f"Length mismatch: {len(x)} vs {len(y)}")
    if len(x) < 2:
        raise InsufficientDataError(f"Need at least 2 points, got {len(x)}")
    if np.ptp(x) == 0 or np.ptp(y) == 0:
        raise DegenerateSeriesError("Zero variance in one of the series")
    return x, y


def _clipped(r) -> float:
    r = float(r)
    if not math.isfinite(r):
        raise DegenerateSeriesError("Correlation is undefined for these values")
    return max(-1.0, min(1.0, r))


def pearson_correlation(x, y) -> float:
    """
    Pearson r of two equal-length arrays.

    Raises:
        DegenerateSeriesError: if either array has zero variance
    """
    x, y = _paired_arrays(x, y)
    r, _ = stats.pearsonr(x, y)
    return _clipped(r)


def spearman_correlation(x, y) -> float:
    """Rank correlation on average ranks."""
    x, y = _paired_arrays(x, y)
    rho, _ = stats.spearmanr(x, y)
    return _clipped(rho)


def correlation_p_value(r: float, n_eff: float) -> float:
    """
    Two-sided p-value for r under H0: rho = 0.

    t = r * sqrt((nEff - 2) / (1 - r^2)) against Student-t with nEff - 2
    degrees of freedom. A perfect correlation gives p = 0.
    """
    df = n_eff - 2
    if df <= 0:
        return 1.0
    if abs(r) >= 1.0:
        return 0.0

    t_stat = r * math.sqrt(df / (1 - r * r))
    p = 2 * stats.t.sf(abs(t_stat), df)
    return float(min(1.0, max(0.0, p)))


def effect_size_from_r(r: float) -> float:
    """Cohen's d converted from a correlation coefficient."""
    clipped = max(-MAX_ABS_R_FOR_EFFECT, min(MAX_ABS_R_FOR_EFFECT, r))
    return 2 * clipped / math.sqrt(1 - clipped * clipped)


def confidence_interval(r: float, n_eff: float, z_crit: float = 1.959964) -> Tuple[float, float]:
    """95% interval through the Fisher z transform."""
    clipped = max(-MAX_ABS_R_FOR_EFFECT, min(MAX_ABS_R_FOR_EFFECT, r))
    z = math.atanh(clipped)
    se = 1 / math.sqrt(max(n_eff - 3, 1))
    return math.tanh(z - z_crit * se), math.tanh(z + z_crit * se)


def correlation_coefficient(x, y, correlation_type: CorrelationType) -> float:
    if correlation_type == CorrelationType.linear:
        return pearson_correlation(x, y)
    return spearman_correlation(x, y)


def analyze_correlation(
    aligned: AlignedPair,
    min_sample_size: int = 14,
    correlation_type: CorrelationType = CorrelationType.rank,
) -> CorrelationResult:
    """
    Full same-day analysis of one aligned pair.

    Computes both coefficients, deflates n for autocorrelation, then derives
    p-value, effect size and confidence interval from the primary coefficient.

    Raises:
        InsufficientDataError: fewer than ``min_sample_size`` aligned points
        DegenerateSeriesError: zero variance in either series
    """
    n = len(aligned)
    if n < min_sample_size:
        raise InsufficientDataError(f"Only {n} aligned points (need {min_sample_size})")

    x, y = aligned.values_a, aligned.values_b
    pearson_r = pearson_correlation(x, y)
    rho = spearman_correlation(x, y)
    primary = pearson_r if correlation_type == CorrelationType.linear else rho

    r1 = max(abs(lag1_autocorrelation(x)), abs(lag1_autocorrelation(y)))
    n_eff = effective_sample_size(n, r1)

    return CorrelationResult(
        correlation_type=correlation_type,
        rho=rho,
        pearson_r=pearson_r,
        raw_p=correlation_p_value(primary, n_eff),
        sample_size=n,
        effective_sample_size=n_eff,
        autocorrelation=r1,
        effect_size=effect_size_from_r(primary),
        confidence_interval=confidence_interval(primary, n_eff),
    )
