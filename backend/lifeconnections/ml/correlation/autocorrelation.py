"""Lag-1 autocorrelation and Bartlett's effective sample size."""

import numpy as np
from scipy import stats


MIN_EFFECTIVE_SAMPLE_SIZE = 3.0


def lag1_autocorrelation(values) -> float:
    """
    Pearson r of x[:-1] against x[1:].

    Returns 0 for fewer than 3 values or when a shifted slice is constant.
    """
    x = np.asarray(values, dtype=float)
    if len(x) < 3:
        return 0.0

    head, tail = x[:-1], x[1:]
    if np.ptp(head) == 0 or np.ptp(tail) == 0:
        return 0.0

    r, _ = stats.pearsonr(head, tail)
    if not np.isfinite(r):
        return 0.0
    return float(np.clip(r, -1.0, 1.0))


def effective_sample_size(n: int, r1: float) -> float:
    """
    nEff = n * (1 - r1) / (1 + r1), floored at 3 and capped at n.

    ``r1`` is the larger absolute lag-1 autocorrelation of the two series.
    """
    r1 = min(abs(r1), 1.0)
    n_eff = n * (1 - r1) / (1 + r1)
    return float(min(float(n), max(MIN_EFFECTIVE_SAMPLE_SIZE, n_eff)))
