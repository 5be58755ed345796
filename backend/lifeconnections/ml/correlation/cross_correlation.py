"""
Time-lag analysis for candidate pairs.

Finds relationships where one metric moves with the other after a delay.
For example: "Badminton today correlates with better sleep tomorrow."
Both directions are tested and only the best one is kept.
"""

import logging
from typing import Optional, Tuple
from datetime import date

from lifeconnections.ml.correlation.alignment import align_shifted
from lifeconnections.ml.correlation.autocorrelation import effective_sample_size, lag1_autocorrelation
from lifeconnections.ml.correlation.base import (
    DailySeries, CorrelationResult, LagResult, ConnectionAnalysisError,
)
from lifeconnections.ml.correlation.rank_correlation import (
    correlation_coefficient, correlation_p_value, effect_size_from_r,
)
from lifeconnections.utils.enums import CorrelationType, LagDirection

logger = logging.getLogger(__name__)


class LagAnalyzer:
    """
    Tests A[t] against B[t+lag] and B[t] against A[t+lag] for lag in 1..max_lag.
    """

    def __init__(
        self,
        max_lag: int = 3,
        min_samples: int = 14,
        correlation_type: CorrelationType = CorrelationType.rank,
    ):
        """
        Args:
            max_lag: Maximum lag days to test (1 to max_lag)
            min_samples: Minimum paired points required after the shift
            correlation_type: Coefficient used for every window
        """
        self.max_lag = max_lag
        self.min_samples = min_samples
        self.correlation_type = correlation_type

    def analyze(
        self,
        series_a: DailySeries,
        series_b: DailySeries,
        same_day: CorrelationResult,
        window: Optional[Tuple[date, date]] = None,
    ) -> LagResult:
        """
        Best lag for the pair, or the same-day finding if no shift beats it.

        A shifted result replaces same-day only when its |effect size| is
        strictly larger.
        """
        best = LagResult(
            direction=LagDirection.same_day,
            lag_days=0,
            effect_size=same_day.effect_size,
            coefficient=same_day.coefficient,
            p_value=same_day.raw_p,
            sample_size=same_day.sample_size,
        )

        for lag in range(1, self.max_lag + 1):
            for direction, leader, follower in (
                (LagDirection.a_leads_b, series_a, series_b),
                (LagDirection.b_leads_a, series_b, series_a),
            ):
                candidate = self._compute_lagged(leader, follower, lag, direction, window)
                if candidate and abs(candidate.effect_size) > abs(best.effect_size):
                    best = candidate

        return best

    def _compute_lagged(
        self,
        leader: DailySeries,
        follower: DailySeries,
        lag: int,
        direction: LagDirection,
        window: Optional[Tuple[date, date]],
    ) -> Optional[LagResult]:
        """Correlation of leader[t] with follower[t+lag], None when the window is unusable."""
        aligned = align_shifted(leader, follower, lag, window)
        if len(aligned) < self.min_samples:
            return None

        try:
            r = correlation_coefficient(aligned.values_a, aligned.values_b, self.correlation_type)
        except ConnectionAnalysisError as e:
            logger.debug(f"Skipping lag {lag} for {leader.key} -> {follower.key}: {e}")
            return None

        r1 = max(
            abs(lag1_autocorrelation(aligned.values_a)),
            abs(lag1_autocorrelation(aligned.values_b)),
        )
        n_eff = effective_sample_size(len(aligned), r1)

        return LagResult(
            direction=direction,
            lag_days=lag,
            effect_size=effect_size_from_r(r),
            coefficient=r,
            p_value=correlation_p_value(r, n_eff),
            sample_size=len(aligned),
        )
