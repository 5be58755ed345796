"""
Rolling-window trend re-analysis.

Recomputes the effect size over consecutive calendar windows and compares
the earliest third of windows with the latest third to tell whether a
connection is getting stronger or fading.
"""

import math
from typing import List, Optional

import numpy as np

from lifeconnections.ml.correlation.base import AlignedPair, TrendResult, ConnectionAnalysisError
from lifeconnections.ml.correlation.rank_correlation import correlation_coefficient, effect_size_from_r
from lifeconnections.utils.enums import CorrelationType, TrendDirection


MIN_WINDOWS = 3


class TrendAnalyzer:

    def __init__(
        self,
        window_days: int = 30,
        threshold: float = 0.10,
        correlation_type: CorrelationType = CorrelationType.rank,
    ):
        self.window_days = window_days
        self.threshold = threshold
        self.correlation_type = correlation_type
        self.min_points = math.ceil(window_days / 2)

    def window_effect_sizes(self, aligned: AlignedPair) -> List[float]:
        """|effect size| per valid window, in calendar order."""
        if len(aligned) == 0:
            return []

        ordinals = np.array([d.toordinal() for d in aligned.dates])
        first, last = int(ordinals[0]), int(ordinals[-1])

        effects = []
        for start in range(first, last - self.window_days + 2):
            mask = (ordinals >= start) & (ordinals < start + self.window_days)
            if mask.sum() < self.min_points:
                continue
            try:
                r = correlation_coefficient(
                    aligned.values_a[mask], aligned.values_b[mask], self.correlation_type
                )
            except ConnectionAnalysisError:
                continue
            effects.append(abs(effect_size_from_r(r)))
        return effects

    def analyze(self, aligned: AlignedPair) -> Optional[TrendResult]:
        effects = self.window_effect_sizes(aligned)
        if len(effects) < MIN_WINDOWS:
            return None

        third = max(1, len(effects) // 3)
        early = float(np.mean(effects[:third]))
        late = float(np.mean(effects[-third:]))

        return TrendResult(
            direction=self.classify(early, late),
            window_size_days=self.window_days,
            early_effect_size=early,
            late_effect_size=late,
            window_count=len(effects),
        )

    def classify(self, early: float, late: float) -> TrendDirection:
        if early == 0:
            return TrendDirection.strengthening if late > 0 else TrendDirection.stable

        change = (late - early) / early
        if change > self.threshold:
            return TrendDirection.strengthening
        if change < -self.threshold:
            return TrendDirection.weakening
        return TrendDirection.stable
