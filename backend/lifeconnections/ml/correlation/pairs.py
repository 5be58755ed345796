"""
Candidate pair matrix.

Pairs are generated across domains from whatever series a user has:

- Activity/location x health and mood (lag-eligible)
- Health x health (cross-metric)
- Streak/voice x health and mood
- Weather x health and mood
- Weekend x every non-temporal metric
"""

import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List, Sequence, Tuple

from lifeconnections.ml.correlation.base import CandidatePair, DailySeries, MetricRef
from lifeconnections.utils.enums import Domain

logger = logging.getLogger(__name__)


IS_WEEKEND = 'is_weekend'
DAY_OF_WEEK = 'day_of_week'

OCCURRENCE_DOMAINS = (Domain.activity, Domain.location)
OUTCOME_DOMAINS = (Domain.health, Domain.mood)
DRIVER_DOMAINS = (Domain.streak, Domain.voice, Domain.weather)


def build_temporal_series(start: date, end: date) -> List[DailySeries]:
    """Calendar-derived series: is_weekend (occurrence) and day_of_week (0=Mon)."""
    is_weekend: Dict[date, float] = {}
    day_of_week: Dict[date, float] = {}
    day = start
    while day <= end:
        is_weekend[day] = 1.0 if day.weekday() >= 5 else 0.0
        day_of_week[day] = float(day.weekday())
        day += timedelta(days=1)

    return [
        DailySeries(Domain.temporal, IS_WEEKEND, is_weekend, occurrence=True),
        DailySeries(Domain.temporal, DAY_OF_WEEK, day_of_week),
    ]


class PairGenerator:
    """
    Builds the cross-domain candidate pairs and deduplicates them.

    A x B and B x A collapse onto one sorted key; self pairs are dropped.
    When a duplicate disagrees on lag eligibility, lag checking wins.
    """

    def generate(self, series: Sequence[DailySeries]) -> List[CandidatePair]:
        refs = sorted({s.ref for s in series if len(s) > 0}, key=lambda r: r.key)
        by_domain: Dict[Domain, List[MetricRef]] = {}
        for ref in refs:
            by_domain.setdefault(ref.domain, []).append(ref)

        def of(*domains: Domain) -> List[MetricRef]:
            return [ref for d in domains for ref in by_domain.get(d, [])]

        outcomes = of(*OUTCOME_DOMAINS)
        candidates: List[Tuple[MetricRef, MetricRef, bool]] = []

        for occurrence in of(*OCCURRENCE_DOMAINS):
            candidates.extend((occurrence, outcome, True) for outcome in outcomes)

        health = of(Domain.health)
        for i, a in enumerate(health):
            candidates.extend((a, b, False) for b in health[i + 1:])

        for driver in of(*DRIVER_DOMAINS):
            candidates.extend((driver, outcome, False) for outcome in outcomes)

        weekend = MetricRef(Domain.temporal, IS_WEEKEND)
        if weekend in refs:
            others = [ref for ref in refs if ref.domain != Domain.temporal]
            candidates.extend((weekend, other, False) for other in others)

        pairs = self._deduplicate(candidates)
        logger.info(f"Generated {len(pairs)} candidate pairs from {len(refs)} metrics")
        return pairs

    @staticmethod
    def _deduplicate(candidates: Iterable[Tuple[MetricRef, MetricRef, bool]]) -> List[CandidatePair]:
        seen: Dict[Tuple[str, str], CandidatePair] = {}
        for a, b, check_lag in candidates:
            if a == b:
                continue
            pair = CandidatePair(a, b, check_lag)
            existing = seen.get(pair.key)
            if existing is None:
                seen[pair.key] = pair
            elif check_lag and not existing.check_time_lag:
                seen[pair.key] = CandidatePair(existing.metric_a, existing.metric_b, True)
        return [seen[key] for key in sorted(seen)]
