"""
Ranking of surviving pairs and mapping to Connection records.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from lifeconnections.ml.correlation.base import PairAnalysis
from lifeconnections.utils.enums import (
    ConnectionCategory, ConnectionDirection, ConnectionStrength, Domain, LagDirection,
)

logger = logging.getLogger(__name__)


ACTIVITY_LIKE = {Domain.activity, Domain.location, Domain.streak, Domain.voice}


@dataclass
class Connection:
    """A ranked, explained relationship between two metrics, ready to persist."""

    category: ConnectionCategory
    direction: ConnectionDirection
    strength: ConnectionStrength
    domain_a: Domain
    metric_a: str
    domain_b: Domain
    metric_b: str
    metrics: Dict[str, Any]
    effect_size: float
    detected_at: datetime
    expires_at: datetime
    time_lag: Optional[Dict[str, Any]] = None
    with_without: Optional[Dict[str, Any]] = None
    survives_confounder_control: Optional[bool] = None
    confounder_partial_r: Optional[float] = None
    confounder_note: Optional[str] = None
    trend_direction: Optional[str] = None
    data_points: List[Dict[str, Any]] = field(default_factory=list)
    title: str = ""
    description: str = ""
    explanation: str = ""
    recommendation: str = ""
    dismissed: bool = False
    ai_generated: bool = False
    analysis: Optional[PairAnalysis] = field(default=None, repr=False, compare=False)

    @property
    def pair_key(self) -> str:
        return f"{self.domain_a.value}.{self.metric_a}|{self.domain_b.value}.{self.metric_b}"

    def to_dict(self) -> dict:
        return {
            'category': self.category.value,
            'direction': self.direction.value,
            'strength': self.strength.value,
            'domainA': self.domain_a.value,
            'metricA': self.metric_a,
            'domainB': self.domain_b.value,
            'metricB': self.metric_b,
            'metrics': self.metrics,
            'title': self.title,
            'description': self.description,
            'explanation': self.explanation,
            'recommendation': self.recommendation,
            'timeLag': self.time_lag,
            'withWithout': self.with_without,
            'survivesConfounderControl': self.survives_confounder_control,
            'confounderPartialR': self.confounder_partial_r,
            'confounderNote': self.confounder_note,
            'trendDirection': self.trend_direction,
            'dataPoints': self.data_points,
            'detectedAt': self.detected_at.isoformat(),
            'expiresAt': self.expires_at.isoformat(),
            'dismissed': self.dismissed,
            'aiGenerated': self.ai_generated,
        }


def strength_for(coefficient: float) -> ConnectionStrength:
    value = abs(coefficient)
    if value >= 0.7:
        return ConnectionStrength.strong
    if value >= 0.4:
        return ConnectionStrength.moderate
    return ConnectionStrength.weak


def direction_for(coefficient: float) -> ConnectionDirection:
    return ConnectionDirection.positive if coefficient >= 0 else ConnectionDirection.negative


def category_for(domain_a: Domain, domain_b: Domain, lagged: bool = False) -> ConnectionCategory:
    domains = {domain_a, domain_b}

    if Domain.weather in domains:
        return ConnectionCategory.environment
    if Domain.temporal in domains:
        return ConnectionCategory.health_time
    if domains <= ACTIVITY_LIKE:
        return ConnectionCategory.activity_sequence if lagged else ConnectionCategory.other
    if Domain.mood in domains and Domain.health in domains:
        return ConnectionCategory.mood_health
    if Domain.mood in domains and domains & ACTIVITY_LIKE:
        return ConnectionCategory.mood_activity
    if Domain.health in domains and domains & ACTIVITY_LIKE:
        return ConnectionCategory.health_activity
    return ConnectionCategory.other


def statistics_block(analysis: PairAnalysis) -> Dict[str, Any]:
    result = analysis.correlation
    block = result.to_dict()
    block.update({
        'metricA': analysis.pair.metric_a.key,
        'metricB': analysis.pair.metric_b.key,
        'coefficient': analysis.coefficient,
        'effectSize': analysis.effect_size,
        'sameDayEffectSize': result.effect_size,
        'confidencePercent': (1 - (result.adjusted_p if result.adjusted_p is not None else result.raw_p)) * 100,
    })
    return block


class ConnectionRanker:
    """Orders surviving pairs by |effect size| and keeps the top N."""

    def __init__(self, top_n: int = 10, ttl_days: int = 30):
        self.top_n = top_n
        self.ttl_days = ttl_days

    def rank(self, analyses: List[PairAnalysis]) -> List[PairAnalysis]:
        # Pair key breaks ties so equal effect sizes always land in the same order
        ordered = sorted(analyses, key=lambda a: (-abs(a.effect_size), a.pair.key))
        return ordered[:self.top_n]

    def to_connections(
        self,
        analyses: List[PairAnalysis],
        detected_at: Optional[datetime] = None,
    ) -> List[Connection]:
        detected_at = detected_at or datetime.now(timezone.utc)
        ranked = self.rank(analyses)
        logger.info(f"Ranked {len(analyses)} significant pairs, keeping top {len(ranked)}")
        return [self.to_connection(a, detected_at) for a in ranked]

    def to_connection(self, analysis: PairAnalysis, detected_at: datetime) -> Connection:
        pair = analysis.pair
        lagged = analysis.lag is not None and analysis.lag.direction != LagDirection.same_day
        coefficient = analysis.coefficient

        return Connection(
            category=category_for(pair.metric_a.domain, pair.metric_b.domain, lagged),
            direction=direction_for(coefficient),
            strength=strength_for(coefficient),
            domain_a=pair.metric_a.domain,
            metric_a=pair.metric_a.metric,
            domain_b=pair.metric_b.domain,
            metric_b=pair.metric_b.metric,
            metrics=statistics_block(analysis),
            effect_size=analysis.effect_size,
            detected_at=detected_at,
            expires_at=detected_at + timedelta(days=self.ttl_days),
            time_lag=analysis.lag.to_dict() if analysis.lag else None,
            with_without=analysis.with_without.to_dict() if analysis.with_without else None,
            survives_confounder_control=(
                analysis.confounder.survives_confounder_control if analysis.confounder else None
            ),
            confounder_partial_r=analysis.confounder.partial_coefficient if analysis.confounder else None,
            confounder_note=analysis.confounder.note if analysis.confounder else None,
            trend_direction=analysis.trend.direction.value if analysis.trend else None,
            data_points=[
                {'date': d.isoformat(), 'valueA': float(a), 'valueB': float(b)}
                for d, a, b in zip(
                    analysis.aligned.dates, analysis.aligned.values_a, analysis.aligned.values_b
                )
            ],
            analysis=analysis,
        )
