"""Base data structures and errors for connection detection."""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, List, Dict, Any, Tuple

import numpy as np

from lifeconnections.utils.enums import (
    CorrelationType, Domain, LagDirection, TrendDirection, Confounder,
)


class ConnectionAnalysisError(Exception):
    """Base class for every error raised by the analysis pipeline."""


class InsufficientDataError(ConnectionAnalysisError):
    """Aligned series are too short to analyze."""


class DegenerateSeriesError(ConnectionAnalysisError):
    """One of the series has zero variance, so correlation is undefined."""


class AnalysisCancelledError(ConnectionAnalysisError):
    """The run was cancelled between stages."""


@dataclass(frozen=True)
class MetricRef:
    domain: Domain
    metric: str

    @property
    def key(self) -> str:
        return f"{self.domain.value}.{self.metric}"

    def label(self) -> str:
        return self.metric.replace('_', ' ')


@dataclass
class DailySeries:
    """
    One metric's daily values for one user.

    Missing days are absent from ``values``. For occurrence-type metrics
    (e.g. "played badminton") an absent day means the value 0.
    """

    domain: Domain
    metric: str
    values: Dict[date, float] = field(default_factory=dict)
    occurrence: bool = False

    @property
    def ref(self) -> MetricRef:
        return MetricRef(self.domain, self.metric)

    @property
    def key(self) -> str:
        return self.ref.key

    def __len__(self) -> int:
        return len(self.values)

    def date_span(self) -> Optional[Tuple[date, date]]:
        if not self.values:
            return None
        return min(self.values), max(self.values)


@dataclass(frozen=True)
class CandidatePair:
    metric_a: MetricRef
    metric_b: MetricRef
    check_time_lag: bool = False

    @property
    def key(self) -> Tuple[str, str]:
        """Order-independent identity, so A x B and B x A collapse."""
        return tuple(sorted((self.metric_a.key, self.metric_b.key)))

    def __str__(self) -> str:
        return f"{self.metric_a.key} <-> {self.metric_b.key}"


@dataclass
class AlignedPair:
    """Paired observations for two metrics, sorted by date."""

    dates: List[date]
    values_a: np.ndarray
    values_b: np.ndarray

    def __len__(self) -> int:
        return len(self.dates)


@dataclass
class CorrelationResult:
    """Result of correlating one aligned pair."""

    correlation_type: CorrelationType
    rho: float
    pearson_r: float
    raw_p: float
    sample_size: int
    effective_sample_size: float
    autocorrelation: float
    effect_size: float
    confidence_interval: Tuple[float, float]
    adjusted_p: Optional[float] = None
    significant: bool = False

    @property
    def coefficient(self) -> float:
        """Primary coefficient for the configured correlation type."""
        if self.correlation_type == CorrelationType.linear:
            return self.pearson_r
        return self.rho

    def to_dict(self) -> dict:
        return {
            'correlationType': self.correlation_type.value,
            'coefficient': self.coefficient,
            'rho': self.rho,
            'pearsonR': self.pearson_r,
            'pValue': self.raw_p,
            'adjustedPValue': self.adjusted_p,
            'sampleSize': self.sample_size,
            'effectiveSampleSize': self.effective_sample_size,
            'autocorrelation': self.autocorrelation,
            'effectSize': self.effect_size,
            'confidenceInterval': {
                'lower': self.confidence_interval[0],
                'upper': self.confidence_interval[1],
            },
        }


@dataclass
class ConfounderAdjustment:
    partial_coefficient: float
    survives_confounder_control: bool
    confounder_variable: Confounder
    note: str = ""


@dataclass
class LagResult:
    direction: LagDirection
    lag_days: int
    effect_size: float
    coefficient: float
    p_value: float
    sample_size: int

    def to_dict(self) -> dict:
        return {
            'direction': self.direction.value,
            'days': self.lag_days,
            'effectSize': self.effect_size,
            'coefficient': self.coefficient,
        }


@dataclass
class TrendResult:
    direction: TrendDirection
    window_size_days: int
    early_effect_size: float
    late_effect_size: float
    window_count: int


@dataclass
class GroupStats:
    mean: float
    median: float
    count: int

    def to_dict(self) -> dict:
        return {'mean': self.mean, 'median': self.median, 'count': self.count}


@dataclass
class ExampleDay:
    day: date
    value_a: float
    value_b: float

    def to_dict(self) -> dict:
        return {'date': self.day.isoformat(), 'valueA': self.value_a, 'valueB': self.value_b}


@dataclass
class WithWithoutResult:
    with_group: GroupStats
    without_group: GroupStats
    absolute_difference: float
    percent_difference: float
    best_day: Optional[ExampleDay] = None
    worst_day: Optional[ExampleDay] = None

    def to_dict(self) -> dict:
        return {
            'withActivity': self.with_group.to_dict(),
            'withoutActivity': self.without_group.to_dict(),
            'absoluteDifference': self.absolute_difference,
            'percentDifference': self.percent_difference,
        }


@dataclass
class PairAnalysis:
    """Working record for one candidate pair as it moves through the stages."""

    pair: CandidatePair
    aligned: AlignedPair
    correlation: CorrelationResult
    occurrence_a: bool = False
    occurrence_b: bool = False
    confounder: Optional[ConfounderAdjustment] = None
    lag: Optional[LagResult] = None
    trend: Optional[TrendResult] = None
    with_without: Optional[WithWithoutResult] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def effect_size(self) -> float:
        """Effect size used for ranking; a better-fitting lag replaces same-day."""
        if self.lag is not None and self.lag.direction != LagDirection.same_day:
            return self.lag.effect_size
        return self.correlation.effect_size

    @property
    def coefficient(self) -> float:
        if self.lag is not None and self.lag.direction != LagDirection.same_day:
            return self.lag.coefficient
        return self.correlation.coefficient
