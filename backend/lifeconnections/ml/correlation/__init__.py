# Life Connections Correlation Module
from lifeconnections.ml.correlation.base import (
    DailySeries,
    MetricRef,
    CandidatePair,
    CorrelationResult,
    PairAnalysis,
    ConnectionAnalysisError,
    InsufficientDataError,
    DegenerateSeriesError,
    AnalysisCancelledError,
)
from lifeconnections.ml.correlation.pairs import PairGenerator, build_temporal_series
from lifeconnections.ml.correlation.confounder import ConfounderController
from lifeconnections.ml.correlation.cross_correlation import LagAnalyzer
from lifeconnections.ml.correlation.trend import TrendAnalyzer
from lifeconnections.ml.correlation.with_without import WithWithoutComparator
from lifeconnections.ml.correlation.significance import SignificanceFilter
from lifeconnections.ml.correlation.ranking import Connection, ConnectionRanker
from lifeconnections.ml.correlation.aggregator import ConnectionAnalyzer, AnalysisReport

__all__ = [
    "DailySeries",
    "MetricRef",
    "CandidatePair",
    "CorrelationResult",
    "PairAnalysis",
    "ConnectionAnalysisError",
    "InsufficientDataError",
    "DegenerateSeriesError",
    "AnalysisCancelledError",
    "PairGenerator",
    "build_temporal_series",
    "ConfounderController",
    "LagAnalyzer",
    "TrendAnalyzer",
    "WithWithoutComparator",
    "SignificanceFilter",
    "Connection",
    "ConnectionRanker",
    "ConnectionAnalyzer",
    "AnalysisReport",
]
