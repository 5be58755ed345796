"""
Connection Analyzer - runs the full pairwise analysis for one user.

Handles:
- Building and deduplicating the candidate pair matrix
- Stage A: aligning and correlating every pair concurrently
- Stage B: FDR correction across all pairs and significance filtering
- Stage C: confounder, lag, trend and with/without enrichment
- Ranking the survivors into Connection records
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from lifeconnections.config import AnalysisConfig
from lifeconnections.ml.correlation.alignment import align_pair, looks_like_occurrence
from lifeconnections.ml.correlation.base import (
    AnalysisCancelledError, CandidatePair, ConnectionAnalysisError, DailySeries, PairAnalysis,
)
from lifeconnections.ml.correlation.confounder import ConfounderController
from lifeconnections.ml.correlation.cross_correlation import LagAnalyzer
from lifeconnections.ml.correlation.multiple_comparisons import correct_p_values
from lifeconnections.ml.correlation.pairs import PairGenerator, build_temporal_series
from lifeconnections.ml.correlation.rank_correlation import analyze_correlation
from lifeconnections.ml.correlation.ranking import Connection, ConnectionRanker
from lifeconnections.ml.correlation.significance import SignificanceFilter
from lifeconnections.ml.correlation.trend import TrendAnalyzer
from lifeconnections.ml.correlation.with_without import WithWithoutComparator
from lifeconnections.utils.concurrency import run_with_concurrency_limit
from lifeconnections.utils.enums import Domain

logger = logging.getLogger(__name__)


Window = Tuple[date, date]


@dataclass
class AnalysisReport:
    """Outcome of one analysis run."""
    window: Optional[Window]
    pairs_tested: int = 0
    pairs_correlated: int = 0
    pairs_skipped: int = 0
    discoveries: int = 0
    significant: int = 0
    connections: List[Connection] = field(default_factory=list)


def lookback_window(series: Sequence[DailySeries], lookback_days: int) -> Optional[Window]:
    """Window of ``lookback_days`` ending on the latest observed day."""
    ends = [s.date_span()[1] for s in series if len(s) > 0]
    if not ends:
        return None
    end = max(ends)
    return end - timedelta(days=lookback_days - 1), end


def check_cancelled(cancel_event: Optional[asyncio.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info(f"Analysis cancelled before {stage}")
        raise AnalysisCancelledError(f"Cancelled before {stage}")


class ConnectionAnalyzer:
    """
    Pairwise connection detection over a user's daily series.

    Per-pair work runs in worker threads bounded by ``max_concurrency``.
    FDR correction waits for every pair, so it sits between two fan-outs.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

        self.pair_generator = PairGenerator()
        self.significance_filter = SignificanceFilter(self.config)
        self.confounder_controller = ConfounderController(
            confounder=self.config.confounder,
            retention=self.config.confounder_retention,
        )
        self.lag_analyzer = LagAnalyzer(
            max_lag=self.config.max_time_lag_days,
            min_samples=self.config.min_sample_size,
            correlation_type=self.config.correlation_type,
        )
        self.trend_analyzer = TrendAnalyzer(
            window_days=self.config.rolling_window_days,
            threshold=self.config.trend_threshold,
            correlation_type=self.config.correlation_type,
        )
        self.comparator = WithWithoutComparator()
        self.ranker = ConnectionRanker(
            top_n=self.config.top_n,
            ttl_days=self.config.connection_ttl_days,
        )

    async def analyze(
        self,
        series: Sequence[DailySeries],
        cancel_event: Optional[asyncio.Event] = None,
        detected_at: Optional[datetime] = None,
    ) -> AnalysisReport:
        """
        Run every stage and return the top connections.

        Args:
            series: The user's daily series, one per metric
            cancel_event: Checked between stages; when set the run stops
            detected_at: Timestamp for the resulting connections

        Raises:
            AnalysisCancelledError: if ``cancel_event`` is set between stages
        """
        window = lookback_window(series, self.config.lookback_days)
        report = AnalysisReport(window=window)
        if window is None:
            logger.info("No observations to analyze")
            return report

        lookup = self._with_temporal_series(series, window)
        pairs = self.pair_generator.generate(list(lookup.values()))
        report.pairs_tested = len(pairs)

        # Stage A
        check_cancelled(cancel_event, "correlation")
        analyses = await self._fan_out(
            [(pair, lambda p=pair: self._correlate_pair(p, lookup, window)) for pair in pairs]
        )
        report.pairs_correlated = len(analyses)
        report.pairs_skipped = len(pairs) - len(analyses)
        logger.info(
            f"Correlated {report.pairs_correlated}/{report.pairs_tested} pairs "
            f"({report.pairs_skipped} skipped)"
        )

        # Stage B
        check_cancelled(cancel_event, "FDR correction")
        correction = correct_p_values(
            [a.correlation.raw_p for a in analyses], self.config.fdr_level
        )
        for analysis, adjusted in zip(analyses, correction.adjusted):
            analysis.correlation.adjusted_p = adjusted
        report.discoveries = correction.discoveries

        significant = self.significance_filter.filter(analyses)
        report.significant = len(significant)
        logger.info(
            f"{correction.discoveries} FDR discoveries, {len(significant)} pairs pass significance"
        )

        # Stage C
        check_cancelled(cancel_event, "enrichment")
        enriched = await self._fan_out(
            [(a.pair, lambda a=a: self._enrich_pair(a, lookup, window)) for a in significant]
        )

        check_cancelled(cancel_event, "ranking")
        report.connections = self.ranker.to_connections(enriched, detected_at)
        return report

    def _with_temporal_series(self, series: Sequence[DailySeries], window: Window) -> Dict[str, DailySeries]:
        lookup = {s.key: s for s in series}
        if not any(s.domain == Domain.temporal for s in series):
            for temporal in build_temporal_series(*window):
                lookup[temporal.key] = temporal
        return lookup

    async def _fan_out(
        self,
        jobs: List[Tuple[CandidatePair, Callable[[], PairAnalysis]]],
    ) -> List[PairAnalysis]:
        """Run per-pair jobs in threads; a failing pair is logged and dropped."""

        def isolated(pair: CandidatePair, job: Callable[[], PairAnalysis]):
            async def run():
                try:
                    return await asyncio.to_thread(job)
                except ConnectionAnalysisError as e:
                    logger.warning(f"Skipping {pair}: {e}")
                except Exception:
                    logger.exception(f"Unexpected failure analyzing {pair}")
                return None
            return run

        results = await run_with_concurrency_limit(
            [isolated(pair, job) for pair, job in jobs],
            max_concurrent=self.config.max_concurrency,
        )
        return [r for r in results if r is not None]

    def _correlate_pair(
        self,
        pair: CandidatePair,
        lookup: Dict[str, DailySeries],
        window: Window,
    ) -> PairAnalysis:
        series_a = lookup[pair.metric_a.key]
        series_b = lookup[pair.metric_b.key]

        aligned = align_pair(series_a, series_b, window)
        result = analyze_correlation(
            aligned,
            min_sample_size=self.config.min_sample_size,
            correlation_type=self.config.correlation_type,
        )
        return PairAnalysis(
            pair=pair,
            aligned=aligned,
            correlation=result,
            occurrence_a=looks_like_occurrence(series_a),
            occurrence_b=looks_like_occurrence(series_b),
        )

    def _enrich_pair(
        self,
        analysis: PairAnalysis,
        lookup: Dict[str, DailySeries],
        window: Window,
    ) -> PairAnalysis:
        analysis.confounder = self.confounder_controller.adjust(
            analysis.aligned, analysis.correlation.coefficient
        )

        if analysis.pair.check_time_lag and self.config.max_time_lag_days > 0:
            analysis.lag = self.lag_analyzer.analyze(
                lookup[analysis.pair.metric_a.key],
                lookup[analysis.pair.metric_b.key],
                analysis.correlation,
                window,
            )

        analysis.trend = self.trend_analyzer.analyze(analysis.aligned)
        analysis.with_without = self.comparator.compare(
            analysis.aligned, analysis.occurrence_a, analysis.occurrence_b
        )
        return analysis
