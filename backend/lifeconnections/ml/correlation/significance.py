"""Keeps pairs that are significant after FDR correction and large enough to matter."""

import logging
from typing import List

from lifeconnections.config import AnalysisConfig
from lifeconnections.ml.correlation.base import PairAnalysis

logger = logging.getLogger(__name__)


class SignificanceFilter:

    def __init__(self, config: AnalysisConfig):
        self.config = config
        # The stricter of the two thresholds applies to the adjusted p-value
        self.max_adjusted_p = min(config.min_p_value, config.fdr_level)

    def passes(self, analysis: PairAnalysis) -> bool:
        result = analysis.correlation
        if result.adjusted_p is None:
            return False
        return (
            result.adjusted_p < self.max_adjusted_p
            and abs(result.effect_size) >= self.config.min_effect_size
            and result.effective_sample_size >= self.config.min_sample_size
        )

    def filter(self, analyses: List[PairAnalysis]) -> List[PairAnalysis]:
        kept = []
        for analysis in analyses:
            if self.passes(analysis):
                analysis.correlation.significant = True
                kept.append(analysis)
            else:
                result = analysis.correlation
                logger.debug(
                    f"Dropping {analysis.pair}: adjusted_p={result.adjusted_p}, "
                    f"d={result.effect_size:.3f}, n_eff={result.effective_sample_size:.1f}"
                )
        return kept
