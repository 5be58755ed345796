"""
Benjamini-Hochberg false discovery rate correction.

Applied once per run across every raw p-value, so it has to wait until all
pairs have been correlated.
"""

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np


@dataclass
class FdrCorrection:
    adjusted: List[float]
    discoveries: int
    fdr_level: float


def benjamini_hochberg(p_values: Sequence[float]) -> List[float]:
    """
    BH-adjusted p-values, returned in input order.

    p_adj = p * m / rank, then a running minimum from the largest rank down,
    clipped to 1.
    """
    p = np.asarray(p_values, dtype=float)
    m = len(p)
    if m == 0:
        return []

    order = np.argsort(p, kind='mergesort')
    ranks = np.arange(1, m + 1, dtype=float)
    scaled = p[order] * m / ranks
    monotone = np.minimum.accumulate(scaled[::-1])[::-1]

    adjusted = np.empty(m, dtype=float)
    adjusted[order] = np.clip(monotone, 0.0, 1.0)
    return adjusted.tolist()


def correct_p_values(p_values: Sequence[float], fdr_level: float = 0.05) -> FdrCorrection:
    adjusted = benjamini_hochberg(p_values)
    return FdrCorrection(
        adjusted=adjusted,
        discoveries=sum(1 for p in adjusted if p < fdr_level),
        fdr_level=fdr_level,
    )
