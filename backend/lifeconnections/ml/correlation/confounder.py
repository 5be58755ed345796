"""
Confounder control through partial rank correlation.

Many daily metrics move with the weekly cycle (sleep in on weekends, gym on
Mondays). A pair that only correlates because both follow day-of-week is
annotated as not surviving confounder control. It is not dropped.
"""

import math
from typing import Sequence
from datetime import date

import numpy as np

from lifeconnections.ml.correlation.base import AlignedPair, ConfounderAdjustment, DegenerateSeriesError
from lifeconnections.ml.correlation.rank_correlation import pearson_correlation, rank_data
from lifeconnections.utils.enums import Confounder


# Below this the confounder fully explains A or B
MIN_PARTIAL_DENOMINATOR = 1e-10


def confounder_values(dates: Sequence[date], confounder: Confounder) -> np.ndarray:
    if confounder == Confounder.is_weekend:
        return np.array([1.0 if d.weekday() >= 5 else 0.0 for d in dates])
    return np.array([float(d.weekday()) for d in dates])


def partial_correlation(x, y, z) -> float:
    """
    Partial rank correlation of x and y controlling for z.

    r_xy.z = (r_xy - r_xz * r_yz) / sqrt((1 - r_xz^2) * (1 - r_yz^2))

    A constant z carries no information, so the raw rank correlation is
    returned unchanged.
    """
    rx, ry, rz = rank_data(x), rank_data(y), rank_data(z)
    r_xy = pearson_correlation(rx, ry)
    try:
        r_xz = pearson_correlation(rx, rz)
        r_yz = pearson_correlation(ry, rz)
    except DegenerateSeriesError:
        return r_xy

    denominator = math.sqrt(max(0.0, (1 - r_xz ** 2) * (1 - r_yz ** 2)))
    if denominator < MIN_PARTIAL_DENOMINATOR:
        return 0.0
    return max(-1.0, min(1.0, (r_xy - r_xz * r_yz) / denominator))


class ConfounderController:

    def __init__(self, confounder: Confounder = Confounder.day_of_week, retention: float = 0.5):
        self.confounder = confounder
        self.retention = retention

    def adjust(self, aligned: AlignedPair, raw_coefficient: float) -> ConfounderAdjustment:
        z = confounder_values(aligned.dates, self.confounder)
        partial = partial_correlation(aligned.values_a, aligned.values_b, z)

        same_sign = partial * raw_coefficient > 0
        survives = same_sign and abs(partial) >= self.retention * abs(raw_coefficient)

        label = self.confounder.value.replace('_', ' ')
        if survives:
            note = (
                f"Holds after controlling for {label} "
                f"(partial {partial:.2f} vs raw {raw_coefficient:.2f})."
            )
        else:
            note = (
                f"May be largely explained by {label} "
                f"(partial {partial:.2f} vs raw {raw_coefficient:.2f})."
            )

        return ConfounderAdjustment(
            partial_coefficient=partial,
            survives_confounder_control=survives,
            confounder_variable=self.confounder,
            note=note,
        )
