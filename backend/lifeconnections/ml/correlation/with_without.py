"""
With/without comparison for occurrence-type metrics.

"On days you played badminton you slept 7.9h vs 7.1h without" reads better
than a rank coefficient, so occurrence pairs also get a two-group contrast.
"""

from typing import Optional, Sequence

import numpy as np

from lifeconnections.ml.correlation.base import AlignedPair, ExampleDay, GroupStats, WithWithoutResult


def group_stats(values: Sequence[float]) -> GroupStats:
    arr = np.asarray(values, dtype=float)
    return GroupStats(mean=float(arr.mean()), median=float(np.median(arr)), count=int(len(arr)))


def compare_groups(with_values: Sequence[float], without_values: Sequence[float]) -> Optional[WithWithoutResult]:
    """Two-group contrast; None when either group is empty."""
    if len(with_values) == 0 or len(without_values) == 0:
        return None

    with_group = group_stats(with_values)
    without_group = group_stats(without_values)
    difference = with_group.mean - without_group.mean
    if without_group.mean == 0:
        percent = 0.0
    else:
        percent = difference / abs(without_group.mean) * 100

    return WithWithoutResult(
        with_group=with_group,
        without_group=without_group,
        absolute_difference=difference,
        percent_difference=percent,
    )


class WithWithoutComparator:

    def compare(
        self,
        aligned: AlignedPair,
        occurrence_a: bool,
        occurrence_b: bool,
    ) -> Optional[WithWithoutResult]:
        """
        Split the outcome metric by whether the occurrence happened that day.

        A is treated as the occurrence when both metrics qualify. Returns None
        when neither metric is an occurrence or a group is empty.
        """
        if occurrence_a:
            flags, outcome = aligned.values_a, aligned.values_b
        elif occurrence_b:
            flags, outcome = aligned.values_b, aligned.values_a
        else:
            return None

        result = compare_groups(outcome[flags > 0], outcome[flags == 0])
        if result is None:
            return None

        best = int(np.argmax(outcome))
        worst = int(np.argmin(outcome))
        result.best_day = ExampleDay(
            day=aligned.dates[best],
            value_a=float(aligned.values_a[best]),
            value_b=float(aligned.values_b[best]),
        )
        result.worst_day = ExampleDay(
            day=aligned.dates[worst],
            value_a=float(aligned.values_a[worst]),
            value_b=float(aligned.values_b[worst]),
        )
        return result
