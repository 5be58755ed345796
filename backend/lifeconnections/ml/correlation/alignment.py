"""
Date alignment of two daily series.

Series are laid on a shared daily calendar before pairing so that a
missing day can never be paired with the next available one. This matters
for lag shifts: shifting by position across a gap would silently pair
Feb 2 with Feb 6.
"""

from datetime import date
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from lifeconnections.ml.correlation.base import DailySeries, AlignedPair


Window = Tuple[date, date]


def _union_span(series_a: DailySeries, series_b: DailySeries) -> Optional[Window]:
    spans = [s.date_span() for s in (series_a, series_b)]
    spans = [s for s in spans if s is not None]
    if not spans:
        return None
    return min(s[0] for s in spans), max(s[1] for s in spans)


def _on_calendar(series: DailySeries, calendar: pd.DatetimeIndex) -> pd.Series:
    values = pd.Series(
        {pd.Timestamp(day): float(value) for day, value in series.values.items()},
        dtype=float,
    )
    values = values.replace([np.inf, -np.inf], np.nan).reindex(calendar)
    if series.occurrence:
        # Absence of an occurrence is a real zero, not a gap
        values = values.fillna(0.0)
    return values


def build_calendar_frame(
    series_a: DailySeries,
    series_b: DailySeries,
    window: Optional[Window] = None,
) -> pd.DataFrame:
    """Both series reindexed on one daily calendar, columns ``a`` and ``b``."""
    span = window or _union_span(series_a, series_b)
    if span is None:
        return pd.DataFrame({'a': [], 'b': []}, dtype=float)

    calendar = pd.date_range(start=span[0], end=span[1], freq='D')
    return pd.DataFrame(
        {
            'a': _on_calendar(series_a, calendar),
            'b': _on_calendar(series_b, calendar),
        },
        index=calendar,
    )


def frame_to_pair(frame: pd.DataFrame) -> AlignedPair:
    clean = frame[['a', 'b']].dropna()
    return AlignedPair(
        dates=[ts.date() for ts in clean.index],
        values_a=clean['a'].to_numpy(dtype=float),
        values_b=clean['b'].to_numpy(dtype=float),
    )


def align_pair(
    series_a: DailySeries,
    series_b: DailySeries,
    window: Optional[Window] = None,
) -> AlignedPair:
    """Pair same-day values, dropping days where either metric is missing."""
    return frame_to_pair(build_calendar_frame(series_a, series_b, window))


def align_shifted(
    series_a: DailySeries,
    series_b: DailySeries,
    lag_days: int,
    window: Optional[Window] = None,
) -> AlignedPair:
    """
    Pair A on day t with B on day t + lag_days.

    Dates in the result are the days of A. The shift is done on the calendar,
    so gaps stay gaps.
    """
    frame = build_calendar_frame(series_a, series_b, window)
    if lag_days:
        frame['b'] = frame['b'].shift(-lag_days)
    return frame_to_pair(frame)


def looks_like_occurrence(series: DailySeries) -> bool:
    """True for explicitly flagged occurrence metrics or 0/1-only values."""
    if series.occurrence:
        return True
    if not series.values:
        return False
    return set(series.values.values()) <= {0.0, 1.0}
