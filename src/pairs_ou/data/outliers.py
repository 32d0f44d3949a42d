from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from .series import SpreadSeries


IQR_MULTIPLIER = 3.0
ANTIPERSISTENT_NEXT_FRACTION = 0.95


@dataclass(frozen=True)
class OutlierResult:
    clean: SpreadSeries
    outliers: SpreadSeries
    mask: np.ndarray  # True where the input row is an outlier


def _split(series: SpreadSeries, mask: np.ndarray) -> OutlierResult:
    mask = np.asarray(mask, dtype=bool)
    return OutlierResult(clean=series.subset(~mask), outliers=series.subset(mask), mask=mask)


def _quartiles(x: np.ndarray) -> tuple[float, float]:
    q1, q3 = np.nanpercentile(x, [25.0, 75.0])
    return float(q1), float(q3)


def filter_log_spread_outliers(series: SpreadSeries) -> OutlierResult:
    """Flag log-spread values outside [Q1 - 3*IQR, Q3 + 3*IQR]."""
    if series.empty:
        return _split(series, np.zeros(0, dtype=bool))
    x = series.log_spread
    q1, q3 = _quartiles(x)
    iqr = q3 - q1
    lo = q1 - IQR_MULTIPLIER * iqr
    hi = q3 + IQR_MULTIPLIER * iqr
    return _split(series, (x < lo) | (x > hi))


def filter_antipersistent_outliers(series: SpreadSeries) -> OutlierResult:
    """Flag single-bar spikes: a jump larger than the IQR immediately reversed.

    Bar t (never the first or last) is an outlier when |x_t - x_{t-1}| > IQR and
    |x_{t+1} - x_t| > 0.95 * IQR.
    """
    n = len(series)
    mask = np.zeros(n, dtype=bool)
    if n < 3:
        return _split(series, mask)
    x = series.log_spread
    q1, q3 = _quartiles(x)
    iqr = q3 - q1
    step = np.abs(np.diff(x))
    mask[1:-1] = (step[:-1] > iqr) & (step[1:] > ANTIPERSISTENT_NEXT_FRACTION * iqr)
    return _split(series, mask)


def remove_outliers(series: SpreadSeries) -> OutlierResult:
    """IQR filter first, then the antipersistent filter on what survived.

    The returned mask refers to rows of the input series.
    """
    first = filter_log_spread_outliers(series)
    second = filter_antipersistent_outliers(first.clean)

    mask = first.mask.copy()
    survivors = np.flatnonzero(~first.mask)
    mask[survivors[second.mask]] = True
    return _split(series, mask)


def outlier_summary(result: OutlierResult) -> pd.Series:
    n = len(result.mask)
    flagged = int(result.mask.sum())
    return pd.Series(
        {
            "rows": n,
            "outliers": flagged,
            "outlier_share": flagged / n if n else 0.0,
        }
    )
