from __future__ import annotations

import pandas as pd

from .series import SpreadSeries


def decimal_hour(times: pd.Series) -> pd.Series:
    """Hour of day as a float (13:30 -> 13.5)."""
    t = pd.to_datetime(times)
    return t.dt.hour + t.dt.minute / 60.0 + t.dt.second / 3600.0


def add_months(ts: pd.Timestamp, months: int) -> pd.Timestamp:
    """Shift by calendar months, clamping the day to the target month length."""
    return pd.Timestamp(ts) + pd.DateOffset(months=months)


def split_by_months(series: SpreadSeries, months: int) -> tuple[SpreadSeries, SpreadSeries]:
    """Split into (in-sample, out-of-sample) at first timestamp + ``months``.

    Rows strictly before the split date are in-sample.
    """
    if series.empty:
        return series, series
    split_at = add_months(series.df["time"].iloc[0], months)
    in_sample = series.df["time"] < split_at
    return series.subset(in_sample), series.subset(~in_sample)


def trim_and_split(
    series: SpreadSeries,
    *,
    split_months: int,
    is_hours: tuple[float, float] | None = None,
    os_excluded_hours: tuple[float, float] | None = None,
) -> tuple[SpreadSeries, SpreadSeries]:
    """Sort by time, split by months, then apply intraday windows.

    Args:
        series: Full sample
        split_months: Length of the in-sample window in calendar months
        is_hours: Keep in-sample rows whose hour lies in [start, end]
        os_excluded_hours: Keep out-of-sample rows with hour <= start or >= end

    Returns:
        (in_sample, out_of_sample)
    """
    ordered = SpreadSeries(df=series.df.sort_values("time", kind="stable").reset_index(drop=True))
    in_sample, out_sample = split_by_months(ordered, split_months)

    if is_hours is not None and not in_sample.empty:
        h = decimal_hour(in_sample.df["time"])
        in_sample = in_sample.subset((h >= is_hours[0]) & (h <= is_hours[1]))

    if os_excluded_hours is not None and not out_sample.empty:
        h = decimal_hour(out_sample.df["time"])
        out_sample = out_sample.subset((h <= os_excluded_hours[0]) | (h >= os_excluded_hours[1]))

    return in_sample, out_sample
