"""Data preparation: quotes -> cleaned, time-ordered spread series."""

from .loaders import load_price_csv
from .ordering import split_by_months, trim_and_split
from .outliers import (
    OutlierResult,
    filter_antipersistent_outliers,
    filter_log_spread_outliers,
    remove_outliers,
)
from .series import SPREAD_COLUMNS, SpreadSeries, build_spread_series

__all__ = [
    "SPREAD_COLUMNS",
    "SpreadSeries",
    "build_spread_series",
    "load_price_csv",
    "split_by_months",
    "trim_and_split",
    "OutlierResult",
    "filter_log_spread_outliers",
    "filter_antipersistent_outliers",
    "remove_outliers",
]
