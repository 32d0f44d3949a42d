from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd


SPREAD_COLUMNS: tuple[str, ...] = (
    "time",
    "bid1",
    "ask1",
    "mid1",
    "bid2",
    "ask2",
    "mid2",
    "log_spread",
)


@dataclass(frozen=True)
class SpreadSeries:
    """Time-ordered quotes for two instruments and their log-spread.

    One row per bar with columns ``SPREAD_COLUMNS``. ``log_spread`` is
    ln(mid1 / mid2) and is NaN wherever a mid is not strictly positive.
    """

    df: pd.DataFrame

    def __post_init__(self) -> None:
        missing = [c for c in SPREAD_COLUMNS if c not in self.df.columns]
        if missing:
            raise ValueError(f"SpreadSeries missing columns: {missing}")

    def __len__(self) -> int:
        return len(self.df)

    @property
    def empty(self) -> bool:
        return len(self.df) == 0

    @property
    def log_spread(self) -> np.ndarray:
        return self.df["log_spread"].to_numpy(dtype="float64")

    @property
    def times(self) -> list:
        return self.df["time"].tolist()

    def subset(self, mask: pd.Series | np.ndarray) -> "SpreadSeries":
        """Return the rows selected by a boolean mask, re-indexed from 0."""
        return SpreadSeries(df=self.df.loc[np.asarray(mask, dtype=bool)].reset_index(drop=True))

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "SpreadSeries":
        """Wrap a frame that has quotes, computing ``log_spread`` if absent."""
        out = df.copy()
        if "log_spread" not in out.columns:
            out["log_spread"] = log_spread(out["mid1"], out["mid2"])
        return cls(df=out[list(SPREAD_COLUMNS)].reset_index(drop=True))


def log_spread(mid1: pd.Series, mid2: pd.Series) -> pd.Series:
    m1 = mid1.astype("float64")
    m2 = mid2.astype("float64")
    valid = (m1 > 0) & (m2 > 0)
    out = pd.Series(np.nan, index=m1.index, dtype="float64")
    out.loc[valid] = np.log(m1.loc[valid] / m2.loc[valid])
    return out


def _leg_quotes(
    n: int,
    *,
    product: int,
    bid: Sequence[float] | None,
    ask: Sequence[float] | None,
    mid: Sequence[float] | None,
    tick: float | None,
    conv: float,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    has_bid_ask = bid is not None and ask is not None
    if mid is None and not has_bid_ask:
        raise ValueError(f"Product {product}: provide mid{product} or both bid{product}/ask{product}.")

    def _col(values: Sequence[float] | None) -> np.ndarray:
        if values is None:
            return np.full(n, np.nan)
        arr = np.asarray(values, dtype="float64") * conv
        if len(arr) != n:
            raise ValueError(f"Product {product}: column size mismatch ({len(arr)} != {n}).")
        return arr

    b, a, m = _col(bid), _col(ask), _col(mid)

    if mid is not None and not has_bid_ask:
        if tick is None:
            raise ValueError(f"Product {product}: tick{product} required when bid/ask missing.")
        # Tick is in quote units, so it is not converted.
        b = m - tick / 2.0
        a = m + tick / 2.0
    elif mid is None:
        m = 0.5 * (b + a)
    return b, a, m


def build_spread_series(
    time: Sequence,
    *,
    bid1: Sequence[float] | None = None,
    ask1: Sequence[float] | None = None,
    mid1: Sequence[float] | None = None,
    tick1: float | None = None,
    conv1: float = 1.0,
    bid2: Sequence[float] | None = None,
    ask2: Sequence[float] | None = None,
    mid2: Sequence[float] | None = None,
    tick2: float | None = None,
    conv2: float = 1.0,
    start: str | pd.Timestamp | None = None,
    end: str | pd.Timestamp | None = None,
) -> SpreadSeries:
    """Assemble a SpreadSeries from per-product quote columns.

    For each product either the mid or both bid and ask must be given. Quotes
    are multiplied by the conversion factor first. Missing bid/ask are rebuilt
    from the mid as mid -/+ tick/2; a missing mid is the bid/ask average.

    Args:
        time: Bar timestamps (anything ``pd.to_datetime`` accepts)
        start: Optional inclusive lower bound on time
        end: Optional exclusive upper bound on time

    Returns:
        SpreadSeries sorted by time
    """
    ts = pd.to_datetime(pd.Series(list(time)))
    n = len(ts)
    b1, a1, m1 = _leg_quotes(n, product=1, bid=bid1, ask=ask1, mid=mid1, tick=tick1, conv=conv1)
    b2, a2, m2 = _leg_quotes(n, product=2, bid=bid2, ask=ask2, mid=mid2, tick=tick2, conv=conv2)

    df = pd.DataFrame(
        {
            "time": ts,
            "bid1": b1,
            "ask1": a1,
            "mid1": m1,
            "bid2": b2,
            "ask2": a2,
            "mid2": m2,
        }
    )
    keep = pd.Series(True, index=df.index)
    if start is not None:
        keep &= df["time"] >= pd.Timestamp(start)
    if end is not None:
        keep &= df["time"] < pd.Timestamp(end)
    df = df.loc[keep].sort_values("time", kind="stable")
    return SpreadSeries.from_frame(df)
