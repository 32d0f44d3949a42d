from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from pairs_ou.calibration import OUParameters, simulate_ou_path
from pairs_ou.data import SpreadSeries


@pytest.fixture
def make_series():
    """Factory: log-spread values -> SpreadSeries with leg 2 fixed at 100.

    ``half_spread`` is a log half-spread on leg 1 only, so each bar costs
    ``2 * half_spread`` to cross.
    """

    def _make(
        x,
        *,
        half_spread: float = 0.0,
        start: str = "2024-01-02 00:00",
        freq: str = "30min",
    ) -> SpreadSeries:
        x = np.asarray(x, dtype="float64")
        mid1 = 100.0 * np.exp(x)
        mid2 = np.full(x.size, 100.0)
        df = pd.DataFrame(
            {
                "time": pd.date_range(start, periods=x.size, freq=freq),
                "bid1": mid1 * np.exp(-half_spread),
                "ask1": mid1 * np.exp(half_spread),
                "mid1": mid1,
                "bid2": mid2,
                "ask2": mid2,
                "mid2": mid2,
                "log_spread": x,
            }
        )
        return SpreadSeries.from_frame(df)

    return _make


@pytest.fixture
def ou_path() -> np.ndarray:
    """Long OU path with k=5, eta=0.1, sigma=0.5 sampled at dt=0.01."""
    params = OUParameters(k=5.0, eta=0.1, sigma=0.5)
    return simulate_ou_path(0.1, params, dt=0.01, n_steps=20_000, rng=np.random.default_rng(42))
