from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime

import numpy as np
import pandas as pd

from ..bands.objective import Leverage
from ..calibration.mle import OUParameters


@dataclass(frozen=True)
class BacktestConfig:
    """OU parameters plus the band rule to trade.

    Bands are in standardized units: enter long at z <= d, take profit at
    z >= u, stop out at z <= l. With ``symmetric`` the short side mirrors the
    rule around zero.
    """

    k_hat: float
    eta_hat: float
    sigma_hat: float
    d: float
    u: float
    l: float
    leverage: Leverage = field(default_factory=Leverage.solve)
    symmetric: bool = True

    def __post_init__(self) -> None:
        if not (self.k_hat > 0 and self.sigma_hat > 0):
            raise ValueError(
                f"BacktestConfig needs k_hat > 0 and sigma_hat > 0 (got {self.k_hat}, {self.sigma_hat})"
            )
        for name in ("eta_hat", "d", "u", "l"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"BacktestConfig.{name} must be finite")

    @property
    def params(self) -> OUParameters:
        return OUParameters(k=self.k_hat, eta=self.eta_hat, sigma=self.sigma_hat)

    @property
    def sigma_stat(self) -> float:
        return self.params.sigma_stat

    @property
    def is_feasible(self) -> bool:
        """Stop-loss strictly below entry, entry strictly below take-profit."""
        return self.l < self.d < self.u


@dataclass(frozen=True)
class Trade:
    """One closed round trip."""

    entry_idx: int
    exit_idx: int
    entry_time: datetime | None
    exit_time: datetime | None
    z_entry: float
    z_exit: float
    x_entry: float
    x_exit: float
    leverage: float  # > 0 long spread, < 0 short spread
    costs: float
    pnl: float  # net of costs
    bars: int
    exit_reason: str = ""

    @property
    def direction(self) -> int:
        return 1 if self.leverage > 0 else -1


@dataclass(frozen=True)
class BacktestMetrics:
    n_trades: int = 0
    winners: int = 0
    hit_ratio: float = 0.0
    sum_pnl: float = 0.0
    avg_pnl: float = 0.0
    equity_end: float = 0.0
    max_drawdown: float = 0.0  # <= 0, on log-equity
    # mean / std of per-bar PnL over bars where a trade closed (not a per-bar Sharpe)
    trade_sharpe: float = 0.0
    total_costs: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class BacktestResult:
    trades: list[Trade] = field(default_factory=list)
    equity_path: np.ndarray = field(default_factory=lambda: np.empty(0))
    equity_time: list = field(default_factory=list)
    metrics: BacktestMetrics = field(default_factory=BacktestMetrics)

    @property
    def equity(self) -> pd.Series:
        return pd.Series(self.equity_path, index=pd.Index(self.equity_time, name="time"), name="equity")

    def trade_history(self) -> pd.DataFrame:
        """Trades as a DataFrame, one row per round trip."""
        if not self.trades:
            return pd.DataFrame()
        return pd.DataFrame([asdict(t) for t in self.trades])
