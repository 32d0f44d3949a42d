"""Out-of-sample simulation of band strategies."""

from .metrics import compute_backtest_metrics, compute_trade_sharpe
from .simulator import PositionState, backtest_os, bar_cost
from .types import BacktestConfig, BacktestMetrics, BacktestResult, Trade

__all__ = [
    "BacktestConfig",
    "BacktestMetrics",
    "BacktestResult",
    "Trade",
    "PositionState",
    "backtest_os",
    "bar_cost",
    "compute_backtest_metrics",
    "compute_trade_sharpe",
]
