from __future__ import annotations

import numpy as np

from .types import BacktestMetrics, Trade


def compute_trade_sharpe(bar_pnl: np.ndarray) -> float:
    """Mean / sample std of the non-zero per-bar PnL.

    Only bars where a trade closed carry non-zero PnL, so this is a Sharpe of
    trade returns. Zero with fewer than two such bars or zero variance.
    """
    v = np.asarray(bar_pnl, dtype="float64")
    v = v[v != 0.0]
    if v.size < 2:
        return 0.0
    s = float(v.std(ddof=1))
    if not s > 0.0:
        return 0.0
    return float(v.mean() / s)


def compute_backtest_metrics(
    trades: list[Trade],
    equity_path: np.ndarray,
    bar_pnl: np.ndarray,
    *,
    max_drawdown: float,
) -> BacktestMetrics:
    """Summarize a run; ``max_drawdown`` is the running-peak drawdown tracked by the simulator."""
    n = len(trades)
    pnl = np.array([t.pnl for t in trades], dtype="float64")
    wins = int((pnl > 0.0).sum())
    total = float(pnl.sum()) if n else 0.0
    return BacktestMetrics(
        n_trades=n,
        winners=wins,
        hit_ratio=wins / n if n else 0.0,
        sum_pnl=total,
        avg_pnl=total / n if n else 0.0,
        equity_end=float(equity_path[-1]) if len(equity_path) else 0.0,
        max_drawdown=max_drawdown,
        trade_sharpe=compute_trade_sharpe(bar_pnl),
        total_costs=float(sum(t.costs for t in trades)),
    )
