"""Out-of-sample band strategy simulation.

Replays one position at a time over the spread, bar by bar:

- Flat -> Long when z <= d; Flat -> Short when z >= -d (symmetric only)
- Long -> Flat at take-profit z >= u or stop-loss z <= l
- Short -> Flat at take-profit z <= -u or stop-loss z >= -l

Costs are the quoted bid/ask of both legs, c_t = ln(ask1/bid1) + ln(ask2/bid2),
half charged on entry and half on exit per unit of |leverage|. A position still
open at the last bar is not closed.
"""

from __future__ import annotations

import logging
import math
from enum import Enum

import numpy as np

from ..data.series import SpreadSeries
from .metrics import compute_backtest_metrics
from .types import BacktestConfig, BacktestResult, Trade


LOGGER = logging.getLogger(__name__)


class PositionState(Enum):
    FLAT = 0
    LONG = 1
    SHORT = -1


def safe_log_ratio(a: float, b: float) -> float:
    return math.log(a / b) if (a > 0.0 and b > 0.0) else 0.0


def bar_cost(ask1: float, bid1: float, ask2: float, bid2: float) -> float:
    """Round-trip log cost of crossing both quoted spreads at this bar."""
    return safe_log_ratio(ask1, bid1) + safe_log_ratio(ask2, bid2)


def backtest_os(series: SpreadSeries, config: BacktestConfig) -> BacktestResult:
    """Simulate the band rule on an out-of-sample spread series.

    Args:
        series: Out-of-sample quotes and log-spread, time-ordered
        config: OU parameters, bands and leverage

    Returns:
        BacktestResult with trades, per-bar equity path and metrics. Empty for
        fewer than two bars or an infeasible band.
    """
    if len(series) < 2:
        return BacktestResult()
    if not config.is_feasible:
        LOGGER.warning(
            "Infeasible bands l=%g d=%g u=%g (need l < d < u); not simulating.",
            config.l,
            config.d,
            config.u,
        )
        return BacktestResult()

    params = config.params
    f_base = config.leverage.for_trading()
    n = len(series)

    trades: list[Trade] = []
    equity_path = np.zeros(n, dtype="float64")
    bar_pnl = np.zeros(n, dtype="float64")
    equity_time = []
    equity = 0.0
    peak = 0.0
    max_dd = 0.0

    state = PositionState.FLAT
    i_entry = 0
    t_entry = None
    x_entry = 0.0
    z_entry = 0.0
    f_used = 0.0
    costs_acc = 0.0

    for i, row in enumerate(series.df.itertuples(index=False)):
        x = float(row.log_spread)
        z = params.zscore(x)
        half_cost = 0.5 * bar_cost(row.ask1, row.bid1, row.ask2, row.bid2)
        pnl_now = 0.0

        if state is PositionState.FLAT:
            if z <= config.d:
                state = PositionState.LONG
                f_used = f_base
            elif config.symmetric and z >= -config.d:
                state = PositionState.SHORT
                f_used = -f_base
            if state is not PositionState.FLAT:
                i_entry, t_entry, x_entry, z_entry = i, row.time, x, z
                costs_acc = abs(f_used) * half_cost
        else:
            if state is PositionState.LONG:
                take_profit = z >= config.u
                stop_loss = z <= config.l
                gross = (x - x_entry) * f_used
            else:
                take_profit = z <= -config.u
                stop_loss = z >= -config.l
                gross = (x_entry - x) * (-f_used)

            if take_profit or stop_loss:
                costs_acc += abs(f_used) * half_cost
                trade = Trade(
                    entry_idx=i_entry,
                    exit_idx=i,
                    entry_time=t_entry,
                    exit_time=row.time,
                    z_entry=z_entry,
                    z_exit=z,
                    x_entry=x_entry,
                    x_exit=x,
                    leverage=f_used,
                    costs=costs_acc,
                    pnl=gross - costs_acc,
                    bars=i - i_entry,
                    exit_reason="take_profit" if take_profit else "stop_loss",
                )
                trades.append(trade)
                pnl_now = trade.pnl
                state = PositionState.FLAT
                f_used = 0.0
                costs_acc = 0.0

        equity += pnl_now
        bar_pnl[i] = pnl_now
        equity_path[i] = equity
        equity_time.append(row.time)
        peak = max(peak, equity)
        max_dd = min(max_dd, equity - peak)

    if state is not PositionState.FLAT:
        LOGGER.debug("Position opened at bar %d still open at end of series.", i_entry)

    metrics = compute_backtest_metrics(trades, equity_path, bar_pnl, max_drawdown=max_dd)
    return BacktestResult(
        trades=trades,
        equity_path=equity_path,
        equity_time=equity_time,
        metrics=metrics,
    )
