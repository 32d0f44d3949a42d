"""Console reports for calibration, band and backtest results."""

from __future__ import annotations

import math

from .backtest import BacktestResult
from .bands import OptimalBandsResult
from .calibration import OUBootstrapResult


def _ci(bounds: tuple[float, float]) -> str:
    lo, hi = bounds
    if math.isnan(lo) and math.isnan(hi):
        return "not computed"
    return f"[{lo:.6g}, {hi:.6g}]"


def print_ou_estimates(result: OUBootstrapResult) -> None:
    level = 100.0 * (1.0 - result.alpha)
    print("Ornstein-Uhlenbeck Parameter Estimates")
    print("-" * 45)
    print(f"k     : Estimate = {result.k:.6g}, {level:.0f}% CI = {_ci(result.ci_k)}")
    print(f"eta   : Estimate = {result.eta:.6g}, {level:.0f}% CI = {_ci(result.ci_eta)}")
    print(f"sigma : Estimate = {result.sigma:.6g}, {level:.0f}% CI = {_ci(result.ci_sigma)}")
    print(f"Bootstrap replicates: {result.n_replicates}")


def print_bands_report(result: OptimalBandsResult) -> None:
    print(f"\n--- Optimal bands (l={result.stop_loss:g}, f={result.leverage_input}) ---")
    if not result.usable:
        print(f"No usable band: {result.message or 'optimization failed'}")
        return
    print(f"Entry d:        {result.d_estimated:.4f}  CI {_ci(result.d_ci)}")
    print(f"Take-profit u:  {result.u_estimated:.4f}  CI {_ci(result.u_ci)}")
    print(f"Expected mu:    {result.mu_estimated:.6g}  CI {_ci(result.mu_ci)}")
    if result.leverage_input.is_solve:
        print(f"Optimal f:      {result.f_estimated:.4f}  CI {_ci(result.f_ci)}")


def print_backtest_report(result: BacktestResult, title: str = "Backtest") -> None:
    m = result.metrics
    print(f"\n{'='*60}")
    print(f"Performance Report: {title}")
    print(f"{'='*60}")

    print("\n--- Trade Statistics ---")
    longs = sum(1 for t in result.trades if t.direction > 0)
    print(f"Total Trades: {m.n_trades} (long {longs}, short {m.n_trades - longs})")
    print(f"Winners: {m.winners}")
    print(f"Hit Ratio: {m.hit_ratio * 100:.1f}%")
    print(f"Average log-PnL: {m.avg_pnl:.6f}")
    print(f"Total log-PnL: {m.sum_pnl:.6f}")
    print(f"Total Costs: {m.total_costs:.6f}")

    print("\n--- Risk Statistics ---")
    print(f"Final Equity (log): {m.equity_end:.6f}")
    print(f"Max Drawdown (log): {m.max_drawdown:.6f}")
    print(f"Trade Sharpe: {m.trade_sharpe:.3f}")
