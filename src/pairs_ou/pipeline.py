"""End-to-end research pipeline: calibrate -> optimize bands -> simulate.

In-sample data calibrates the OU model and sizes costs; each configured
(stop-loss, leverage) pair is optimized independently and the usable bands are
simulated on the out-of-sample window.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .backtest import BacktestConfig, BacktestResult, backtest_os, bar_cost
from .bands import Leverage, OptimalBandsResult, band_confidence_intervals, optimal_trading_bands
from .calibration import OUBootstrapResult, ou_bootstrap
from .config import PipelineConfig
from .data import SpreadSeries, load_price_csv, remove_outliers, trim_and_split
from .data.outliers import outlier_summary


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepRow:
    bands: OptimalBandsResult
    backtest: BacktestResult | None

    def to_dict(self) -> dict[str, object]:
        out: dict[str, object] = self.bands.to_dict()
        if self.backtest is not None:
            out.update({f"os_{k}": v for k, v in self.backtest.metrics.to_dict().items()})
        return out


@dataclass(frozen=True)
class PipelineOutput:
    calibration: OUBootstrapResult
    avg_cost: float
    rows: list[SweepRow]
    n_in_sample: int
    n_out_of_sample: int

    def summary_frame(self) -> pd.DataFrame:
        return pd.DataFrame([r.to_dict() for r in self.rows])

    def best(self) -> SweepRow | None:
        """Row with the highest out-of-sample final equity."""
        tested = [r for r in self.rows if r.backtest is not None]
        if not tested:
            return None
        return max(tested, key=lambda r: r.backtest.metrics.equity_end)


def average_round_trip_cost(series: SpreadSeries) -> float:
    """Mean per-bar c_t = ln(ask1/bid1) + ln(ask2/bid2)."""
    if series.empty:
        return 0.0
    df = series.df
    costs = [bar_cost(a1, b1, a2, b2) for a1, b1, a2, b2 in zip(df["ask1"], df["bid1"], df["ask2"], df["bid2"])]
    return float(np.mean(costs))


def prepare_series(cfg: PipelineConfig) -> tuple[SpreadSeries, SpreadSeries]:
    """Load, split and clean the configured CSV into (in-sample, out-of-sample)."""
    d = cfg.data
    if d.csv_path is None or d.bid_ask_cols is None:
        raise ValueError("data.csv_path and data.bid_ask_cols are required")
    raw = load_price_csv(
        d.csv_path,
        time_col=d.time_col,
        bid_ask_cols=d.bid_ask_cols,
        mid_cols=d.mid_cols,
        ticks=d.ticks,
        convs=d.convs,
        start=d.start_date,
        end=d.end_date,
    )
    in_sample, out_sample = trim_and_split(
        raw,
        split_months=d.split_months,
        is_hours=d.is_hours,
        os_excluded_hours=d.os_excluded_hours,
    )
    if d.remove_outliers:
        cleaned = remove_outliers(in_sample)
        LOGGER.info("In-sample outliers: %s", outlier_summary(cleaned).to_dict())
        in_sample = cleaned.clean
    LOGGER.info("In-sample rows: %d, out-of-sample rows: %d", len(in_sample), len(out_sample))
    return in_sample, out_sample


def calibrate(series: SpreadSeries, cfg: PipelineConfig) -> OUBootstrapResult:
    c = cfg.calibration
    x = series.log_spread
    return ou_bootstrap(
        x[np.isfinite(x)],
        n_replicates=c.n_replicates,
        alpha=c.alpha,
        seed=c.seed,
        dt=c.dt,
        n_workers=c.n_workers,
    )


def sweep_bands(
    calibration: OUBootstrapResult,
    *,
    avg_cost: float,
    cfg: PipelineConfig,
) -> list[OptimalBandsResult]:
    """Optimize every (stop-loss, leverage) pair; configurations are independent."""
    b = cfg.bands
    grid = [(l, lev) for l in b.stop_losses for lev in b.leverage_choices()]

    def solve(item: tuple[float, Leverage]) -> OptimalBandsResult:
        l, lev = item
        res = optimal_trading_bands(
            stop_loss=l,
            leverage=lev,
            k_hat=calibration.k,
            sigma_hat=calibration.sigma,
            avg_cost=avg_cost,
            alpha=cfg.calibration.alpha,
            max_iter=b.max_iter,
            rel_tol=b.rel_tol,
            u_bound_cost_units=b.u_bound_cost_units,
        )
        if b.bootstrap_ci and res.usable and calibration.n_replicates > 0:
            res = band_confidence_intervals(
                res,
                calibration,
                avg_cost=avg_cost,
                max_iter=b.max_iter,
                rel_tol=b.rel_tol,
                u_bound_cost_units=b.u_bound_cost_units,
                max_replicates=b.bootstrap_ci_replicates,
            )
        return res

    if b.n_workers > 1 and len(grid) > 1:
        with ThreadPoolExecutor(max_workers=b.n_workers) as pool:
            return list(pool.map(solve, grid))
    return [solve(item) for item in grid]


def backtest_bands(
    series: SpreadSeries,
    calibration: OUBootstrapResult,
    bands: OptimalBandsResult,
    *,
    symmetric: bool,
) -> BacktestResult | None:
    """Simulate one optimized band; None when the band is unusable."""
    if not bands.usable or calibration.params.is_degenerate:
        return None
    config = BacktestConfig(
        k_hat=calibration.k,
        eta_hat=calibration.eta,
        sigma_hat=calibration.sigma,
        d=bands.d_estimated,
        u=bands.u_estimated,
        l=bands.stop_loss,
        leverage=bands.trading_leverage(),
        symmetric=symmetric,
    )
    return backtest_os(series, config)


def run_pipeline(
    in_sample: SpreadSeries,
    out_sample: SpreadSeries,
    cfg: PipelineConfig,
) -> PipelineOutput:
    """Calibrate on in-sample, sweep bands, simulate each usable band out of sample."""
    calibration = calibrate(in_sample, cfg)
    avg_cost = cfg.bands.avg_cost
    if avg_cost is None:
        avg_cost = average_round_trip_cost(in_sample)
    LOGGER.info(
        "OU fit: k=%.6g eta=%.6g sigma=%.6g; average cost %.6g",
        calibration.k,
        calibration.eta,
        calibration.sigma,
        avg_cost,
    )

    rows = []
    for bands in sweep_bands(calibration, avg_cost=avg_cost, cfg=cfg):
        bt = backtest_bands(out_sample, calibration, bands, symmetric=cfg.backtest.symmetric)
        if bt is None:
            LOGGER.info("No usable band for l=%g f=%s", bands.stop_loss, bands.leverage_input)
        rows.append(SweepRow(bands=bands, backtest=bt))

    return PipelineOutput(
        calibration=calibration,
        avg_cost=avg_cost,
        rows=rows,
        n_in_sample=len(in_sample),
        n_out_of_sample=len(out_sample),
    )
