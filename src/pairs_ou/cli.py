"""Command-line interface for the OU pairs research pipeline.

Usage:
    pairs-ou run --config config/default.yaml
    pairs-ou calibrate --config config/default.yaml
    pairs-ou bands --k 800 --sigma 0.9 --cost 0.001 --stop-loss -2
    pairs-ou backtest --config config/default.yaml --d -1 --u 1 --l -2
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .backtest import BacktestConfig, backtest_os
from .bands import Leverage, optimal_trading_bands
from .config import PipelineConfig, load_config, validate_config
from .pipeline import calibrate, prepare_series, run_pipeline
from .reporting import print_backtest_report, print_bands_report, print_ou_estimates

app = typer.Typer(
    name="pairs-ou",
    help="OU calibration, optimal bands and out-of-sample backtests for a spread",
    add_completion=False,
)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(levelname)s %(message)s",
    )


def _load(config: str) -> PipelineConfig:
    try:
        cfg = load_config(config)
        validate_config(cfg)
    except FileNotFoundError:
        raise typer.BadParameter(f"Config file not found: {config}") from None
    except (TypeError, ValueError) as exc:
        raise typer.BadParameter(f"Invalid config {config}: {exc}") from exc
    if cfg.data.csv_path is None or cfg.data.bid_ask_cols is None:
        raise typer.BadParameter("Config 'data' section needs csv_path and bid_ask_cols")
    return cfg


@app.command()
def run(
    config: str = typer.Option(
        "config/default.yaml",
        "--config", "-c",
        help="Path to configuration file",
    ),
    out: Optional[str] = typer.Option(
        None,
        "--out", "-o",
        help="Directory for sweep_summary.csv and best_trades.csv",
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
):
    """Run calibration, the band sweep and out-of-sample backtests."""
    _setup_logging(log_level)
    cfg = _load(config)

    in_sample, out_sample = prepare_series(cfg)
    output = run_pipeline(in_sample, out_sample, cfg)

    typer.echo(f"In-sample bars: {output.n_in_sample}, out-of-sample bars: {output.n_out_of_sample}")
    typer.echo(f"Average round-trip cost: {output.avg_cost:.6g}\n")
    print_ou_estimates(output.calibration)
    for row in output.rows:
        print_bands_report(row.bands)
        if row.backtest is not None:
            title = f"l={row.bands.stop_loss:g}, f={row.bands.leverage_input}"
            print_backtest_report(row.backtest, title=title)

    if out:
        out_dir = Path(out)
        out_dir.mkdir(parents=True, exist_ok=True)
        output.summary_frame().to_csv(out_dir / "sweep_summary.csv", index=False)
        best = output.best()
        if best is not None and best.backtest is not None:
            best.backtest.trade_history().to_csv(out_dir / "best_trades.csv", index=False)
        typer.echo(f"\nWrote results to {out_dir}")


@app.command(name="calibrate")
def calibrate_cmd(
    config: str = typer.Option("config/default.yaml", "--config", "-c", help="Path to configuration file"),
    log_level: str = typer.Option("INFO", "--log-level"),
):
    """Estimate OU parameters with bootstrap CIs on the in-sample window."""
    _setup_logging(log_level)
    cfg = _load(config)
    in_sample, _ = prepare_series(cfg)
    print_ou_estimates(calibrate(in_sample, cfg))


@app.command()
def bands(
    k: float = typer.Option(..., "--k", help="OU speed"),
    sigma: float = typer.Option(..., "--sigma", help="OU volatility"),
    cost: float = typer.Option(..., "--cost", help="Average round-trip cost (spread units)"),
    stop_loss: float = typer.Option(-2.0, "--stop-loss", "-l", help="Stop-loss (standardized, negative)"),
    leverage: str = typer.Option("solve", "--leverage", "-f", help="Fixed leverage or 'solve'"),
    max_iter: int = typer.Option(500, "--max-iter"),
    u_bound_cost_units: str = typer.Option("raw", "--u-bound-cost-units", help="raw or standardized"),
    log_level: str = typer.Option("INFO", "--log-level"),
):
    """Solve for optimal bands given OU parameters."""
    _setup_logging(log_level)
    try:
        lev = Leverage.parse(leverage)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    result = optimal_trading_bands(
        stop_loss=stop_loss,
        leverage=lev,
        k_hat=k,
        sigma_hat=sigma,
        avg_cost=cost,
        max_iter=max_iter,
        u_bound_cost_units=u_bound_cost_units,
    )
    print_bands_report(result)


@app.command()
def backtest(
    d: float = typer.Option(..., "--d", help="Entry band (standardized, negative)"),
    u: float = typer.Option(..., "--u", help="Take-profit band (standardized)"),
    l: float = typer.Option(..., "--l", help="Stop-loss band (standardized)"),
    config: str = typer.Option("config/default.yaml", "--config", "-c", help="Path to configuration file"),
    leverage: str = typer.Option("1", "--leverage", "-f", help="Fixed leverage ('solve' trades at 1)"),
    symmetric: bool = typer.Option(True, "--symmetric/--long-only"),
    log_level: str = typer.Option("INFO", "--log-level"),
):
    """Calibrate in-sample and simulate the given bands out of sample."""
    _setup_logging(log_level)
    try:
        lev = Leverage.parse(leverage)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    cfg = _load(config)
    in_sample, out_sample = prepare_series(cfg)
    fit = calibrate(in_sample, cfg)
    if fit.params.is_degenerate:
        raise typer.BadParameter("In-sample window too short to calibrate")
    bt_config = BacktestConfig(
        k_hat=fit.k,
        eta_hat=fit.eta,
        sigma_hat=fit.sigma,
        d=d,
        u=u,
        l=l,
        leverage=lev,
        symmetric=symmetric,
    )
    print_ou_estimates(fit)
    print_backtest_report(backtest_os(out_sample, bt_config), title=f"d={d:g}, u={u:g}, l={l:g}")


def main() -> None:
    """Entrypoint for the console script."""
    app()


if __name__ == "__main__":
    main()
