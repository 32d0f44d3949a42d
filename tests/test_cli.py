"""Smoke tests for the command-line interface and console reports."""
from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
from typer.testing import CliRunner

from pairs_ou.backtest import BacktestConfig, backtest_os
from pairs_ou.bands import Leverage
from pairs_ou.calibration import DEFAULT_DT, OUParameters, simulate_ou_path
from pairs_ou.cli import app
from pairs_ou.reporting import print_backtest_report


runner = CliRunner()


def _write_inputs(tmp_path: Path) -> Path:
    times = pd.date_range("2024-01-01", periods=3000, freq="30min")
    params = OUParameters(k=500.0, eta=0.0, sigma=0.01 * np.sqrt(1000.0))
    x = simulate_ou_path(0.0, params, dt=DEFAULT_DT, n_steps=len(times) - 1, rng=np.random.default_rng(9))
    mid1 = 100.0 * np.exp(x)
    lines = [",LEG1,,LEG2,", "Timestamp,Bid,Ask,Bid,Ask"]
    for t, m in zip(times, mid1):
        lines.append(f"{t:%Y-%m-%d %H:%M},{m - 0.01:.6f},{m + 0.01:.6f},99.99,100.01")
    csv_path = tmp_path / "quotes.csv"
    csv_path.write_text("\n".join(lines) + "\n")

    cfg_path = tmp_path / "cfg.yaml"
    cfg_path.write_text(
        "data:\n"
        f"  csv_path: {csv_path}\n"
        "  bid_ask_cols: [LEG1_Bid, LEG1_Ask, LEG2_Bid, LEG2_Ask]\n"
        "  split_months: 1\n"
        "calibration:\n"
        "  n_replicates: 5\n"
        "bands:\n"
        "  stop_losses: [-2.0]\n"
        "  leverages: [1.0]\n"
    )
    return cfg_path


class TestCLI:
    def test_bands(self) -> None:
        result = runner.invoke(
            app,
            ["bands", "--k", "100", "--sigma", "0.2828", "--cost", "0.002", "--stop-loss=-2.0", "--leverage", "1"],
        )
        assert result.exit_code == 0, result.output
        assert "Optimal bands" in result.output

    def test_bands_rejects_bad_leverage(self) -> None:
        result = runner.invoke(app, ["bands", "--k", "100", "--sigma", "0.3", "--cost", "0.002", "--leverage", "lots"])
        assert result.exit_code != 0

    def test_run_writes_outputs(self, tmp_path: Path) -> None:
        cfg_path = _write_inputs(tmp_path)
        out_dir = tmp_path / "out"
        result = runner.invoke(app, ["run", "--config", str(cfg_path), "--out", str(out_dir)])
        assert result.exit_code == 0, result.output
        assert "Ornstein-Uhlenbeck Parameter Estimates" in result.output
        summary = pd.read_csv(out_dir / "sweep_summary.csv")
        assert len(summary) == 1

    def test_calibrate(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["calibrate", "--config", str(_write_inputs(tmp_path))])
        assert result.exit_code == 0, result.output
        assert "Bootstrap replicates: 5" in result.output

    def test_backtest(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app,
            ["backtest", "--config", str(_write_inputs(tmp_path)), "--d=-1.0", "--u", "1.0", "--l=-2.5"],
        )
        assert result.exit_code == 0, result.output
        assert "Performance Report" in result.output

    def test_missing_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["run", "--config", str(tmp_path / "missing.yaml")])
        assert result.exit_code != 0

    def test_invalid_config(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("bands:\n  stop_losses: [1.0]\n")
        result = runner.invoke(app, ["run", "--config", str(path)])
        assert result.exit_code != 0


class TestReports:
    def test_backtest_report_splits_directions(self, make_series, capsys) -> None:
        config = BacktestConfig(
            k_hat=0.5, eta_hat=0.0, sigma_hat=1.0, d=-1.0, u=1.0, l=-2.0,
            leverage=Leverage.fixed(1.0), symmetric=True,
        )
        result = backtest_os(make_series([0.0, -1.2, 1.1, 1.3, 0.5, -1.1, 0.0]), config)
        print_backtest_report(result, title="mixed")
        out = capsys.readouterr().out
        assert "Performance Report: mixed" in out
        assert "Total Trades: 2 (long 1, short 1)" in out
