from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from .bands.objective import Leverage
from .calibration.mle import DEFAULT_DT


@dataclass(frozen=True)
class DataConfig:
    csv_path: str | None = None
    time_col: str = "*"
    # Combined header names: bid1, ask1, bid2, ask2
    bid_ask_cols: tuple[str, str, str, str] | None = None
    mid_cols: tuple[str, str] | None = None
    ticks: tuple[float, float] | None = None
    convs: tuple[float, float] = (1.0, 1.0)
    start_date: str | None = None
    end_date: str | None = None

    # In-sample window length; out-of-sample is the remainder
    split_months: int = 6
    is_hours: tuple[float, float] | None = None
    os_excluded_hours: tuple[float, float] | None = None
    remove_outliers: bool = True


@dataclass(frozen=True)
class CalibrationConfig:
    n_replicates: int = 1000
    alpha: float = 0.05
    seed: int = 42
    dt: float = DEFAULT_DT
    n_workers: int = 1


@dataclass(frozen=True)
class BandConfig:
    stop_losses: tuple[float, ...] = (-2.0,)
    # Each entry is a number or "solve"
    leverages: tuple[float | str, ...] = ("solve",)
    # Average round-trip cost in spread units; None means the in-sample bid/ask average
    avg_cost: float | None = None
    max_iter: int = 500
    rel_tol: float = 1e-8
    u_bound_cost_units: str = "raw"
    bootstrap_ci: bool = False
    bootstrap_ci_replicates: int | None = 200
    n_workers: int = 1

    def leverage_choices(self) -> list[Leverage]:
        return [Leverage.parse(v) for v in self.leverages]


@dataclass(frozen=True)
class BacktestSettings:
    symmetric: bool = True


@dataclass(frozen=True)
class PipelineConfig:
    data: DataConfig = field(default_factory=DataConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    bands: BandConfig = field(default_factory=BandConfig)
    backtest: BacktestSettings = field(default_factory=BacktestSettings)


def _tuples(raw: dict) -> dict:
    # YAML gives lists; the dataclasses are frozen and expect tuples.
    return {k: tuple(v) if isinstance(v, list) else v for k, v in raw.items()}


def _section(cls: type, raw: dict | None, name: str):
    raw = raw or {}
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown key(s) in '{name}' section: {', '.join(unknown)}")
    return cls(**_tuples(raw))


def config_from_dict(raw: dict) -> PipelineConfig:
    raw = raw or {}
    unknown = sorted(set(raw) - {"data", "calibration", "bands", "backtest"})
    if unknown:
        raise ValueError(f"Unknown config section(s): {', '.join(unknown)}")
    return PipelineConfig(
        data=_section(DataConfig, raw.get("data"), "data"),
        calibration=_section(CalibrationConfig, raw.get("calibration"), "calibration"),
        bands=_section(BandConfig, raw.get("bands"), "bands"),
        backtest=_section(BacktestSettings, raw.get("backtest"), "backtest"),
    )


def load_config(config_path: str | Path) -> PipelineConfig:
    """Load a pipeline configuration from YAML."""
    with open(config_path) as f:
        return config_from_dict(yaml.safe_load(f))


def validate_config(cfg: PipelineConfig) -> None:
    """Check values that the dataclasses cannot; raises ValueError with a clear message."""
    if cfg.data.bid_ask_cols is not None and len(cfg.data.bid_ask_cols) != 4:
        raise ValueError("data.bid_ask_cols must list bid1, ask1, bid2, ask2")
    if cfg.data.split_months < 1:
        raise ValueError("data.split_months must be >= 1")
    if cfg.calibration.n_replicates < 0:
        raise ValueError("calibration.n_replicates must be >= 0")
    if not 0.0 < cfg.calibration.alpha < 1.0:
        raise ValueError("calibration.alpha must be in (0, 1)")
    if cfg.calibration.dt <= 0:
        raise ValueError("calibration.dt must be > 0")
    if not cfg.bands.stop_losses:
        raise ValueError("bands.stop_losses must not be empty")
    if any(l >= 0 for l in cfg.bands.stop_losses):
        raise ValueError("bands.stop_losses must all be negative")
    if cfg.bands.u_bound_cost_units not in {"raw", "standardized"}:
        raise ValueError("bands.u_bound_cost_units must be 'raw' or 'standardized'")
    cfg.bands.leverage_choices()
