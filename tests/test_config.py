"""Tests for YAML configuration loading and validation."""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from pairs_ou.config import (
    BandConfig,
    PipelineConfig,
    config_from_dict,
    load_config,
    validate_config,
)


class TestConfigFromDict:
    def test_defaults(self) -> None:
        cfg = config_from_dict({})
        assert cfg == PipelineConfig()
        assert cfg.calibration.n_replicates == 1000
        assert cfg.bands.stop_losses == (-2.0,)

    def test_lists_become_tuples(self) -> None:
        cfg = config_from_dict({"bands": {"stop_losses": [-1.5, -3.0], "leverages": ["solve", 2]}})
        assert cfg.bands.stop_losses == (-1.5, -3.0)
        choices = cfg.bands.leverage_choices()
        assert choices[0].is_solve
        assert choices[1].value == 2.0

    def test_unknown_key(self) -> None:
        with pytest.raises(ValueError, match="Unknown key"):
            config_from_dict({"bands": {"stoploss": [-2.0]}})

    def test_unknown_section(self) -> None:
        with pytest.raises(ValueError, match="Unknown config section"):
            config_from_dict({"plots": {}})


class TestLoadConfig:
    def test_yaml_round(self, tmp_path: Path) -> None:
        path = tmp_path / "cfg.yaml"
        path.write_text(
            "data:\n"
            "  csv_path: quotes.csv\n"
            "  bid_ask_cols: [A_Bid, A_Ask, B_Bid, B_Ask]\n"
            "  split_months: 3\n"
            "calibration:\n"
            "  n_replicates: 50\n"
            "backtest:\n"
            "  symmetric: false\n"
        )
        cfg = load_config(path)
        assert cfg.data.bid_ask_cols == ("A_Bid", "A_Ask", "B_Bid", "B_Ask")
        assert cfg.data.split_months == 3
        assert cfg.calibration.n_replicates == 50
        assert cfg.backtest.symmetric is False
        validate_config(cfg)

    def test_shipped_default_is_valid(self) -> None:
        path = Path(__file__).resolve().parents[1] / "config" / "default.yaml"
        validate_config(load_config(path))


class TestValidateConfig:
    @pytest.mark.parametrize(
        "bands",
        [
            BandConfig(stop_losses=()),
            BandConfig(stop_losses=(-2.0, 0.5)),
            BandConfig(u_bound_cost_units="pips"),
            BandConfig(leverages=("sometimes",)),
        ],
    )
    def test_rejects_bad_bands(self, bands: BandConfig) -> None:
        with pytest.raises(ValueError):
            validate_config(replace(PipelineConfig(), bands=bands))

    def test_rejects_bad_calibration(self) -> None:
        cfg = config_from_dict({"calibration": {"alpha": 1.5}})
        with pytest.raises(ValueError, match="alpha"):
            validate_config(cfg)

    def test_rejects_bad_bid_ask(self) -> None:
        cfg = config_from_dict({"data": {"bid_ask_cols": ["a", "b"]}})
        with pytest.raises(ValueError, match="bid_ask_cols"):
            validate_config(cfg)
