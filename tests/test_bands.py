"""Tests for the long-run return functional and the band optimizer."""
from __future__ import annotations

import math

import numpy as np
import pytest
from scipy.special import erfi

from pairs_ou.bands import (
    INFEASIBLE,
    Leverage,
    LongReturnObjective,
    band_confidence_intervals,
    band_search_bounds,
    is_feasible_band,
    long_return,
    optimal_trading_bands,
    tail_integral,
)
from pairs_ou.bands.objective import INFEASIBLE_PENALTY
from pairs_ou.calibration import OUBootstrapResult


# sigma_stat = 0.02, c = avg_cost / sigma_stat = 0.1
K_HAT = 100.0
SIGMA_HAT = 0.02 * math.sqrt(2.0 * K_HAT)
AVG_COST = 0.002


class TestTailIntegral:
    def test_zero_width(self) -> None:
        assert tail_integral(0.7, 0.7) == 0.0

    def test_matches_erfi(self) -> None:
        # sqrt(2/pi) * int_y^x exp(t^2/2) dt = erfi(x/sqrt2) - erfi(y/sqrt2)
        expected = erfi(1.3 / math.sqrt(2.0)) - erfi(-0.4 / math.sqrt(2.0))
        assert tail_integral(1.3, -0.4) == pytest.approx(expected, rel=1e-7)

    def test_antisymmetric(self) -> None:
        assert tail_integral(-1.0, 0.5) == pytest.approx(-tail_integral(0.5, -1.0))

    def test_additive(self) -> None:
        whole = tail_integral(1.0, -2.0)
        parts = tail_integral(1.0, -1.0) + tail_integral(-1.0, -2.0)
        assert whole == pytest.approx(parts, rel=1e-8)


class TestLeverage:
    @pytest.mark.parametrize("raw", [None, "solve", "Optimal", "nan", float("nan")])
    def test_parse_solve(self, raw) -> None:
        assert Leverage.parse(raw).is_solve

    @pytest.mark.parametrize("raw, expected", [(1, 1.0), ("2.5", 2.5), (0.75, 0.75)])
    def test_parse_fixed(self, raw, expected: float) -> None:
        lev = Leverage.parse(raw)
        assert not lev.is_solve
        assert lev.value == expected

    def test_rejects_infinite(self) -> None:
        with pytest.raises(ValueError):
            Leverage.fixed(float("inf"))

    def test_for_trading(self) -> None:
        assert Leverage.solve().for_trading() == 1.0
        assert Leverage.fixed(3.0).for_trading() == 3.0
        assert str(Leverage.solve()) == "solve"
        assert str(Leverage.fixed(2.0)) == "2"


class TestLongReturn:
    @pytest.mark.parametrize(
        "d, u, c, l",
        [
            (0.5, 0.5, 0.0, -2.0),  # u == d
            (0.5, 0.2, 0.0, -2.0),  # u < d
            (-2.0, 1.0, 0.1, -2.0),  # d == l
            (-2.5, 1.0, 0.1, -2.0),  # d < l
            (-0.5, 0.5, 1.0, -2.0),  # u - d == c
            (-0.5, 0.5, 1.5, -2.0),  # u - d < c
        ],
    )
    def test_gate_returns_sentinel(self, d: float, u: float, c: float, l: float) -> None:
        assert not is_feasible_band(d, u, c, l)
        for lev in (Leverage.fixed(1.0), Leverage.solve()):
            res = long_return(d, u, c, l, 0.5, lev)
            assert res.mu == -math.inf
            assert math.isnan(res.leverage)
            assert not res.feasible
        assert INFEASIBLE.mu == -math.inf

    def test_unit_leverage_closed_form(self) -> None:
        d, u, c, l, s = -1.0, 1.0, 0.1, -2.0, 0.5
        res = long_return(d, u, c, l, s, Leverage.fixed(1.0))
        # ln(1 + expm1(a)) == a when f == 1
        expected = (2.0 / math.pi) * (
            s * (u - d - c) / tail_integral(u, d) + s * (l - d - c) / tail_integral(d, l)
        )
        assert res.feasible
        assert res.leverage == 1.0
        assert res.mu == pytest.approx(expected, rel=1e-10)

    def test_solved_leverage_is_optimal(self) -> None:
        d, u, c, l, s = -1.0, 1.0, 0.1, -2.0, 0.5
        best = long_return(d, u, c, l, s, Leverage.solve())
        assert best.feasible
        assert best.leverage > 0
        for f in (0.9 * best.leverage, 1.1 * best.leverage, 1.0):
            assert long_return(d, u, c, l, s, Leverage.fixed(f)).mu <= best.mu + 1e-12

    def test_non_positive_log_argument(self) -> None:
        res = long_return(-1.0, 1.0, 0.1, -2.0, 0.5, Leverage.fixed(10.0))
        assert res.mu == -math.inf
        assert res.leverage == 10.0

    def test_objective_wraps_long_return(self) -> None:
        obj = LongReturnObjective(c=0.1, l=-2.0, sigma=0.5, leverage=Leverage.fixed(1.0))
        mu = obj.evaluate(-1.0, 1.0)
        assert obj(np.array([-1.0, 1.0])) == pytest.approx(-mu)
        assert obj(np.array([0.5, 0.2])) == INFEASIBLE_PENALTY


class TestBandSearchBounds:
    def test_raw_cost_units(self) -> None:
        bounds = band_search_bounds(stop_loss=-2.0, avg_cost=0.002, sigma_stat=0.02)
        assert bounds[0] == pytest.approx((-1.99, 0.6))
        assert bounds[1] == pytest.approx((-1.998, 3.0))

    def test_standardized_cost_units(self) -> None:
        bounds = band_search_bounds(
            stop_loss=-2.0, avg_cost=0.002, sigma_stat=0.02, u_bound_cost_units="standardized"
        )
        assert bounds[1] == pytest.approx((-1.9, 3.0))

    def test_unknown_units(self) -> None:
        with pytest.raises(ValueError):
            band_search_bounds(stop_loss=-2.0, avg_cost=0.0, sigma_stat=1.0, u_bound_cost_units="pips")


class TestOptimalTradingBands:
    def test_fixed_leverage(self) -> None:
        res = optimal_trading_bands(
            stop_loss=-2.0,
            leverage=Leverage.fixed(1.0),
            k_hat=K_HAT,
            sigma_hat=SIGMA_HAT,
            avg_cost=AVG_COST,
        )
        assert res.converged and res.usable
        assert res.d_estimated <= 0.0
        assert res.stop_loss < res.d_estimated < res.u_estimated
        assert math.isnan(res.f_estimated)
        assert np.isnan(res.d_ci[0])  # not computed without the outer bootstrap

        sigma_stat = SIGMA_HAT / math.sqrt(2.0 * K_HAT)
        obj = LongReturnObjective(c=AVG_COST / sigma_stat, l=-2.0, sigma=sigma_stat, leverage=Leverage.fixed(1.0))
        assert res.mu_estimated == pytest.approx(obj.evaluate(res.d_estimated, res.u_estimated) * K_HAT)
        # Never worse than the starting point
        assert res.mu_estimated >= obj.evaluate(-0.5, 0.5) * K_HAT - 1e-12

    def test_solved_leverage(self) -> None:
        res = optimal_trading_bands(
            stop_loss=-2.0,
            leverage=Leverage.solve(),
            k_hat=K_HAT,
            sigma_hat=SIGMA_HAT,
            avg_cost=AVG_COST,
        )
        assert res.usable
        assert math.isfinite(res.f_estimated)
        assert res.trading_leverage() == Leverage.fixed(res.f_estimated)

    @pytest.mark.parametrize("k, sigma", [(0.0, 0.3), (5.0, 0.0), (-1.0, 0.3)])
    def test_degenerate_parameters(self, k: float, sigma: float) -> None:
        res = optimal_trading_bands(
            stop_loss=-2.0, leverage=Leverage.fixed(1.0), k_hat=k, sigma_hat=sigma, avg_cost=0.001
        )
        assert not res.usable
        assert math.isnan(res.d_estimated) and math.isnan(res.u_estimated)
        assert math.isnan(res.mu_estimated)

    def test_empty_search_box(self) -> None:
        res = optimal_trading_bands(
            stop_loss=-2.0, leverage=Leverage.fixed(1.0), k_hat=K_HAT, sigma_hat=SIGMA_HAT, avg_cost=10.0
        )
        assert not res.usable
        assert res.message == "empty search box"

    def test_iteration_cap(self) -> None:
        res = optimal_trading_bands(
            stop_loss=-2.0,
            leverage=Leverage.fixed(1.0),
            k_hat=K_HAT,
            sigma_hat=SIGMA_HAT,
            avg_cost=AVG_COST,
            max_iter=1,
        )
        assert not res.converged and not res.usable
        assert "iteration" in res.message.lower()

    def test_to_dict(self) -> None:
        res = optimal_trading_bands(
            stop_loss=-3.0, leverage=Leverage.fixed(1.0), k_hat=0.0, sigma_hat=0.0, avg_cost=0.0
        )
        row = res.to_dict()
        assert row["stop_loss"] == -3.0
        assert row["leverage_input"] == "1"
        assert row["converged"] is False


class TestBandConfidenceIntervals:
    def _bootstrap(self) -> OUBootstrapResult:
        ks = K_HAT * np.array([0.9, 0.95, 1.0, 1.05, 1.1, 0.0])
        sigmas = SIGMA_HAT * np.array([0.95, 1.0, 1.05, 0.98, 1.02, 1.0])
        return OUBootstrapResult(
            k=K_HAT,
            eta=0.0,
            sigma=SIGMA_HAT,
            boot_k=ks,
            boot_eta=np.zeros(ks.size),
            boot_sigma=sigmas,
        )

    def test_populates_intervals(self) -> None:
        base = optimal_trading_bands(
            stop_loss=-2.0, leverage=Leverage.fixed(1.0), k_hat=K_HAT, sigma_hat=SIGMA_HAT, avg_cost=AVG_COST
        )
        res = band_confidence_intervals(base, self._bootstrap(), avg_cost=AVG_COST)
        for lo, hi in (res.d_ci, res.u_ci, res.mu_ci):
            assert math.isfinite(lo) and math.isfinite(hi)
            assert lo <= hi
        # Fixed leverage has no leverage interval
        assert math.isnan(res.f_ci[0])
        assert res.d_estimated == base.d_estimated

    def test_threaded_matches_serial(self) -> None:
        base = optimal_trading_bands(
            stop_loss=-2.0, leverage=Leverage.solve(), k_hat=K_HAT, sigma_hat=SIGMA_HAT, avg_cost=AVG_COST
        )
        boot = self._bootstrap()
        serial = band_confidence_intervals(base, boot, avg_cost=AVG_COST)
        threaded = band_confidence_intervals(base, boot, avg_cost=AVG_COST, n_workers=3)
        assert serial.f_ci == threaded.f_ci
        assert serial.mu_ci == threaded.mu_ci
