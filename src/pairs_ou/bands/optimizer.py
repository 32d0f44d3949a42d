"""Optimal entry / take-profit bands for a calibrated OU spread.

The search maximizes the long-run return functional over (d, u) with SLSQP
inside a box, for a given stop-loss and leverage policy. Results are in
standardized units except ``mu_estimated``, which is per unit of real time
(the OU-time return divided by theta = 1/k).
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Literal

import numpy as np
from scipy.optimize import minimize

from ..calibration.bootstrap import OUBootstrapResult, percentile_interval
from .objective import Leverage, LongReturnObjective


LOGGER = logging.getLogger(__name__)

CostUnits = Literal["raw", "standardized"]

D_MIN_OFFSET = 0.01
D_MAX = 0.6
U_MAX = 3.0
INITIAL_GUESS = (-0.5, 0.5)
# Keeps SLSQP strictly inside the feasibility gate.
GATE_MARGIN = 1e-9

_NAN_CI = (math.nan, math.nan)


@dataclass(frozen=True)
class OptimalBandsResult:
    """Optimal bands; NaN estimates mean no usable band for this configuration.

    ``d_estimated`` follows the entry convention (negative). The CI fields are
    NaN ("not computed") unless filled by ``band_confidence_intervals``.
    """

    stop_loss: float
    leverage_input: Leverage
    d_estimated: float = math.nan
    u_estimated: float = math.nan
    mu_estimated: float = math.nan
    f_estimated: float = math.nan
    d_ci: tuple[float, float] = _NAN_CI
    u_ci: tuple[float, float] = _NAN_CI
    mu_ci: tuple[float, float] = _NAN_CI
    f_ci: tuple[float, float] = _NAN_CI
    alpha: float = 0.05
    converged: bool = False
    message: str = ""

    @property
    def usable(self) -> bool:
        return self.converged and math.isfinite(self.mu_estimated)

    def trading_leverage(self) -> Leverage:
        """Leverage to simulate with: the input if fixed, else the solved optimum."""
        if not self.leverage_input.is_solve:
            return self.leverage_input
        if math.isfinite(self.f_estimated):
            return Leverage.fixed(self.f_estimated)
        return self.leverage_input

    def to_dict(self) -> dict[str, object]:
        return {
            "stop_loss": self.stop_loss,
            "leverage_input": str(self.leverage_input),
            "d_estimated": self.d_estimated,
            "u_estimated": self.u_estimated,
            "mu_estimated": self.mu_estimated,
            "f_estimated": self.f_estimated,
            "d_ci": self.d_ci,
            "u_ci": self.u_ci,
            "mu_ci": self.mu_ci,
            "f_ci": self.f_ci,
            "converged": self.converged,
        }


def band_search_bounds(
    *,
    stop_loss: float,
    avg_cost: float,
    sigma_stat: float,
    u_bound_cost_units: CostUnits = "raw",
) -> list[tuple[float, float]]:
    """Box for (d, u).

    The u lower bound adds the *raw* average cost to the standardized stop-loss
    by default, mixing units; ``"standardized"`` uses C / sigma_stat instead.
    """
    if u_bound_cost_units == "raw":
        cost = avg_cost
    elif u_bound_cost_units == "standardized":
        cost = avg_cost / sigma_stat
    else:
        raise ValueError(f"Unknown cost units: {u_bound_cost_units}")
    return [(stop_loss + D_MIN_OFFSET, D_MAX), (stop_loss + cost, U_MAX)]


def optimal_trading_bands(
    *,
    stop_loss: float,
    leverage: Leverage,
    k_hat: float,
    sigma_hat: float,
    avg_cost: float,
    alpha: float = 0.05,
    max_iter: int = 500,
    rel_tol: float = 1e-8,
    u_bound_cost_units: CostUnits = "raw",
) -> OptimalBandsResult:
    """Solve for the bands maximizing long-run expected return.

    Args:
        stop_loss: Stop-loss level l (standardized, negative)
        leverage: Fixed leverage or ``Leverage.solve()``
        k_hat: OU speed
        sigma_hat: OU volatility
        avg_cost: Average round-trip cost C in spread units
        alpha: Confidence level carried for CI construction
        max_iter: Cap on SLSQP iterations (each iteration may evaluate the
            objective several times; see ``res.nfev`` in the DEBUG log)
        rel_tol: Relative tolerance of the solver
        u_bound_cost_units: Units of the cost term in the u lower bound

    Returns:
        OptimalBandsResult; all estimates NaN when the solve fails
    """
    result = OptimalBandsResult(stop_loss=stop_loss, leverage_input=leverage, alpha=alpha)

    if not (k_hat > 0 and sigma_hat > 0):
        LOGGER.warning("Degenerate OU parameters (k=%g, sigma=%g); no bands.", k_hat, sigma_hat)
        return replace(result, message="degenerate OU parameters")

    theta = 1.0 / k_hat
    sigma_stat = sigma_hat / math.sqrt(2.0 * k_hat)
    c = avg_cost / sigma_stat

    objective = LongReturnObjective(c=c, l=stop_loss, sigma=sigma_stat, leverage=leverage)
    bounds = band_search_bounds(
        stop_loss=stop_loss,
        avg_cost=avg_cost,
        sigma_stat=sigma_stat,
        u_bound_cost_units=u_bound_cost_units,
    )
    if any(lo > hi for lo, hi in bounds):
        LOGGER.warning("Empty band search box %s for l=%g; no bands.", bounds, stop_loss)
        return replace(result, message="empty search box")

    # Feasibility gate as linear constraints: u - d - c > 0, d - l > 0.
    constraints = [
        {"type": "ineq", "fun": lambda x: x[1] - x[0] - c - GATE_MARGIN},
        {"type": "ineq", "fun": lambda x: x[0] - stop_loss - GATE_MARGIN},
    ]

    with np.errstate(over="ignore", invalid="ignore"):
        res = minimize(
            objective,
            x0=np.array(INITIAL_GUESS, dtype="float64"),
            method="SLSQP",
            bounds=bounds,
            constraints=constraints,
            options={"ftol": rel_tol, "maxiter": max_iter},
        )
    LOGGER.debug("SLSQP l=%g: %d iterations, %d evaluations", stop_loss, res.nit, res.nfev)

    if not res.success:
        LOGGER.warning("Optimization failed (l=%g, f=%s): %s", stop_loss, leverage, res.message)
        return replace(result, message=str(res.message))

    d = abs(float(res.x[0]))
    u = float(res.x[1])
    mu, f_star = objective.result(-d, u)

    return replace(
        result,
        d_estimated=-d,
        u_estimated=u,
        mu_estimated=mu / theta,
        f_estimated=f_star if leverage.is_solve else math.nan,
        converged=True,
        message=str(res.message),
    )


def band_confidence_intervals(
    result: OptimalBandsResult,
    bootstrap: OUBootstrapResult,
    *,
    avg_cost: float,
    alpha: float | None = None,
    max_iter: int = 500,
    rel_tol: float = 1e-8,
    u_bound_cost_units: CostUnits = "raw",
    max_replicates: int | None = None,
    n_workers: int = 1,
) -> OptimalBandsResult:
    """Outer bootstrap: re-solve the bands for each bootstrap (k_m, sigma_m).

    Replicates that fail to converge are dropped before taking percentiles.
    Returns a copy of ``result`` with the four CI fields populated.
    """
    alpha = result.alpha if alpha is None else alpha
    n = bootstrap.n_replicates if max_replicates is None else min(max_replicates, bootstrap.n_replicates)

    def solve(i: int) -> OptimalBandsResult:
        return optimal_trading_bands(
            stop_loss=result.stop_loss,
            leverage=result.leverage_input,
            k_hat=float(bootstrap.boot_k[i]),
            sigma_hat=float(bootstrap.boot_sigma[i]),
            avg_cost=avg_cost,
            alpha=alpha,
            max_iter=max_iter,
            rel_tol=rel_tol,
            u_bound_cost_units=u_bound_cost_units,
        )

    if n_workers > 1 and n > 1:
        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            solved = list(pool.map(solve, range(n)))
    else:
        solved = [solve(i) for i in range(n)]

    ok = [r for r in solved if r.usable]
    LOGGER.info("Band bootstrap: %d/%d replicates converged.", len(ok), n)

    def ci(values: list[float]) -> tuple[float, float]:
        arr = np.asarray([v for v in values if math.isfinite(v)], dtype="float64")
        return percentile_interval(arr, alpha)

    return replace(
        result,
        d_ci=ci([r.d_estimated for r in ok]),
        u_ci=ci([r.u_estimated for r in ok]),
        mu_ci=ci([r.mu_estimated for r in ok]),
        f_ci=ci([r.f_estimated for r in ok]) if result.leverage_input.is_solve else _NAN_CI,
    )
