"""Closed-form maximum likelihood for an OU process sampled on a regular grid.

The discretized OU process is an AR(1):

    x_{t+1} = a * x_t + b + s * Z,   a = exp(-k dt),  b = eta (1 - a),
    s = sigma * sqrt((1 - a^2) / (2k))

so the lag-1 autocorrelation gives the speed and the residual variance gives
the volatility.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import signal


RHO_EPS = 1e-8
VAR_FLOOR = 1e-12

# 30-minute bars, expressed in years
DEFAULT_DT = (0.5 / 24.0) / 365.0


@dataclass(frozen=True)
class OUParameters:
    k: float
    eta: float
    sigma: float

    @property
    def sigma_stat(self) -> float:
        """Stationary standard deviation sigma / sqrt(2k); NaN when k <= 0."""
        if self.k <= 0:
            return float("nan")
        return float(self.sigma / np.sqrt(2.0 * self.k))

    @property
    def theta(self) -> float:
        """Characteristic mean-reversion time 1/k."""
        return float(1.0 / self.k) if self.k > 0 else float("inf")

    @property
    def half_life(self) -> float:
        return float(np.log(2.0) / self.k) if self.k > 0 else float("inf")

    @property
    def is_degenerate(self) -> bool:
        return not (self.k > 0 and self.sigma > 0)

    def zscore(self, x: np.ndarray | float) -> np.ndarray | float:
        return (x - self.eta) / self.sigma_stat


def ou_mle(x: np.ndarray, dt: float = DEFAULT_DT) -> OUParameters:
    """Estimate (k, eta, sigma) from N+1 equally spaced observations.

    Fewer than three observations give all-zero parameters. The lag-1
    autocorrelation is clamped to (1e-8, 1 - 1e-8) so k is always finite and
    positive; variance denominators are floored at 1e-12.
    """
    x = np.asarray(x, dtype="float64")
    if x.size < 3:
        return OUParameters(k=0.0, eta=0.0, sigma=0.0)

    n = x.size - 1
    xm = x[:-1]
    xp = x[1:]
    y_m = xm.sum() / n
    y_p = xp.sum() / n
    y_mm = (xm * xm).sum() / n
    y_pp = (xp * xp).sum() / n
    y_pm = (xm * xp).sum() / n

    var_m = y_mm - y_m * y_m
    cov = y_pm - y_m * y_p
    rho = cov / var_m if var_m != 0.0 else 0.0
    if not rho > 0.0:
        rho = RHO_EPS
    if rho >= 1.0:
        rho = 1.0 - RHO_EPS

    k = -np.log(rho) / dt

    eta = y_p + ((x[-1] - x[0]) / n) * cov / max(VAR_FLOOR, var_m - cov)

    sigma2 = y_pp - y_p * y_p - cov * cov / max(VAR_FLOOR, var_m)
    sigma2 = max(sigma2, VAR_FLOOR)
    sigma = np.sqrt((2.0 * k * sigma2) / (1.0 - np.exp(-2.0 * k * dt)))

    return OUParameters(k=float(k), eta=float(eta), sigma=float(sigma))


def simulate_ou_path(
    x0: float,
    params: OUParameters,
    *,
    dt: float,
    n_steps: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Simulate n_steps exact OU transitions starting at x0 (length n_steps + 1)."""
    a = np.exp(-params.k * dt)
    b = params.eta * (1.0 - a)
    sd = params.sigma * np.sqrt((1.0 - a * a) / (2.0 * params.k))

    z = rng.standard_normal(n_steps)
    x = np.empty(n_steps + 1, dtype="float64")
    x[0] = x0
    if n_steps == 0:
        return x
    # x[i+1] = a * x[i] + (b + sd * z[i]) as a first-order IIR filter seeded with a * x0
    x[1:], _ = signal.lfilter([1.0], [1.0, -a], b + sd * z, zi=[a * x0])
    return x
