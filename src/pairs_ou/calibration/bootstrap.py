from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np

from .mle import DEFAULT_DT, OUParameters, ou_mle, simulate_ou_path


LOGGER = logging.getLogger(__name__)

_NAN_CI = (float("nan"), float("nan"))


@dataclass(frozen=True)
class OUBootstrapResult:
    """Point estimates, bootstrap replicates and percentile CIs."""

    k: float = 0.0
    eta: float = 0.0
    sigma: float = 0.0
    boot_k: np.ndarray = field(default_factory=lambda: np.empty(0))
    boot_eta: np.ndarray = field(default_factory=lambda: np.empty(0))
    boot_sigma: np.ndarray = field(default_factory=lambda: np.empty(0))
    ci_k: tuple[float, float] = _NAN_CI
    ci_eta: tuple[float, float] = _NAN_CI
    ci_sigma: tuple[float, float] = _NAN_CI
    alpha: float = 0.05

    @property
    def params(self) -> OUParameters:
        return OUParameters(k=self.k, eta=self.eta, sigma=self.sigma)

    @property
    def n_replicates(self) -> int:
        return int(self.boot_k.size)

    def to_dict(self) -> dict[str, object]:
        return {
            "k": self.k,
            "eta": self.eta,
            "sigma": self.sigma,
            "ci_k": self.ci_k,
            "ci_eta": self.ci_eta,
            "ci_sigma": self.ci_sigma,
            "alpha": self.alpha,
            "n_replicates": self.n_replicates,
        }


def percentile_interval(values: np.ndarray, alpha: float) -> tuple[float, float]:
    """(alpha/2, 1 - alpha/2) percentiles, linearly interpolated between order statistics."""
    v = np.asarray(values, dtype="float64")
    if v.size == 0:
        return _NAN_CI
    lo, hi = np.percentile(v, [alpha * 50.0, 100.0 - alpha * 50.0], method="linear")
    return float(lo), float(hi)


def replicate_rng(seed: int, index: int) -> np.random.Generator:
    """Random stream for one replicate; depends only on (seed, index)."""
    return np.random.default_rng(np.random.SeedSequence(entropy=seed, spawn_key=(index,)))


def _one_replicate(
    index: int,
    *,
    x0: float,
    params: OUParameters,
    dt: float,
    n_steps: int,
    seed: int,
) -> OUParameters:
    path = simulate_ou_path(x0, params, dt=dt, n_steps=n_steps, rng=replicate_rng(seed, index))
    return ou_mle(path, dt)


def ou_bootstrap(
    x: np.ndarray,
    *,
    n_replicates: int = 1000,
    alpha: float = 0.05,
    seed: int = 42,
    dt: float = DEFAULT_DT,
    n_workers: int = 1,
) -> OUBootstrapResult:
    """MLE on the observed spread plus a parametric bootstrap of the estimator.

    Each replicate simulates a path of the input's length from the first
    observed value using the point estimates, then re-estimates. Replicate
    ``m`` draws from ``replicate_rng(seed, m)``, so the output is identical for
    any ``n_workers``.

    Args:
        x: Log-spread observations on an equally spaced grid
        n_replicates: Number of bootstrap replicates M
        alpha: CI level; bounds are the alpha/2 and 1 - alpha/2 percentiles
        seed: Master seed
        dt: Time step between observations
        n_workers: Threads used for the replicate loop

    Returns:
        OUBootstrapResult (all-zero estimates and NaN CIs for < 3 observations)
    """
    if n_replicates < 0:
        raise ValueError("n_replicates must be >= 0")
    if not 0.0 < alpha < 1.0:
        raise ValueError("alpha must be in (0, 1)")

    x = np.asarray(x, dtype="float64")
    if x.size < 3:
        LOGGER.warning("Spread series has %d observations; skipping calibration.", x.size)
        return OUBootstrapResult(alpha=alpha)

    point = ou_mle(x, dt)

    def run(index: int) -> OUParameters:
        return _one_replicate(
            index, x0=float(x[0]), params=point, dt=dt, n_steps=x.size - 1, seed=seed
        )

    if n_workers > 1 and n_replicates > 1:
        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            replicates = list(pool.map(run, range(n_replicates)))
    else:
        replicates = [run(m) for m in range(n_replicates)]

    boot_k = np.array([r.k for r in replicates], dtype="float64")
    boot_eta = np.array([r.eta for r in replicates], dtype="float64")
    boot_sigma = np.array([r.sigma for r in replicates], dtype="float64")

    return OUBootstrapResult(
        k=point.k,
        eta=point.eta,
        sigma=point.sigma,
        boot_k=boot_k,
        boot_eta=boot_eta,
        boot_sigma=boot_sigma,
        ci_k=percentile_interval(boot_k, alpha),
        ci_eta=percentile_interval(boot_eta, alpha),
        ci_sigma=percentile_interval(boot_sigma, alpha),
        alpha=alpha,
    )
