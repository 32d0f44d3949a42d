"""Long-run expected return of an OU band strategy.

All band levels are in standardized units (multiples of the stationary
standard deviation, centred on the long-run mean). For entry ``d``,
take-profit ``u`` and stop-loss ``l`` with ``l < d < u``, and a standardized
round-trip cost ``c``, the expected log-growth per unit of OU time is

    mu = 2/pi * [ ln(1 + f*(e^{s(u-d-c)} - 1)) / T(u, d)
                + ln(1 + f*(e^{s(l-d-c)} - 1)) / T(d, l) ]

with ``T`` the tail integral. Leverage ``f`` is either fixed or set to its
closed-form optimum for the given (d, u).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from .integral import tail_integral


# Returned to minimizers in place of +inf so finite-difference gradients exist.
INFEASIBLE_PENALTY = 1e6


@dataclass(frozen=True)
class Leverage:
    """Position size: a fixed multiplier, or ``value=None`` to solve for the optimum."""

    value: float | None = None

    def __post_init__(self) -> None:
        if self.value is not None and not math.isfinite(self.value):
            raise ValueError(f"Fixed leverage must be finite, got {self.value!r}")

    @classmethod
    def fixed(cls, value: float) -> "Leverage":
        return cls(value=float(value))

    @classmethod
    def solve(cls) -> "Leverage":
        return cls(value=None)

    @classmethod
    def parse(cls, value: float | str | None) -> "Leverage":
        """Config helper: ``None``, ``"solve"``/``"optimal"`` or NaN mean solve."""
        if value is None:
            return cls.solve()
        if isinstance(value, str):
            if value.strip().lower() in {"solve", "optimal", "auto", "nan"}:
                return cls.solve()
            value = float(value)
        if math.isnan(value):
            return cls.solve()
        return cls.fixed(value)

    @property
    def is_solve(self) -> bool:
        return self.value is None

    def for_trading(self, default: float = 1.0) -> float:
        """Multiplier the simulator uses; solve-leverage falls back to ``default``."""
        return default if self.value is None else self.value

    def __str__(self) -> str:
        return "solve" if self.value is None else f"{self.value:g}"


class LongRunReturn(NamedTuple):
    mu: float
    leverage: float

    @property
    def feasible(self) -> bool:
        return math.isfinite(self.mu)


INFEASIBLE = LongRunReturn(mu=-math.inf, leverage=math.nan)


def is_feasible_band(d: float, u: float, c: float, l: float) -> bool:
    """Feasibility gate: u - d > c, d > l and u > d."""
    return (u - d > c) and (d > l) and (u > d)


def long_return(
    d: float,
    u: float,
    c: float,
    l: float,
    sigma: float,
    leverage: Leverage,
) -> LongRunReturn:
    """Expected long-run return and the leverage used for band (d, u).

    Infeasible bands return ``INFEASIBLE``. A non-positive logarithm argument
    or any non-finite intermediate yields mu = -inf together with the leverage
    that produced it; this function never raises on numerical input.
    """
    if not is_feasible_band(d, u, c, l):
        return INFEASIBLE

    expo_ud = math.expm1(sigma * (u - d - c))
    expo_ld = math.expm1(sigma * (l - d - c))
    t_ud = tail_integral(u, d)
    t_dl = tail_integral(d, l)

    if leverage.is_solve:
        t_ul = tail_integral(u, l)
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            f_star = float(
                -np.float64(t_dl) / (expo_ld * t_ul) - np.float64(t_ud) / (expo_ud * t_ul)
            )
    else:
        f_star = float(leverage.value)

    if not math.isfinite(f_star):
        return LongRunReturn(mu=-math.inf, leverage=f_star)

    arg_up = 1.0 + f_star * expo_ud
    arg_down = 1.0 + f_star * expo_ld
    if arg_up <= 0.0 or arg_down <= 0.0 or t_ud <= 0.0 or t_dl <= 0.0:
        return LongRunReturn(mu=-math.inf, leverage=f_star)

    mu = (2.0 / math.pi) * (math.log(arg_up) / t_ud + math.log(arg_down) / t_dl)
    if not math.isfinite(mu):
        return LongRunReturn(mu=-math.inf, leverage=f_star)
    return LongRunReturn(mu=mu, leverage=f_star)


@dataclass(frozen=True)
class LongReturnObjective:
    """``long_return`` with (c, l, sigma, leverage) fixed.

    ``evaluate(d, u)`` gives mu; calling with a vector ``[d, u]`` gives the
    minimization objective -mu (``INFEASIBLE_PENALTY`` when mu is not finite).
    """

    c: float
    l: float
    sigma: float
    leverage: Leverage

    def evaluate(self, d: float, u: float) -> float:
        return self.result(d, u).mu

    def result(self, d: float, u: float) -> LongRunReturn:
        return long_return(d, u, self.c, self.l, self.sigma, self.leverage)

    def __call__(self, x: np.ndarray) -> float:
        mu = self.evaluate(float(x[0]), float(x[1]))
        if not math.isfinite(mu):
            return INFEASIBLE_PENALTY
        return -mu
