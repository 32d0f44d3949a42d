from __future__ import annotations

import numpy as np
from scipy import integrate


_SQRT_2_OVER_PI = np.sqrt(2.0 / np.pi)


def _kernel(t: float) -> float:
    return np.exp(0.5 * t * t)


def tail_integral(x: float, y: float) -> float:
    """sqrt(2/pi) * integral of exp(t^2 / 2) from y to x.

    Negative when x < y. The integrand grows without bound, so callers only use
    it inside ratios over the bounded band region.
    """
    if x == y:
        return 0.0
    result, _ = integrate.quad(_kernel, y, x, epsabs=0.0, epsrel=1e-8, limit=50)
    return float(_SQRT_2_OVER_PI * result)
