"""OU calibration: closed-form MLE and parametric bootstrap."""

from .bootstrap import OUBootstrapResult, ou_bootstrap, percentile_interval, replicate_rng
from .mle import DEFAULT_DT, OUParameters, ou_mle, simulate_ou_path

__all__ = [
    "DEFAULT_DT",
    "OUParameters",
    "ou_mle",
    "simulate_ou_path",
    "OUBootstrapResult",
    "ou_bootstrap",
    "percentile_interval",
    "replicate_rng",
]
