"""Optimal trading bands for an OU spread."""

from .integral import tail_integral
from .objective import (
    INFEASIBLE,
    Leverage,
    LongReturnObjective,
    LongRunReturn,
    is_feasible_band,
    long_return,
)
from .optimizer import (
    OptimalBandsResult,
    band_confidence_intervals,
    band_search_bounds,
    optimal_trading_bands,
)

__all__ = [
    "tail_integral",
    "INFEASIBLE",
    "Leverage",
    "LongReturnObjective",
    "LongRunReturn",
    "is_feasible_band",
    "long_return",
    "OptimalBandsResult",
    "band_confidence_intervals",
    "band_search_bounds",
    "optimal_trading_bands",
]
