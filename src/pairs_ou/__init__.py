"""OU pairs-trading research: calibration, optimal bands and out-of-sample backtests."""

__version__ = "0.1.0"
