"""Core utilities for the signal engine.

This package provides helpers for fetching OHLCV data, resampling it,
computing technical indicators, detecting market structure, generating
buy/sell signals and running simple backtests.  All analysis functions
are side-effect free and deterministic when given the same inputs.
"""

from .series import from_arrays, from_frame, empty_series
from .resampler import Granularity, parse_granularity, resample
from .indicators import (
    FibonacciLevels,
    compute_sma,
    compute_ema,
    compute_rsi,
    compute_macd,
    compute_bollinger,
    compute_vwap,
    compute_atr,
    compute_fibonacci,
)
from .structure import identify_swings, detect_rsi_divergence
from .rules import SignalConfig, generate_signals, to_position_signal
from .backtester import BacktestResult, Trade, backtest
from .pipeline import AnalysisResult, run_analysis
from .ohlc_fetcher import adjust_symbol, fetch_ohlc, fetch_series

__all__ = [
    "from_arrays",
    "from_frame",
    "empty_series",
    "Granularity",
    "parse_granularity",
    "resample",
    "FibonacciLevels",
    "compute_sma",
    "compute_ema",
    "compute_rsi",
    "compute_macd",
    "compute_bollinger",
    "compute_vwap",
    "compute_atr",
    "compute_fibonacci",
    "identify_swings",
    "detect_rsi_divergence",
    "SignalConfig",
    "generate_signals",
    "to_position_signal",
    "BacktestResult",
    "Trade",
    "backtest",
    "AnalysisResult",
    "run_analysis",
    "adjust_symbol",
    "fetch_ohlc",
    "fetch_series",
]
