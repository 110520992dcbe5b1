"""Run the full analysis on one OHLCV series.

Indicators, structure, divergence, signals and the backtest, plus the
overlay indicators shown on the chart (MA, EMA, MACD, Bollinger,
Fibonacci).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .backtester import BacktestResult, backtest
from .indicators import (
    FibonacciLevels,
    compute_atr,
    compute_bollinger,
    compute_ema,
    compute_fibonacci,
    compute_macd,
    compute_rsi,
    compute_sma,
    compute_vwap,
)
from .rules import SignalConfig, generate_signals
from .settings import setup_logger
from .structure import detect_rsi_divergence, identify_swings

logger = setup_logger("signal_core.pipeline")

MA_PERIODS = (10, 20, 50)
EMA_PERIODS = (12, 26, 50)


@dataclass
class AnalysisResult:
    series: pd.DataFrame
    rsi: pd.Series
    vwap: pd.Series
    atr: pd.Series
    structure: pd.DataFrame
    divergence: pd.DataFrame
    signals: pd.DataFrame
    backtest: BacktestResult
    ma: Dict[int, pd.Series] = field(default_factory=dict)
    ema: Dict[int, pd.Series] = field(default_factory=dict)
    macd: Optional[pd.DataFrame] = None
    bollinger: Optional[pd.DataFrame] = None
    fibonacci: FibonacciLevels = field(default_factory=FibonacciLevels)

    @property
    def empty(self) -> bool:
        return self.series.empty


def run_analysis(
    df: pd.DataFrame,
    config: Optional[SignalConfig] = None,
    initial_capital: float = 10000.0,
) -> AnalysisResult:
    config = config or SignalConfig()
    close, high, low, volume = df["close"], df["high"], df["low"], df["volume"]
    logger.info("Analysing %d bars", len(df))

    rsi = compute_rsi(close)
    vwap = compute_vwap(high, low, close, volume)
    atr = compute_atr(high, low, close)
    structure = identify_swings(high, low)
    divergence = detect_rsi_divergence(close, rsi, overbought=config.overbought, oversold=config.oversold)
    signals = generate_signals(close, rsi, vwap, atr, structure, divergence, config)
    result = backtest(close, signals["buy"], signals["sell"], initial_capital=initial_capital)

    return AnalysisResult(
        series=df,
        rsi=rsi,
        vwap=vwap,
        atr=atr,
        structure=structure,
        divergence=divergence,
        signals=signals,
        backtest=result,
        ma={p: compute_sma(close, p) for p in MA_PERIODS},
        ema={p: compute_ema(close, p) for p in EMA_PERIODS},
        macd=compute_macd(close),
        bollinger=compute_bollinger(close),
        fibonacci=compute_fibonacci(high, low),
    )


def nan_to_none(values) -> list:
    """List form of an indicator series with NaN replaced by ``None``."""
    return [None if np.isnan(v) else float(v) for v in np.asarray(values, dtype=float)]
