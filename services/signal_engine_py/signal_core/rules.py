"""
Fuse indicator and structure readings into per-bar buy/sell signals.

Each side has four conditions; a side fires when at least
``min_votes`` of them hold on a bar.  Nothing fires before the warm-up
bar.  ``to_position_signal`` folds the two boolean columns into the
+1 / -1 / 0 convention used by the chart helpers.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from . import settings
from .settings import setup_logger

logger = setup_logger("signal_core.rules")


@dataclass(frozen=True)
class SignalConfig:
    """Voting parameters for ``generate_signals``."""

    warmup: int = 30
    min_votes: int = 2
    oversold: float = 30.0
    overbought: float = 70.0

    def __post_init__(self):
        if self.warmup < 0:
            raise ValueError("warmup must be >= 0")
        if not 1 <= self.min_votes <= 4:
            raise ValueError("min_votes must be between 1 and 4")

    @classmethod
    def from_env(cls) -> "SignalConfig":
        return cls(
            warmup=settings.SIGNAL_WARMUP,
            min_votes=settings.SIGNAL_MIN_VOTES,
            oversold=settings.RSI_OVERSOLD,
            overbought=settings.RSI_OVERBOUGHT,
        )


def _arr(values, n: int, dtype=float) -> np.ndarray:
    a = np.asarray(values, dtype=dtype)
    if len(a) != n:
        raise ValueError(f"expected {n} values, got {len(a)}")
    return a


def _votes(conditions) -> np.ndarray:
    return np.sum(np.vstack(conditions), axis=0)


def buy_votes(close, rsi, vwap, structure: pd.DataFrame, divergence: pd.DataFrame,
              config: SignalConfig = SignalConfig()) -> np.ndarray:
    """Per-bar count of satisfied buy conditions (0..4)."""
    n = len(close)
    c, r, v = _arr(close, n), _arr(rsi, n), _arr(vwap, n)
    lows = _arr(structure["lows"], n)
    bullish = _arr(divergence["bullish"], n, dtype=bool)
    with np.errstate(invalid="ignore"):
        return _votes([
            ~np.isnan(r) & (r < config.oversold),
            bullish,
            ~np.isnan(lows),
            ~np.isnan(v) & (c > v),
        ])


def sell_votes(close, rsi, vwap, structure: pd.DataFrame, divergence: pd.DataFrame,
               config: SignalConfig = SignalConfig()) -> np.ndarray:
    """Per-bar count of satisfied sell conditions (0..4)."""
    n = len(close)
    c, r, v = _arr(close, n), _arr(rsi, n), _arr(vwap, n)
    highs = _arr(structure["highs"], n)
    bearish = _arr(divergence["bearish"], n, dtype=bool)
    with np.errstate(invalid="ignore"):
        return _votes([
            ~np.isnan(r) & (r > config.overbought),
            bearish,
            ~np.isnan(highs),
            ~np.isnan(v) & (c < v),
        ])


def generate_signals(
    close,
    rsi,
    vwap,
    atr,
    structure: pd.DataFrame,
    divergence: pd.DataFrame,
    config: SignalConfig = SignalConfig(),
) -> pd.DataFrame:
    """
    Return a DataFrame with boolean ``buy`` and ``sell`` columns.

    Buy conditions: RSI oversold, bullish divergence, swing low, close
    above VWAP.  Sell conditions: RSI overbought, bearish divergence,
    swing high, close below VWAP.  ``atr`` is accepted so callers can pass
    the full indicator set but takes no part in the vote.  Buy and sell
    may both be true on the same bar.
    """
    index = close.index if isinstance(close, pd.Series) else None
    n = len(close)
    if n == 0:
        logger.warning("No prices to generate signals from")
        return pd.DataFrame({"buy": np.zeros(0, dtype=bool), "sell": np.zeros(0, dtype=bool)}, index=index)

    eligible = np.arange(n) >= config.warmup
    buy = eligible & (buy_votes(close, rsi, vwap, structure, divergence, config) >= config.min_votes)
    sell = eligible & (sell_votes(close, rsi, vwap, structure, divergence, config) >= config.min_votes)
    logger.debug("Signals over %d bars: %d buy, %d sell", n, int(buy.sum()), int(sell.sum()))
    return pd.DataFrame({"buy": buy, "sell": sell}, index=index)


def to_position_signal(signals: pd.DataFrame) -> pd.Series:
    """
    +1 on buy bars, -1 on sell bars, 0 otherwise.  A bar with both
    flags set reads +1, mirroring the backtester which checks the buy
    side first.
    """
    sig = pd.Series(0, index=signals.index, dtype=np.int8)
    sig[signals["sell"].to_numpy()] = -1
    sig[signals["buy"].to_numpy()] = 1
    return sig
