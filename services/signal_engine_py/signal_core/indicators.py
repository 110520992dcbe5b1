"""Technical indicators over plain price/volume arrays.

SMA, EMA, RSI, MACD, Bollinger Bands, VWAP, ATR and Fibonacci
retracement levels.  Every function accepts any 1-D array-like and
returns float pandas objects aligned with its input, using NaN for bars
where the look-back window is not yet filled.  Inputs shorter than the
minimum window produce an all-NaN (or zero-filled) result instead of an
error, since missing early history is the normal case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .settings import setup_logger

logger = setup_logger("signal_core.indicators")

RSI_ZERO_LOSS_EPSILON = 0.001
FIBONACCI_RATIOS = ("0", "0.236", "0.382", "0.5", "0.618", "0.786", "1")


def _as_series(values, index: Optional[pd.Index] = None) -> pd.Series:
    if isinstance(values, pd.Series):
        return values.astype(float)
    return pd.Series(np.asarray(values, dtype=float), index=index, dtype=float)


def _same_index(*arrays) -> Optional[pd.Index]:
    for arr in arrays:
        if isinstance(arr, pd.Series):
            return arr.index
    return None


def _check_lengths(name: str, *arrays) -> int:
    lengths = {len(a) for a in arrays}
    if len(lengths) > 1:
        raise ValueError(f"{name}: input arrays differ in length {sorted(lengths)}")
    return lengths.pop() if lengths else 0


def _absent(n: int, index: Optional[pd.Index] = None) -> pd.Series:
    return pd.Series(np.full(n, np.nan), index=index, dtype=float)


def _ema_values(x: np.ndarray, period: int) -> np.ndarray:
    out = np.full(len(x), np.nan)
    if period <= 0 or len(x) < period:
        return out
    k = 2.0 / (period + 1)
    ema = x[:period].sum() / period
    out[period - 1] = ema
    for i in range(period, len(x)):
        ema = (x[i] - ema) * k + ema
        out[i] = ema
    return out


def compute_sma(close, window: int) -> pd.Series:
    """
    Simple moving average of the trailing ``window`` values.  The first
    ``window - 1`` entries are NaN.
    """
    s = _as_series(close)
    if len(s) < window:
        logger.warning("SMA(%d) needs %d points, got %d", window, window, len(s))
        return _absent(len(s), s.index)
    return s.rolling(window=window, min_periods=window).mean()


def compute_ema(close, window: int) -> pd.Series:
    """
    Exponential moving average seeded with the SMA of the first
    ``window`` points, then ``ema = (x - prev) * k + prev`` with
    ``k = 2 / (window + 1)``.
    """
    s = _as_series(close)
    if len(s) < window:
        logger.warning("EMA(%d) needs %d points, got %d", window, window, len(s))
        return _absent(len(s), s.index)
    return pd.Series(_ema_values(s.to_numpy(), window), index=s.index)


def compute_rsi(close, window: int = 14) -> pd.Series:
    """
    Relative Strength Index with Wilder smoothing.

    The first average gain/loss is the plain mean of the first ``window``
    deltas; later averages use ``(avg * (window - 1) + new) / window``.
    A zero average loss is replaced by 0.001, so a perfectly flat series
    reads 0 rather than 50.  The first value lands at index ``window``.
    """
    s = _as_series(close)
    n = len(s)
    if n < window + 1:
        logger.warning("RSI(%d) needs %d points, got %d", window, window + 1, n)
        return _absent(n, s.index)

    delta = np.diff(s.to_numpy())
    gains = np.where(delta > 0, delta, 0.0)
    losses = np.where(delta < 0, -delta, 0.0)

    out = np.full(n, np.nan)
    avg_gain = gains[:window].sum() / window
    avg_loss = losses[:window].sum() / window
    for i in range(window, n):
        if i > window:
            avg_gain = (avg_gain * (window - 1) + gains[i - 1]) / window
            avg_loss = (avg_loss * (window - 1) + losses[i - 1]) / window
        rs = avg_gain / (avg_loss if avg_loss != 0 else RSI_ZERO_LOSS_EPSILON)
        out[i] = 100 - (100 / (1 + rs))
    return pd.Series(out, index=s.index)


def compute_macd(
    close, fast: int = 12, slow: int = 26, signal: int = 9
) -> pd.DataFrame:
    """
    Compute the Moving Average Convergence Divergence (MACD).
    Returns a DataFrame with columns macd, signal and histogram.
    """
    s = _as_series(close)
    n = len(s)
    longest = max(fast, slow)
    if n < longest + signal:
        logger.warning("MACD(%d,%d,%d) needs %d points, got %d", fast, slow, signal, longest + signal, n)
        empty = np.full(n, np.nan)
        return pd.DataFrame(
            {"macd": empty, "signal": empty.copy(), "histogram": empty.copy()}, index=s.index
        )

    x = s.to_numpy()
    macd_line = _ema_values(x, fast) - _ema_values(x, slow)
    macd_line[: longest - 1] = np.nan
    # the signal line is an EMA over the defined part of the MACD line only
    valid = macd_line[longest - 1:]
    signal_line = np.concatenate([np.full(longest - 1, np.nan), _ema_values(valid, signal)])
    return pd.DataFrame(
        {"macd": macd_line, "signal": signal_line, "histogram": macd_line - signal_line},
        index=s.index,
    )


def compute_bollinger(
    close, window: int = 20, n_std: float = 2.0
) -> pd.DataFrame:
    """
    Bollinger Bands: SMA middle band with upper/lower bands ``n_std``
    population standard deviations away.  Same NaN prefix as the SMA.
    """
    s = _as_series(close)
    if len(s) < window:
        logger.warning("Bollinger(%d) needs %d points, got %d", window, window, len(s))
        empty = _absent(len(s), s.index)
        return pd.DataFrame({"upper": empty, "middle": empty, "lower": empty})
    mid = s.rolling(window=window, min_periods=window).mean()
    std = s.rolling(window=window, min_periods=window).std(ddof=0)
    return pd.DataFrame({"upper": mid + n_std * std, "middle": mid, "lower": mid - n_std * std})


def compute_vwap(high, low, close, volume, window: int = 14) -> pd.Series:
    """
    Rolling volume-weighted average of the typical price
    ``(high + low + close) / 3`` over ``window`` bars.  Windows with no
    volume are NaN.
    """
    n = _check_lengths("VWAP", high, low, close, volume)
    index = _same_index(high, low, close, volume)
    if n < window:
        logger.warning("VWAP(%d) needs %d points, got %d", window, window, n)
        return _absent(n, index)
    h, l, c, v = (_as_series(a, index).to_numpy() for a in (high, low, close, volume))
    typical = (h + l + c) / 3
    tpv = pd.Series(typical * v).rolling(window=window, min_periods=window).sum().to_numpy()
    vol = pd.Series(v).rolling(window=window, min_periods=window).sum().to_numpy()
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.where(vol > 0, tpv / vol, np.nan)
    return pd.Series(out, index=index, dtype=float)


def compute_atr(high, low, close, window: int = 14) -> pd.Series:
    """
    Average True Range.  True range is ``max(H-L, |H-prevC|, |L-prevC|)``
    (``H-L`` on the first bar); the first ATR is the mean of the first
    ``window`` true ranges, then Wilder smoothing.
    """
    n = _check_lengths("ATR", high, low, close)
    index = _same_index(high, low, close)
    if n < window:
        logger.warning("ATR(%d) needs %d points, got %d", window, window, n)
        return _absent(n, index)
    h, l, c = (_as_series(a, index).to_numpy() for a in (high, low, close))

    prev_close = np.concatenate([[np.nan], c[:-1]])
    tr = np.maximum.reduce([h - l, np.abs(h - prev_close), np.abs(l - prev_close)])
    tr[0] = h[0] - l[0]

    out = np.full(n, np.nan)
    atr = tr[:window].sum() / window
    out[window - 1] = atr
    for i in range(window, n):
        atr = (atr * (window - 1) + tr[i]) / window
        out[i] = atr
    return pd.Series(out, index=index, dtype=float)


@dataclass
class FibonacciLevels:
    levels: Dict[str, float] = field(
        default_factory=lambda: {ratio: 0.0 for ratio in FIBONACCI_RATIOS}
    )
    trend: str = "up"


def compute_fibonacci(high, low, lookback: int = 100) -> FibonacciLevels:
    """
    Retracement levels between the highest high and lowest low of the
    last ``lookback`` bars.  The trend is "up" when the high comes after
    the low; level "0" is the trend's origin and "1" its extreme.
    """
    h = np.asarray(high, dtype=float)
    l = np.asarray(low, dtype=float)
    if len(h) < lookback or len(l) < lookback:
        logger.warning("Fibonacci(%d) needs %d points, got %d", lookback, lookback, min(len(h), len(l)))
        return FibonacciLevels()

    recent_h = h[-lookback:]
    recent_l = l[-lookback:]
    highest = float(recent_h.max())
    lowest = float(recent_l.min())
    trend = "up" if int(recent_h.argmax()) > int(recent_l.argmin()) else "down"
    span = highest - lowest

    levels: Dict[str, float] = {}
    for ratio in FIBONACCI_RATIOS:
        r = float(ratio)
        levels[ratio] = lowest + span * r if trend == "up" else highest - span * r
    return FibonacciLevels(levels=levels, trend=trend)
