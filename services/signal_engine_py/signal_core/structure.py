"""
Market structure and RSI divergence detection.

Swing highs/lows are bars that strictly exceed every neighbour within a
symmetric window.  Divergence compares the direction of price against
the direction of RSI over a fixed look-back while RSI sits in an
extreme zone.
"""
from __future__ import annotations

import numpy as np
import pandas as pd

from .settings import setup_logger

logger = setup_logger("signal_core.structure")


def _index_of(*arrays):
    for arr in arrays:
        if isinstance(arr, pd.Series):
            return arr.index
    return None


def identify_swings(high, low, window: int = 10) -> pd.DataFrame:
    """
    Mark confirmed swing highs and lows.

    Bar ``i`` is a swing high when ``high[i] > high[i±j]`` for every ``j``
    in ``1..window`` (swing low mirrors with ``<``).  Equal neighbours
    disqualify a bar, and the first and last ``window`` bars are never
    marked.  Returns a DataFrame with float columns ``highs`` and
    ``lows`` holding the extreme price at marked bars and NaN elsewhere.
    """
    if window < 1:
        raise ValueError(f"swing window must be >= 1, got {window}")
    h = np.asarray(high, dtype=float)
    l = np.asarray(low, dtype=float)
    if len(h) != len(l):
        raise ValueError(f"swings: high ({len(h)}) and low ({len(l)}) differ in length")
    n = len(h)
    index = _index_of(high, low)
    highs = np.full(n, np.nan)
    lows = np.full(n, np.nan)
    if n < window * 2 + 1:
        logger.warning("Swing detection(%d) needs %d points, got %d", window, window * 2 + 1, n)
        return pd.DataFrame({"highs": highs, "lows": lows}, index=index)

    for i in range(window, n - window):
        left_h = h[i - window:i]
        right_h = h[i + 1:i + window + 1]
        if (h[i] > left_h).all() and (h[i] > right_h).all():
            highs[i] = h[i]
        left_l = l[i - window:i]
        right_l = l[i + 1:i + window + 1]
        if (l[i] < left_l).all() and (l[i] < right_l).all():
            lows[i] = l[i]
    return pd.DataFrame({"highs": highs, "lows": lows}, index=index)


def detect_rsi_divergence(
    close, rsi, period: int = 14, overbought: float = 70.0, oversold: float = 30.0
) -> pd.DataFrame:
    """
    Flag RSI/price divergences from bar ``2 * period`` onwards.

    Bearish: price higher than ``period`` bars ago while RSI is lower and
    above ``overbought``.  Bullish: price lower while RSI is higher and
    below ``oversold``.  Comparisons against NaN are false.
    """
    if period < 1:
        raise ValueError(f"divergence period must be >= 1, got {period}")
    c = np.asarray(close, dtype=float)
    r = np.asarray(rsi, dtype=float)
    if len(c) != len(r):
        raise ValueError(f"divergence: close ({len(c)}) and rsi ({len(r)}) differ in length")
    n = len(c)
    index = _index_of(close, rsi)
    bullish = np.zeros(n, dtype=bool)
    bearish = np.zeros(n, dtype=bool)
    if n < period * 2:
        logger.warning("Divergence(%d) needs %d points, got %d", period, period * 2, n)
        return pd.DataFrame({"bullish": bullish, "bearish": bearish}, index=index)

    price_now, price_then = c[period * 2:], c[period:-period]
    rsi_now, rsi_then = r[period * 2:], r[period:-period]
    with np.errstate(invalid="ignore"):
        bearish[period * 2:] = (price_now > price_then) & (rsi_now < rsi_then) & (rsi_now > overbought)
        bullish[period * 2:] = (price_now < price_then) & (rsi_now > rsi_then) & (rsi_now < oversold)
    return pd.DataFrame({"bullish": bullish, "bearish": bearish}, index=index)
