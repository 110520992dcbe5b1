"""Readings over analysis output for the results panels.

Each function maps a slice of the analysis to a short label; the
presentation layer turns labels into text.
"""
from __future__ import annotations

from typing import Dict, Optional

import numpy as np
import pandas as pd


def latest_signal(signals: pd.DataFrame, recent: int = 5) -> str:
    """
    ``buy`` / ``sell`` when the last bar fires, otherwise the most recent
    signal within the previous ``recent - 1`` bars as ``recent_buy`` /
    ``recent_sell``, else ``none``.
    """
    buy = signals["buy"].to_numpy()
    sell = signals["sell"].to_numpy()
    if len(buy) == 0:
        return "none"
    last = len(buy) - 1
    if buy[last]:
        return "buy"
    if sell[last]:
        return "sell"
    for i in range(last, max(0, last - recent), -1):
        if buy[i]:
            return "recent_buy"
        if sell[i]:
            return "recent_sell"
    return "none"


def _marked(values) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    return arr[~np.isnan(arr)]


def structure_trend(structure: pd.DataFrame) -> str:
    """Trend label from the last two confirmed swing highs and lows."""
    highs = _marked(structure["highs"])
    lows = _marked(structure["lows"])
    if len(highs) < 2 or len(lows) < 2:
        return "insufficient"
    higher_high = highs[-1] > highs[-2]
    lower_high = highs[-1] < highs[-2]
    higher_low = lows[-1] > lows[-2]
    lower_low = lows[-1] < lows[-2]
    if higher_high and higher_low:
        return "uptrend"
    if lower_high and lower_low:
        return "downtrend"
    if lower_high and higher_low:
        return "correction"
    return "unclear"


def recent_structure(structure: pd.DataFrame, lookback: int = 10) -> str:
    highs = _marked(structure["highs"].to_numpy()[-lookback:])
    lows = _marked(structure["lows"].to_numpy()[-lookback:])
    if len(highs) == 0 and len(lows) == 0:
        return "none"
    if len(highs) > len(lows):
        return "top"
    if len(lows) > len(highs):
        return "bottom"
    if len(highs) >= 2:
        if highs[-1] > highs[-2] and lows[-1] > lows[-2]:
            return "higher_highs"
        if highs[-1] < highs[-2] and lows[-1] < lows[-2]:
            return "lower_lows"
    return "unclear"


def divergence_bias(divergence: pd.DataFrame, lookback: int = 10) -> str:
    bullish = bool(divergence["bullish"].to_numpy()[-lookback:].any())
    bearish = bool(divergence["bearish"].to_numpy()[-lookback:].any())
    if bullish and bearish:
        return "mixed"
    if bullish:
        return "bullish"
    if bearish:
        return "bearish"
    return "none"


def _recent_value(values, lookback: int) -> Optional[float]:
    # earliest defined value inside the trailing window
    arr = np.asarray(values, dtype=float)[-lookback:]
    defined = arr[~np.isnan(arr)]
    return float(defined[0]) if len(defined) else None


def vwap_bias(close, vwap, lookback: int = 5) -> str:
    prices = np.asarray(close, dtype=float)
    level = _recent_value(vwap, lookback)
    if level is None or len(prices) == 0:
        return "insufficient"
    last = prices[-1]
    if last > level:
        return "above"
    if last < level:
        return "below"
    return "at"


def atr_stops(close, atr, multiple: float = 2.0, lookback: int = 5) -> Optional[Dict[str, float]]:
    """Long/short stop levels ``multiple`` ATRs from the last close."""
    prices = np.asarray(close, dtype=float)
    level = _recent_value(atr, lookback)
    if level is None or len(prices) == 0:
        return None
    last = float(prices[-1])
    return {
        "atr": level,
        "long_stop": last - level * multiple,
        "short_stop": last + level * multiple,
    }
