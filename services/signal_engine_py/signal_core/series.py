"""OHLCV series helpers.

A series is a DataFrame with float columns ``open, high, low, close,
volume``, an integer ``timestamp`` column in epoch milliseconds, and a
UTC ``DatetimeIndex`` derived from it.  Bars missing any price or volume
field are dropped when a series is assembled from raw arrays.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .settings import setup_logger

logger = setup_logger("signal_core.series")

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]

# epoch values below this are seconds, not milliseconds
_SECONDS_CUTOFF = 10_000_000_000


def empty_series() -> pd.DataFrame:
    """Return an empty, correctly shaped OHLCV frame."""
    df = pd.DataFrame(
        {
            "timestamp": pd.Series([], dtype=np.int64),
            **{col: pd.Series([], dtype=float) for col in OHLCV_COLUMNS},
        }
    )
    df.index = pd.DatetimeIndex([], tz="UTC", name="date")
    return df


def normalize_ms(ts: int) -> int:
    ts = int(ts)
    return ts * 1000 if ts < _SECONDS_CUTOFF else ts


def from_arrays(
    timestamps: Sequence[Any],
    opens: Sequence[Optional[float]],
    highs: Sequence[Optional[float]],
    lows: Sequence[Optional[float]],
    closes: Sequence[Optional[float]],
    volumes: Sequence[Optional[float]],
) -> pd.DataFrame:
    """
    Build an OHLCV frame from parallel arrays.  Arrays of unequal length
    are truncated to the shortest one; bars with a null field are dropped.
    """
    n = min(len(timestamps), len(opens), len(highs), len(lows), len(closes), len(volumes))
    if n == 0:
        return empty_series()
    raw = pd.DataFrame(
        {
            "timestamp": list(timestamps[:n]),
            "open": list(opens[:n]),
            "high": list(highs[:n]),
            "low": list(lows[:n]),
            "close": list(closes[:n]),
            "volume": list(volumes[:n]),
        }
    )
    raw = raw.dropna(subset=["timestamp"] + OHLCV_COLUMNS)
    dropped = n - len(raw)
    if dropped:
        logger.warning("Dropped %d of %d bars with missing OHLCV fields", dropped, n)
    if raw.empty:
        return empty_series()

    raw["timestamp"] = [normalize_ms(t) for t in raw["timestamp"]]
    raw[OHLCV_COLUMNS] = raw[OHLCV_COLUMNS].astype(float)
    raw = raw.sort_values("timestamp", kind="stable").drop_duplicates(subset="timestamp", keep="last")
    raw.index = pd.DatetimeIndex(
        pd.to_datetime(raw["timestamp"], unit="ms", utc=True), name="date"
    )
    return raw[["timestamp"] + OHLCV_COLUMNS].astype({"timestamp": np.int64})


def from_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Normalise a frame that already carries OHLCV columns."""
    if df.empty:
        return empty_series()
    if "timestamp" in df.columns:
        ts = df["timestamp"].tolist()
    elif isinstance(df.index, pd.DatetimeIndex):
        index = df.index.tz_localize("UTC") if df.index.tz is None else df.index.tz_convert("UTC")
        ts = (index.asi8 // 1_000_000).tolist()
    else:
        raise ValueError("frame needs a 'timestamp' column or a DatetimeIndex")
    return from_arrays(ts, *(df[col].tolist() for col in OHLCV_COLUMNS))


def to_candles(df: pd.DataFrame) -> List[Dict[str, float]]:
    """Candles in the ``{time (seconds), open, high, low, close}`` chart shape."""
    return [
        {
            "time": int(row.timestamp) // 1000,
            "open": float(row.open),
            "high": float(row.high),
            "low": float(row.low),
            "close": float(row.close),
        }
        for row in df.itertuples(index=False)
    ]


def to_points(df: pd.DataFrame, values: pd.Series) -> List[Dict[str, float]]:
    """Sparse ``{time, value}`` overlay points, skipping absent values."""
    times = (df["timestamp"].to_numpy(dtype=np.int64) // 1000).tolist()
    arr = np.asarray(values, dtype=float)
    return [
        {"time": t, "value": float(v)}
        for t, v in zip(times, arr)
        if not np.isnan(v)
    ]
