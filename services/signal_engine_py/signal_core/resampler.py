"""
Aggregate an OHLCV series to a coarser granularity.

Daily, weekly and monthly buckets are keyed on the UTC calendar (date,
ISO year/week, year/month).  Minute and hour buckets are fixed-width and
anchored at the first timestamp of the series.  The resampler never
upsamples and degrades to returning its input when the aggregate would
be too short to be useful.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .series import OHLCV_COLUMNS
from .settings import setup_logger

logger = setup_logger("signal_core.resampler")

_UNIT_MS = {
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 7 * 86_400_000,
    "mo": 30 * 86_400_000,  # ordering only; monthly buckets use the calendar
}
_UNIT_ALIASES = {
    "m": "m", "min": "m",
    "h": "h",
    "d": "d",
    "w": "w", "wk": "w",
    "mo": "mo", "M": "mo", "mon": "mo",
}
_GRANULARITY_RE = re.compile(r"^(\d+)\s*([a-zA-Z]+)$")


@dataclass(frozen=True)
class Granularity:
    count: int
    unit: str  # one of m, h, d, w, mo

    @property
    def approx_ms(self) -> int:
        return self.count * _UNIT_MS[self.unit]

    @property
    def is_calendar(self) -> bool:
        return self.unit in ("d", "w", "mo")

    def __str__(self) -> str:
        return f"{self.count}{self.unit}"


def parse_granularity(text: "str | Granularity") -> Granularity:
    """
    Parse an interval such as ``15m``, ``4h``, ``1d``, ``1wk`` or ``1mo``.
    Calendar units only support a count of one.
    """
    if isinstance(text, Granularity):
        return text
    match = _GRANULARITY_RE.match(str(text).strip())
    if not match:
        raise ValueError(f"unrecognised granularity {text!r}")
    count = int(match.group(1))
    raw_unit = match.group(2)
    unit = _UNIT_ALIASES.get(raw_unit) or _UNIT_ALIASES.get(raw_unit.lower())
    if unit is None or count <= 0:
        raise ValueError(f"unrecognised granularity {text!r}")
    if unit in ("d", "w", "mo") and count != 1:
        raise ValueError(f"calendar granularity {text!r} must have a count of 1")
    return Granularity(count, unit)


def _bucket_keys(df: pd.DataFrame, target: Granularity) -> pd.Series:
    index = pd.to_datetime(df["timestamp"].to_numpy(dtype=np.int64), unit="ms", utc=True)
    if target.unit == "d":
        keys = index.strftime("%Y-%m-%d")
    elif target.unit == "w":
        iso = index.isocalendar()
        keys = [f"{y}-W{w:02d}" for y, w in zip(iso["year"], iso["week"])]
    elif target.unit == "mo":
        keys = index.strftime("%Y-%m")
    else:
        ts = df["timestamp"].to_numpy(dtype=np.int64)
        keys = (ts - ts[0]) // target.approx_ms
    return pd.Series(np.asarray(keys), index=df.index)


def resample(
    df: pd.DataFrame,
    source: "str | Granularity",
    target: "str | Granularity",
) -> pd.DataFrame:
    """
    Aggregate ``df`` from ``source`` to ``target`` granularity.

    Returns ``df`` itself when the source is already at least as coarse
    as the target, or when the aggregate holds fewer than two bars.
    """
    src = parse_granularity(source)
    tgt = parse_granularity(target)
    if df.empty:
        return df
    if src.approx_ms >= tgt.approx_ms:
        logger.debug("Skip resample %s -> %s (no upsampling)", src, tgt)
        return df

    keys = _bucket_keys(df, tgt)
    grouped = df.groupby(keys.to_numpy(), sort=False)
    out = pd.DataFrame(
        {
            "timestamp": grouped["timestamp"].first(),
            "open": grouped["open"].first(),
            "high": grouped["high"].max(),
            "low": grouped["low"].min(),
            "close": grouped["close"].last(),
            "volume": grouped["volume"].sum(),
        }
    )
    if not tgt.is_calendar:
        first_ts = int(df["timestamp"].iloc[0])
        out["timestamp"] = first_ts + out.index.to_numpy(dtype=np.int64) * tgt.approx_ms

    if len(out) < 2:
        logger.warning(
            "Resample %s -> %s produced %d bar(s); keeping the input %d bars",
            src, tgt, len(out), len(df),
        )
        return df

    out = out.sort_values("timestamp")
    out.index = pd.DatetimeIndex(
        pd.to_datetime(out["timestamp"].to_numpy(dtype=np.int64), unit="ms", utc=True),
        name="date",
    )
    out = out[["timestamp"] + OHLCV_COLUMNS].astype({"timestamp": np.int64})
    logger.debug("Resampled %d bars %s -> %d bars %s", len(df), src, len(out), tgt)
    return out
