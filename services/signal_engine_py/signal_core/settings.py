"""Environment-driven settings and logging setup for the signal engine.

Values are read once at import time and every variable is optional.
"""
from __future__ import annotations

import logging
import math
import os
from typing import List, Optional

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip()
    if (v.startswith('"') and v.endswith('"')) or (v.startswith("'") and v.endswith("'")):
        v = v[1:-1].strip()
    return v or default


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger("signal_core.settings").warning(
            "Ignoring non-numeric %s=%r, using %s", name, raw, default
        )
        return default


def _env_int(name: str, default: int, low: int, high: Optional[int] = None) -> int:
    raw = _env_float(name, default)
    if math.isfinite(raw) and raw >= low and (high is None or raw <= high):
        return int(raw)
    logging.getLogger("signal_core.settings").warning(
        "Ignoring out-of-range %s=%s, using %d", name, raw, default
    )
    return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = _env(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# ──────────────────────────────────────────────────────────────────────────────
# Logging
# ──────────────────────────────────────────────────────────────────────────────

LOG_LEVEL = (_env("SIGNAL_LOG_LEVEL", "INFO") or "INFO").upper()


def setup_logger(name: str) -> logging.Logger:
    """Return a named logger with a single stream handler attached."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(LOG_LEVEL)
    return logger


# ──────────────────────────────────────────────────────────────────────────────
# Market data provider
# ──────────────────────────────────────────────────────────────────────────────

YAHOO_CHART_URL = (
    _env("YAHOO_CHART_URL", "https://query1.finance.yahoo.com/v8/finance/chart") or ""
).rstrip("/")
YAHOO_PROXIES = _env_list(
    "YAHOO_PROXIES",
    [
        "https://corsproxy.io/?",
        "https://api.allorigins.win/raw?url=",
        "https://cors-anywhere.herokuapp.com/",
    ],
)
YAHOO_TIMEOUT_SECS = _env_float("YAHOO_TIMEOUT_SECS", 10.0)

# ──────────────────────────────────────────────────────────────────────────────
# Signal / backtest defaults
# ──────────────────────────────────────────────────────────────────────────────

SIGNAL_WARMUP = _env_int("SIGNAL_WARMUP", 30, low=0)
SIGNAL_MIN_VOTES = _env_int("SIGNAL_MIN_VOTES", 2, low=1, high=4)
RSI_OVERSOLD = _env_float("RSI_OVERSOLD", 30.0)
RSI_OVERBOUGHT = _env_float("RSI_OVERBOUGHT", 70.0)
BACKTEST_INITIAL_CAPITAL = _env_float("BACKTEST_INITIAL_CAPITAL", 10000.0)

# ──────────────────────────────────────────────────────────────────────────────
# API
# ──────────────────────────────────────────────────────────────────────────────

EXAMPLES_DIR = _env("SIGNAL_EXAMPLES_DIR", "/app/examples") or "/app/examples"
