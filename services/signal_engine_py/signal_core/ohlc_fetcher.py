# signal_core/ohlc_fetcher.py
"""Fetch historical OHLCV bars from the Yahoo Finance chart endpoint.

Each configured proxy prefix is tried in turn, then the endpoint itself.
A request that fails everywhere, or a payload without usable quotes,
yields an empty frame: callers treat "no data" as a normal outcome.

Timestamps are converted to UTC epoch milliseconds. Bars with any null
price or volume field are dropped.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Optional, Sequence
from urllib.parse import quote

import httpx
import pandas as pd

from . import settings
from .resampler import parse_granularity, resample
from .series import empty_series, from_arrays
from .settings import setup_logger

logger = setup_logger("signal_core.ohlc_fetcher")

# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

_INTERVAL_RE = re.compile(r"^\d+[mhd]$")
_CALENDAR_INTERVALS = {"1wk", "1mo"}

_FUTURES_ALIASES: Dict[str, str] = {
    "gold": "GC=F",
    "corn": "ZC=F",
    "wheat": "ZW=F",
}

# what to ask the provider for when the timeframe has no native interval
_PROVIDER_BASE: Dict[str, str] = {
    "m": "1m",
    "h": "1h",
    "d": "1d",
    "w": "1d",
    "mo": "1d",
}


def adjust_symbol(symbol: str, market: str = "us") -> str:
    """Map a bare symbol to its Yahoo ticker for the given market type."""
    symbol = symbol.strip()
    market = (market or "us").lower()
    if market == "tw":
        return f"{symbol}.TW"
    if market == "futures":
        return _FUTURES_ALIASES.get(symbol.lower(), f"{symbol}=F")
    return symbol


def normalize_interval(interval: str) -> str:
    if interval in _CALENDAR_INTERVALS or _INTERVAL_RE.match(interval or ""):
        return interval
    logger.warning("Unsupported interval %r, using 1d", interval)
    return "1d"


def _request_urls(symbol: str, proxies: Sequence[str], params: Dict[str, str]) -> list:
    # proxies receive the full target, query string included
    target = str(httpx.URL(f"{settings.YAHOO_CHART_URL}/{symbol}", params=params))
    urls = [f"{proxy}{quote(target, safe='')}" for proxy in proxies]
    urls.append(target)
    return urls


def parse_chart_payload(payload: Any) -> pd.DataFrame:
    """Convert a chart API payload into an OHLCV frame (empty if malformed)."""
    try:
        result = payload["chart"]["result"][0]
        timestamps = result["timestamp"]
        quotes = result["indicators"]["quote"][0]
        cols = [quotes[k] for k in ("open", "high", "low", "close", "volume")]
    except (KeyError, IndexError, TypeError):
        logger.error("Chart payload missing required fields")
        return empty_series()
    if not timestamps or any(c is None for c in cols):
        logger.error("Chart payload has no timestamps or price arrays")
        return empty_series()

    granularity = (result.get("meta") or {}).get("dataGranularity")
    if granularity:
        logger.debug("Provider returned granularity %s", granularity)
    return from_arrays(timestamps, *cols)


# ──────────────────────────────────────────────────────────────────────────────
# Public entry
# ──────────────────────────────────────────────────────────────────────────────

async def fetch_ohlc(
    symbol: str,
    interval: str = "1d",
    range_: str = "1y",
    proxies: Optional[Sequence[str]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> pd.DataFrame:
    """
    Fetch bars for ``symbol``.  Returns an empty frame when every attempt
    fails or the payload is unusable.
    """
    interval = normalize_interval(interval)
    proxies = settings.YAHOO_PROXIES if proxies is None else proxies
    params = {"interval": interval, "range": range_, "includePrePost": "false", "events": "div,split"}
    logger.info("Fetching %s interval=%s range=%s", symbol, interval, range_)

    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(timeout=settings.YAHOO_TIMEOUT_SECS)
    try:
        for url in _request_urls(symbol, proxies, params):
            try:
                resp = await client.get(url)
                resp.raise_for_status()
                payload = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Fetch via %s failed: %s", url.split("?")[0], e)
                continue
            df = parse_chart_payload(payload)
            if df.empty:
                logger.warning("No usable bars via %s", url.split("?")[0])
                continue
            logger.info("Fetched %d bars for %s", len(df), symbol)
            return df
    finally:
        if own_client:
            await client.aclose()

    logger.error("All sources failed for %s", symbol)
    return empty_series()


async def fetch_series(
    symbol: str,
    timeframe: str = "1d",
    range_: str = "1y",
    market: str = "us",
    proxies: Optional[Sequence[str]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> pd.DataFrame:
    """
    Fetch ``symbol`` at ``timeframe``, aggregating locally when the
    provider has no native interval for it (weekly, monthly, 4h, ...).
    """
    target = parse_granularity(timeframe)
    ticker = adjust_symbol(symbol, market)
    native = str(target) in {"1m", "2m", "5m", "15m", "30m", "1h", "1d"}
    source = str(target) if native else _PROVIDER_BASE[target.unit]
    df = await fetch_ohlc(ticker, source, range_, proxies=proxies, client=client)
    if df.empty or native:
        return df
    return resample(df, source, target)
