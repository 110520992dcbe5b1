"""
FastAPI application exposing endpoints for OHLCV data, indicator
computation, signal analysis and backtesting.  The API is stateless and
can be deployed independently of other services.
"""
from __future__ import annotations
import math
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field, validator

import pandas as pd
from signal_core import (
    SignalConfig,
    compute_atr,
    compute_bollinger,
    compute_ema,
    compute_fibonacci,
    compute_macd,
    compute_rsi,
    compute_sma,
    compute_vwap,
    fetch_series,
    parse_granularity,
    run_analysis,
)
from signal_core import settings, summary
from signal_core.charts import find_examples
from signal_core.pipeline import nan_to_none
from signal_core.series import to_candles, to_points

logger = settings.setup_logger("signal_api")
app = FastAPI(title="Stock Signal & Backtesting API")


# ----------------------------------------------------------------------
# Models
# ----------------------------------------------------------------------
class OHLCResponse(BaseModel):
    time: int
    open: float
    high: float
    low: float
    close: float


class SeriesRequest(BaseModel):
    symbol: str = Field(..., description="Ticker, e.g. AAPL, 2330 (tw) or gold (futures)")
    market: str = Field("us", description="Market type: us, tw, futures")
    timeframe: str = Field("1d", description="Bar size: 1m, 5m, 15m, 1h, 4h, 1d, 1wk, 1mo")
    range: str = Field("1y", description="Provider range, e.g. 6mo, 1y")

    @validator("market")
    def validate_market(cls, v):
        if v.lower() not in {"us", "tw", "futures"}:
            raise ValueError("market must be one of us, tw, futures")
        return v.lower()

    @validator("timeframe")
    def validate_timeframe(cls, v):
        parse_granularity(v)
        return v


class IndicatorRequest(SeriesRequest):
    indicators: List[str] = Field(
        ..., description="Indicators: sma20, ema50, rsi14, macd, bollinger, vwap, atr, fibonacci"
    )


class SignalRule(BaseModel):
    warmup: int = Field(30, ge=0, description="Bars before any signal may fire")
    min_votes: int = Field(2, ge=1, le=4, description="Conditions required per side")
    oversold: float = Field(30.0, description="RSI oversold threshold")
    overbought: float = Field(70.0, description="RSI overbought threshold")

    def to_config(self) -> SignalConfig:
        return SignalConfig(
            warmup=self.warmup,
            min_votes=self.min_votes,
            oversold=self.oversold,
            overbought=self.overbought,
        )


class AnalysisRequest(SeriesRequest):
    """
    Request payload for a full analysis run.  In addition to the symbol,
    market and timeframe, accepts the signal voting rule and the initial
    capital for the backtest.
    """
    rule: Optional[SignalRule] = Field(None, description="Voting parameters; defaults from the environment")
    initial_capital: float = Field(settings.BACKTEST_INITIAL_CAPITAL, gt=0, description="Starting capital")


class ExamplesRequest(AnalysisRequest):
    num_examples: int = 3


def _finite(x: float) -> Optional[float]:
    return float(x) if math.isfinite(x) else None


async def _load(req: SeriesRequest) -> pd.DataFrame:
    try:
        df = await fetch_series(req.symbol, req.timeframe, req.range, market=req.market)
    except Exception:
        logger.exception("Unhandled error loading %s", req.symbol)
        raise HTTPException(status_code=500, detail="Internal server error")
    if df.empty:
        raise HTTPException(
            status_code=404,
            detail=f"No data found for {req.symbol}; check that the symbol is correct",
        )
    return df


def _analyse(req: AnalysisRequest, df: pd.DataFrame):
    config = req.rule.to_config() if req.rule else SignalConfig.from_env()
    return run_analysis(df, config, initial_capital=req.initial_capital)


# ----------------------------------------------------------------------
# Endpoints
# ----------------------------------------------------------------------
@app.get("/data/ohlc", response_model=List[OHLCResponse])
async def get_ohlc(
    symbol: str = Query(..., description="Ticker, e.g. AAPL"),
    market: str = Query("us", description="Market type: us, tw, futures"),
    timeframe: str = Query("1d", description="Bar size: 1m, 5m, 15m, 1h, 4h, 1d, 1wk, 1mo"),
    range: str = Query("1y", description="Provider range"),
) -> List[OHLCResponse]:
    """Return candles for the given symbol and timeframe."""
    try:
        req = SeriesRequest(symbol=symbol, market=market, timeframe=timeframe, range=range)
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    df = await _load(req)
    return [OHLCResponse(**candle) for candle in to_candles(df)]


@app.post("/indicators/compute")
async def compute_indicators(req: IndicatorRequest):
    if not req.indicators:
        raise HTTPException(400, detail="No indicators requested")
    df = await _load(req)
    close, high, low, volume = df["close"], df["high"], df["low"], df["volume"]
    result: Dict[str, Any] = {}
    for ind in req.indicators:
        key = ind.lower()
        try:
            if key.startswith("sma"):
                window = int(key.replace("sma", ""))
                result[key] = to_points(df, compute_sma(close, window))
            elif key.startswith("ema"):
                window = int(key.replace("ema", ""))
                result[key] = to_points(df, compute_ema(close, window))
            elif key.startswith("rsi"):
                window = int(key.replace("rsi", "")) if len(key) > 3 else 14
                result[key] = to_points(df, compute_rsi(close, window))
            elif key == "macd":
                macd_df = compute_macd(close)
                result[key] = {col: to_points(df, macd_df[col]) for col in macd_df.columns}
            elif key == "bollinger":
                bb_df = compute_bollinger(close)
                result[key] = {col: to_points(df, bb_df[col]) for col in bb_df.columns}
            elif key == "vwap":
                result[key] = to_points(df, compute_vwap(high, low, close, volume))
            elif key == "atr":
                result[key] = to_points(df, compute_atr(high, low, close))
            elif key == "fibonacci":
                fib = compute_fibonacci(high, low)
                result[key] = {"levels": fib.levels, "trend": fib.trend}
            else:
                raise HTTPException(400, detail=f"Unknown indicator {ind}")
        except ValueError:
            raise HTTPException(400, detail=f"Bad indicator window in {ind}")
    return result


@app.post("/analysis/run")
async def run_full_analysis(req: AnalysisRequest):
    """
    Run the full pipeline: indicators, structure, divergence, signals,
    summaries and the backtest.
    """
    df = await _load(req)
    analysis = _analyse(req, df)
    bt = analysis.backtest.to_dict()
    bt["profit_factor"] = _finite(analysis.backtest.profit_factor)
    bt["annual_return"] = _finite(analysis.backtest.annual_return)
    return {
        "candles": to_candles(df),
        "rsi": nan_to_none(analysis.rsi),
        "vwap": nan_to_none(analysis.vwap),
        "atr": nan_to_none(analysis.atr),
        "structure": {
            "highs": nan_to_none(analysis.structure["highs"]),
            "lows": nan_to_none(analysis.structure["lows"]),
        },
        "divergence": {
            "bullish": analysis.divergence["bullish"].tolist(),
            "bearish": analysis.divergence["bearish"].tolist(),
        },
        "signals": {
            "buy": analysis.signals["buy"].tolist(),
            "sell": analysis.signals["sell"].tolist(),
        },
        "summary": {
            "latest_signal": summary.latest_signal(analysis.signals),
            "trend": summary.structure_trend(analysis.structure),
            "recent_structure": summary.recent_structure(analysis.structure),
            "divergence": summary.divergence_bias(analysis.divergence),
            "vwap": summary.vwap_bias(df["close"], analysis.vwap),
            "atr_stops": summary.atr_stops(df["close"], analysis.atr),
            "fibonacci": {"levels": analysis.fibonacci.levels, "trend": analysis.fibonacci.trend},
        },
        "backtest": bt,
    }


@app.post("/backtest/examples")
async def backtest_examples(req: ExamplesRequest):
    """
    Return example charts and metadata for recent signal occurrences.
    """
    df = await _load(req)
    analysis = _analyse(req, df)
    examples = find_examples(
        analysis,
        num_examples=req.num_examples,
        symbol=req.symbol,
        output_dir=settings.EXAMPLES_DIR,
    )
    return {"examples": examples}
