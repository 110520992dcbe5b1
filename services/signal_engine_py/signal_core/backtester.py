"""
Simple backtesting engine for signal-driven strategies.

The engine holds at most one long position.  It enters on a buy signal
while flat and exits on a sell signal, or on the last bar, while long.
It produces a trade log, an equity curve with one entry per bar plus the
starting capital, and summary statistics.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List

import numpy as np
import pandas as pd

from .settings import setup_logger

logger = setup_logger("signal_core.backtester")

TRADING_BARS_PER_YEAR = 250


@dataclass
class Trade:
    entry_index: int
    exit_index: int
    entry_price: float
    exit_price: float
    profit_percent: float


@dataclass
class BacktestResult:
    equity_curve: pd.Series
    trades: List[Trade] = field(default_factory=list)
    win_rate: float = 0.0
    profit_factor: float = 0.0
    max_drawdown: float = 0.0
    annual_return: float = 0.0
    initial_capital: float = 10000.0

    @property
    def final_equity(self) -> float:
        return float(self.equity_curve.iloc[-1])

    def to_dict(self) -> dict:
        return {
            "equity_curve": [float(x) for x in self.equity_curve.tolist()],
            "trades": [
                {
                    "entry_index": t.entry_index,
                    "exit_index": t.exit_index,
                    "entry_price": float(t.entry_price),
                    "exit_price": float(t.exit_price),
                    "profit_percent": float(t.profit_percent),
                }
                for t in self.trades
            ],
            "win_rate": self.win_rate,
            "profit_factor": self.profit_factor,
            "max_drawdown": self.max_drawdown,
            "annual_return": self.annual_return,
        }


def _profit_factor(trades: List[Trade]) -> float:
    total_profit = sum(t.profit_percent for t in trades if t.profit_percent > 0)
    total_loss = abs(sum(t.profit_percent for t in trades if t.profit_percent <= 0))
    if total_loss > 0:
        return total_profit / total_loss
    return math.inf if total_profit > 0 else 0.0


def _max_drawdown(equity: np.ndarray) -> float:
    peaks = np.maximum.accumulate(equity)
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdowns = np.where(peaks > 0, (peaks - equity) / peaks, 0.0)
    return float(max(drawdowns.max(), 0.0))


def _annual_return(final_equity: float, initial_capital: float, bars: int) -> float:
    total_return = (float(final_equity) - float(initial_capital)) / float(initial_capital)
    try:
        return (1 + total_return) ** (TRADING_BARS_PER_YEAR / bars) - 1
    except OverflowError:
        return math.inf


def backtest(
    close,
    buy,
    sell,
    initial_capital: float = 10000.0,
) -> BacktestResult:
    """
    Run a long-only, single-position backtest.

    Buy signals are only read while flat and sell signals only while
    long; the buy check comes first, so a buy on the final bar opens a
    position that is left open.  Profits are recorded in percent.  The
    annual return assumes 250 bars per year regardless of bar size.
    """
    prices = np.asarray(close, dtype=float)
    buys = np.asarray(buy, dtype=bool)
    sells = np.asarray(sell, dtype=bool)
    if len(prices) == 0 or len(buys) == 0 or len(sells) == 0:
        logger.warning("Backtest skipped: empty prices or signals")
        return BacktestResult(
            equity_curve=pd.Series([float(initial_capital)]),
            initial_capital=initial_capital,
        )
    if not len(prices) == len(buys) == len(sells):
        raise ValueError(
            f"backtest: close ({len(prices)}), buy ({len(buys)}) and sell ({len(sells)}) differ in length"
        )

    n = len(prices)
    equity = [float(initial_capital)]
    trades: List[Trade] = []
    in_position = False
    entry_price = 0.0
    entry_index = 0

    for i in range(n):
        equity.append(equity[-1])
        if buys[i] and not in_position:
            in_position = True
            entry_price = prices[i]
            entry_index = i
        elif (sells[i] or i == n - 1) and in_position:
            in_position = False
            exit_price = prices[i]
            profit_percent = (exit_price - entry_price) / entry_price * 100
            equity[-1] = equity[-1] * (1 + profit_percent / 100)
            trades.append(Trade(entry_index, i, float(entry_price), float(exit_price), float(profit_percent)))

    wins = [t for t in trades if t.profit_percent > 0]
    win_rate = len(wins) / len(trades) if trades else 0.0
    equity_arr = np.asarray(equity)
    result = BacktestResult(
        equity_curve=pd.Series(equity_arr),
        trades=trades,
        win_rate=win_rate,
        profit_factor=_profit_factor(trades),
        max_drawdown=_max_drawdown(equity_arr),
        annual_return=_annual_return(equity[-1], initial_capital, n),
        initial_capital=initial_capital,
    )
    logger.debug(
        "Backtest over %d bars: %d trades, win rate %.2f, final equity %.2f",
        n, len(trades), win_rate, equity[-1],
    )
    return result
