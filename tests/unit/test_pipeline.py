import os

import numpy as np
import pandas as pd

from conftest import make_series
from signal_core.charts import find_examples, render_chart
from signal_core.pipeline import run_analysis, nan_to_none
from signal_core.rules import SignalConfig
from signal_core.series import empty_series


def test_analysis_outputs_are_aligned(ohlcv):
    result = run_analysis(ohlcv)
    n = len(ohlcv)
    for series in (result.rsi, result.vwap, result.atr):
        assert len(series) == n
    assert len(result.structure) == n
    assert len(result.divergence) == n
    assert len(result.signals) == n
    assert len(result.backtest.equity_curve) == n + 1
    assert set(result.ma) == {10, 20, 50}
    assert set(result.ema) == {12, 26, 50}
    assert list(result.macd.columns) == ["macd", "signal", "histogram"]
    assert result.fibonacci.trend in ("up", "down")


def test_no_signals_during_warmup(ohlcv):
    result = run_analysis(ohlcv)
    assert not result.signals["buy"].iloc[:30].any()
    assert not result.signals["sell"].iloc[:30].any()


def test_oscillating_series_trades(ohlcv):
    result = run_analysis(ohlcv)
    # swing lows plus close above VWAP give buy votes on the upswings
    assert result.signals["buy"].any() or result.signals["sell"].any()
    for trade in result.backtest.trades:
        assert trade.exit_index > trade.entry_index


def test_analysis_is_deterministic(ohlcv):
    first = run_analysis(ohlcv)
    second = run_analysis(ohlcv.copy())
    assert first.signals.equals(second.signals)
    assert first.backtest.equity_curve.equals(second.backtest.equity_curve)


def test_config_flows_through(ohlcv):
    strict = run_analysis(ohlcv, SignalConfig(min_votes=4))
    loose = run_analysis(ohlcv, SignalConfig(min_votes=1))
    assert strict.signals["buy"].sum() <= loose.signals["buy"].sum()


def test_empty_series():
    result = run_analysis(empty_series())
    assert result.empty
    assert result.signals.empty
    assert result.backtest.equity_curve.tolist() == [10000.0]


def test_nan_to_none():
    assert nan_to_none(pd.Series([np.nan, 1.5])) == [None, 1.5]


def test_render_chart_writes_png(tmp_path, ohlcv):
    signals = pd.DataFrame({"buy": [False] * 199 + [True], "sell": [False] * 200}, index=ohlcv.index)
    path = render_chart(ohlcv, str(tmp_path / "charts" / "x.png"), overlays={"SMA": ohlcv["close"]}, signals=signals)
    assert os.path.exists(path)


def test_find_examples_reports_outcomes(tmp_path):
    df = make_series(120)
    analysis = run_analysis(df)
    buy = np.zeros(120, dtype=bool)
    sell = np.zeros(120, dtype=bool)
    buy[40] = True
    sell[100] = True
    analysis.signals = pd.DataFrame({"buy": buy, "sell": sell}, index=df.index)

    examples = find_examples(analysis, num_examples=3, lookforward=30, symbol="TEST", output_dir=str(tmp_path))
    assert [e["signal"] for e in examples] == [1, -1]
    expected = (df["close"].iloc[70] - df["close"].iloc[40]) / df["close"].iloc[40]
    assert examples[0]["outcome_pct"] == expected
    # the second signal is too close to the end to measure
    assert examples[1]["outcome_pct"] is None
    for example in examples:
        assert os.path.exists(example["chart_path"])
        assert os.path.basename(example["chart_path"]).startswith("TEST_")


def test_find_examples_limits_count(tmp_path):
    df = make_series(80)
    analysis = run_analysis(df)
    buy = np.zeros(80, dtype=bool)
    buy[[35, 45, 55]] = True
    analysis.signals = pd.DataFrame({"buy": buy, "sell": np.zeros(80, dtype=bool)}, index=df.index)
    examples = find_examples(analysis, num_examples=2, output_dir=str(tmp_path))
    assert len(examples) == 2
    assert examples[0]["timestamp"] == df.index[45].isoformat()
