import numpy as np
import pandas as pd
import pytest

from signal_core.indicators import (
    compute_atr,
    compute_bollinger,
    compute_ema,
    compute_fibonacci,
    compute_macd,
    compute_rsi,
    compute_sma,
    compute_vwap,
)


def _random_walk(n, seed=7):
    rng = np.random.default_rng(seed)
    return 100 + np.cumsum(rng.normal(0, 1, n))


def test_compute_sma():
    closes = list(range(1, 16))
    sma5 = compute_sma(closes, 5)
    assert len(sma5) == 15
    assert sma5.iloc[:4].isna().all()
    # index 4 is the mean of 1..5
    assert sma5.iloc[4] == 3
    assert sma5.iloc[-1] == 13


def test_compute_sma_keeps_series_index():
    series = pd.Series([1.0, 2.0, 3.0], index=["a", "b", "c"])
    assert list(compute_sma(series, 2).index) == ["a", "b", "c"]


def test_compute_sma_short_input_is_all_absent():
    out = compute_sma([1, 2], 5)
    assert len(out) == 2
    assert out.isna().all()


def test_compute_ema():
    ema3 = compute_ema([1, 2, 3, 4, 5], 3)
    # seeded with the SMA of the first three points, k = 0.5
    assert ema3.iloc[:2].isna().all()
    assert ema3.iloc[2] == pytest.approx(2.0)
    assert ema3.iloc[3] == pytest.approx(3.0)
    assert ema3.iloc[4] == pytest.approx(4.0)


@pytest.mark.parametrize("period", [1, 3, 7, 20])
def test_moving_average_prefix(period):
    values = _random_walk(20)
    for out in (compute_sma(values, period), compute_ema(values, period)):
        assert len(out) == 20
        assert out.iloc[: period - 1].isna().all()
        assert out.iloc[period - 1:].notna().all()


def test_compute_rsi():
    rsi = compute_rsi([1, 2, 1, 2], 2)
    assert rsi.iloc[:2].isna().all()
    assert rsi.iloc[2] == pytest.approx(50.0)
    assert rsi.iloc[3] == pytest.approx(75.0)


def test_compute_rsi_flat_series_reads_zero():
    # zero average loss is replaced by 0.001, so rs = 0 and RSI = 0
    rsi = compute_rsi([100.0] * 20, 14)
    assert rsi.iloc[:14].isna().all()
    assert (rsi.iloc[14:] == 0.0).all()


def test_compute_rsi_rising_series_stays_below_100():
    rsi = compute_rsi(np.arange(1.0, 41.0), 14)
    valid = rsi.dropna()
    assert (valid > 99).all()
    assert (valid < 100).all()


def test_compute_rsi_short_input():
    rsi = compute_rsi(list(range(14)), 14)
    assert len(rsi) == 14
    assert rsi.isna().all()


def test_compute_rsi_bounded():
    rsi = compute_rsi(_random_walk(300), 14).dropna()
    assert len(rsi) == 300 - 14
    assert ((rsi >= 0) & (rsi <= 100)).all()


def test_compute_macd():
    close = _random_walk(120)
    macd = compute_macd(close)
    assert list(macd.columns) == ["macd", "signal", "histogram"]
    assert macd["macd"].iloc[:25].isna().all()
    assert macd["macd"].iloc[25:].notna().all()
    assert macd["signal"].iloc[:33].isna().all()
    assert macd["signal"].iloc[33:].notna().all()
    defined = macd.dropna()
    np.testing.assert_allclose(defined["histogram"], defined["macd"] - defined["signal"])


def test_compute_macd_signal_is_ema_of_macd_line():
    close = _random_walk(80)
    macd = compute_macd(close)
    expected = compute_ema(macd["macd"].iloc[25:].to_numpy(), 9).to_numpy()
    np.testing.assert_allclose(macd["signal"].iloc[25:].to_numpy(), expected)


def test_compute_macd_short_input():
    macd = compute_macd(_random_walk(34))
    assert len(macd) == 34
    assert macd.isna().all().all()


def test_compute_bollinger():
    bb = compute_bollinger([1.0, 2.0, 3.0], window=3)
    std = np.sqrt(2.0 / 3.0)
    assert bb["middle"].iloc[2] == pytest.approx(2.0)
    assert bb["upper"].iloc[2] == pytest.approx(2.0 + 2 * std)
    assert bb["lower"].iloc[2] == pytest.approx(2.0 - 2 * std)
    assert bb.iloc[:2].isna().all().all()


def test_compute_bollinger_flat_series_collapses():
    bb = compute_bollinger([50.0] * 25)
    assert bb.iloc[:19].isna().all().all()
    np.testing.assert_allclose(bb["upper"].iloc[19:], 50.0)
    np.testing.assert_allclose(bb["lower"].iloc[19:], 50.0)


def test_compute_vwap():
    prices = [1.0, 2.0, 3.0, 4.0]
    vwap = compute_vwap(prices, prices, prices, [1, 1, 1, 1], window=2)
    assert np.isnan(vwap.iloc[0])
    assert vwap.iloc[1] == pytest.approx(1.5)
    assert vwap.iloc[3] == pytest.approx(3.5)


def test_compute_vwap_zero_volume_is_absent():
    prices = [1.0, 2.0, 3.0, 4.0]
    vwap = compute_vwap(prices, prices, prices, [0, 0, 1, 1], window=2)
    assert np.isnan(vwap.iloc[1])
    assert vwap.iloc[2] == pytest.approx(3.0)


def test_compute_vwap_rejects_misaligned_inputs():
    with pytest.raises(ValueError):
        compute_vwap([1, 2, 3], [1, 2, 3], [1, 2, 3], [1, 1], window=2)


def test_compute_atr():
    atr = compute_atr([2.0, 3.0, 4.0], [1.0, 1.0, 2.0], [1.5, 2.5, 3.0], window=2)
    assert np.isnan(atr.iloc[0])
    # true ranges 1, 2, 2
    assert atr.iloc[1] == pytest.approx(1.5)
    assert atr.iloc[2] == pytest.approx(1.75)


def test_compute_atr_non_negative():
    close = _random_walk(200)
    high = close + 1.5
    low = close - 1.5
    atr = compute_atr(high, low, close).dropna()
    assert len(atr) == 200 - 13
    assert (atr >= 0).all()


def test_compute_atr_short_input():
    atr = compute_atr([1, 2], [0, 1], [0.5, 1.5], window=14)
    assert len(atr) == 2
    assert atr.isna().all()


def test_compute_fibonacci_uptrend():
    fib = compute_fibonacci([10, 11, 12, 13, 14], [5, 6, 7, 8, 9], lookback=5)
    assert fib.trend == "up"
    assert fib.levels["0"] == 5
    assert fib.levels["1"] == 14
    assert fib.levels["0.5"] == pytest.approx(9.5)
    assert fib.levels["0.236"] == pytest.approx(5 + 9 * 0.236)


def test_compute_fibonacci_downtrend():
    fib = compute_fibonacci([14, 13, 12, 11, 10], [9, 8, 7, 6, 5], lookback=5)
    assert fib.trend == "down"
    assert fib.levels["0"] == 14
    assert fib.levels["1"] == 5
    assert fib.levels["0.236"] == pytest.approx(14 - 9 * 0.236)


def test_compute_fibonacci_uses_trailing_window():
    highs = [100, 1, 2, 3, 4, 5]
    lows = [0, 0.5, 1, 1.5, 2, 2.5]
    fib = compute_fibonacci(highs, lows, lookback=5)
    assert fib.levels["1"] == 5
    assert fib.levels["0"] == 0.5


def test_compute_fibonacci_short_input():
    fib = compute_fibonacci([1, 2, 3], [0, 1, 2], lookback=100)
    assert fib.trend == "up"
    assert set(fib.levels) == {"0", "0.236", "0.382", "0.5", "0.618", "0.786", "1"}
    assert all(v == 0 for v in fib.levels.values())


def test_indicators_are_deterministic():
    close = _random_walk(150)
    high, low = close + 1, close - 1
    volume = np.full(150, 500.0)
    for fn in (
        lambda: compute_rsi(close),
        lambda: compute_ema(close, 10),
        lambda: compute_atr(high, low, close),
        lambda: compute_vwap(high, low, close, volume),
    ):
        pd.testing.assert_series_equal(fn(), fn())
    pd.testing.assert_frame_equal(compute_macd(close), compute_macd(close))
