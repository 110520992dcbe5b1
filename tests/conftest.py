import os
import sys

import numpy as np
import pytest

# add signal_engine_py to sys.path for tests
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../services/signal_engine_py')))

from signal_core.series import from_arrays  # noqa: E402

DAY_MS = 86_400_000
START_MS = 1_704_067_200_000  # 2024-01-01 00:00 UTC, a Monday


def make_series(n=200, start_ms=START_MS, step_ms=DAY_MS):
    """Oscillating price series with a gentle drift."""
    t = np.arange(n)
    close = 100 + 10 * np.sin(t / 8.0) + t * 0.05
    open_ = np.concatenate([[close[0]], close[:-1]])
    high = np.maximum(open_, close) + 1
    low = np.minimum(open_, close) - 1
    volume = 1000 + (t % 7) * 100
    timestamps = start_ms + t * step_ms
    return from_arrays(
        timestamps.tolist(), open_.tolist(), high.tolist(), low.tolist(), close.tolist(), volume.tolist()
    )


@pytest.fixture
def ohlcv():
    return make_series()
