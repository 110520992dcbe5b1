"""
Headless chart rendering for analysis results.

``render_chart`` draws close prices with optional overlay lines and
buy/sell markers.  ``find_examples`` saves a snapshot around each of the
most recent signals and reports how price moved afterwards.
"""
from __future__ import annotations

import os
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")  # allow headless environments
import matplotlib.pyplot as plt

from .pipeline import AnalysisResult
from .rules import to_position_signal


def render_chart(
    df: pd.DataFrame,
    path: str,
    overlays: Optional[Dict[str, pd.Series]] = None,
    signals: Optional[pd.DataFrame] = None,
    title: str = "",
) -> str:
    """Render close prices plus overlays to ``path`` and return the path."""
    fig, ax = plt.subplots(figsize=(8, 4))
    x = df.index
    ax.plot(x, df["close"].to_numpy(), label="Close", color="black", linewidth=1)
    for name, values in (overlays or {}).items():
        ax.plot(x, np.asarray(values, dtype=float), label=name, alpha=0.7, linewidth=1)
    if signals is not None:
        buy = signals["buy"].to_numpy()
        sell = signals["sell"].to_numpy()
        close = df["close"].to_numpy()
        ax.scatter(x[buy], close[buy], marker="^", color="#10b981", label="Buy", zorder=3)
        ax.scatter(x[sell], close[sell], marker="v", color="#ef4444", label="Sell", zorder=3)
    ax.set_title(title)
    ax.set_ylabel("Price")
    ax.legend(loc="upper left", fontsize=7)
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    return path


def find_examples(
    analysis: AnalysisResult,
    num_examples: int = 3,
    lookback: int = 30,
    lookforward: int = 30,
    symbol: str = "",
    output_dir: str = "examples",
) -> List[dict]:
    """
    Snapshot a window around each of the last ``num_examples`` signals.
    Returns a list of dicts with metadata, chart path and the price
    change ``lookforward`` bars later (None if the series ends first).
    """
    df = analysis.series
    signal = to_position_signal(analysis.signals)
    positions = np.flatnonzero(signal.to_numpy() != 0)[-num_examples:] if num_examples > 0 else []
    examples = []
    for i in positions:
        start_i = max(0, i - lookback)
        end_i = min(len(df) - 1, i + lookforward)
        window = df.iloc[start_i:end_i + 1]
        overlays = {
            "VWAP": analysis.vwap.iloc[start_i:end_i + 1],
            "Swing high": analysis.structure["highs"].iloc[start_i:end_i + 1],
            "Swing low": analysis.structure["lows"].iloc[start_i:end_i + 1],
        }
        ts = df.index[i]
        filename = f"{symbol}_{ts.strftime('%Y%m%d%H%M')}.png"
        filepath = render_chart(
            window,
            os.path.join(output_dir, filename),
            overlays=overlays,
            signals=analysis.signals.iloc[start_i:end_i + 1],
            title=f"{symbol} signal on {ts.strftime('%Y-%m-%d %H:%M')}",
        )
        if i + lookforward < len(df):
            curr_price = df["close"].iloc[i]
            outcome_pct = (df["close"].iloc[i + lookforward] - curr_price) / curr_price
        else:
            outcome_pct = None
        examples.append({
            "timestamp": ts.isoformat(),
            "signal": int(signal.iloc[i]),
            "chart_path": filepath,
            "outcome_pct": None if outcome_pct is None else float(outcome_pct),
        })
    return examples
