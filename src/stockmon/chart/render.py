from __future__ import annotations

import io
from typing import Sequence

import matplotlib
matplotlib.use("Agg")  # headless: render to memory only
import matplotlib.pyplot as plt


def render_series(
    series: Sequence[tuple[float, str]],
    title: str = "Stock price",
    max_ticks: int = 12,
) -> bytes:
    """
    Line chart of sampled (price, 'H:MM') points, returned as PNG bytes.
    Labels are thinned to at most max_ticks x-axis ticks.
    """
    if not series:
        raise ValueError("cannot render an empty series")

    prices = [float(p) for p, _ in series]
    labels = [lbl for _, lbl in series]
    xs = list(range(len(prices)))

    fig, ax = plt.subplots(figsize=(10, 5))
    try:
        ax.plot(xs, prices, color="#00BFFF", linewidth=1.5, marker="o", markersize=3)
        step = max(1, len(xs) // max_ticks)
        ax.set_xticks(xs[::step])
        ax.set_xticklabels(labels[::step], rotation=45)
        ax.set_title(title)
        ax.set_xlabel("Time")
        ax.set_ylabel("Price")
        ax.grid(True, linestyle="--", alpha=0.5)
        fig.tight_layout()

        buf = io.BytesIO()
        fig.savefig(buf, format="png")
        return buf.getvalue()
    finally:
        plt.close(fig)
