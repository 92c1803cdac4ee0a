from __future__ import annotations

import math
from datetime import timezone, tzinfo
from typing import Optional, Sequence

from stockmon.utils.time import hour_minute_label, seconds_since
from stockmon.utils.types import Sample, Snapshot


class HistorySampler:
    """
    Decides which snapshots end up in the chart history.

    A point is appended only when the last stored point is older than
    interval_s (or there is none) AND the price moved versus the previous
    snapshot. Roughly one point per interval, flat runs skipped.
    """
    def __init__(self, interval_s: float = 90.0, tz: tzinfo = timezone.utc):
        self.interval_s = float(interval_s)
        self.tz = tz

    def label(self, ts: float) -> str:
        return hour_minute_label(ts, self.tz)

    def should_sample(
        self,
        history: Sequence[Sample],
        previous: Optional[Snapshot],
        snapshot: Snapshot,
        now: float,
    ) -> bool:
        if previous is None:
            return False
        if history and seconds_since(history[-1].ts, now) <= self.interval_s:
            return False
        return snapshot.unit_price != previous.unit_price

    def record(self, history: list[Sample], snapshot: Snapshot, now: float) -> Sample:
        s = Sample(price=snapshot.unit_price, label=self.label(now), ts=float(now))
        history.append(s)
        return s

    def maybe_record(
        self,
        history: list[Sample],
        previous: Optional[Snapshot],
        snapshot: Snapshot,
        now: float,
    ) -> Optional[Sample]:
        if not self.should_sample(history, previous, snapshot, now):
            return None
        return self.record(history, snapshot, now)

    def reset(self, history: list[Sample], snapshot: Snapshot, now: float) -> Sample:
        """Replace the whole buffer with a single point (crash path, no throttle)."""
        history.clear()
        return self.record(history, snapshot, now)


def select_range(
    history: Sequence[Sample], min_pct: float = 0.0, max_pct: float = 100.0
) -> list[tuple[float, str]]:
    """
    Slice history by percentage of its length: [floor(min%*n), floor(max%*n)).
    0..100 is the whole buffer; p..p is empty.
    """
    if not (0.0 <= min_pct <= max_pct <= 100.0):
        raise ValueError(f"invalid range min={min_pct} max={max_pct}; need 0 <= min <= max <= 100")
    n = len(history)
    lo = math.floor(min_pct / 100.0 * n)
    hi = math.floor(max_pct / 100.0 * n)
    return [s.point() for s in history[lo:hi]]
