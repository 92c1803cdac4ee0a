from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

from stockmon.alerts import formatting as fmt
from stockmon.alerts.rules import MonitorRules
from stockmon.alerts.sampler import HistorySampler
from stockmon.alerts.state import MonitorState
from stockmon.utils.types import Sample, Snapshot, same_tick

TickKind = Literal["baseline", "duplicate", "crash", "move"]


@dataclass(slots=True)
class Classification:
    kind: TickKind
    lines: list[str] = field(default_factory=list)
    # chart buffer as it was right before a crash wiped it
    pre_crash_history: list[Sample] = field(default_factory=list)
    sampled: Optional[Sample] = None


class TrendClassifier:
    """
    Compares each snapshot against the stored one for a subscriber and
    updates MonitorState in place:

      no baseline        -> store it, nothing to say
      same total money   -> duplicate tick, state untouched
      crash sentinels    -> reset streaks + history, crash lines
      otherwise          -> streak tracking, delta lines, summary lines,
                            throttled history sample

    Suggestions are evaluated by the caller (only for "move" ticks).
    """
    def __init__(
        self,
        rules: Optional[MonitorRules] = None,
        sampler: Optional[HistorySampler] = None,
        total_money_line: bool = True,
    ):
        self.rules = rules or MonitorRules()
        self.sampler = sampler or HistorySampler(interval_s=self.rules.sample_interval_s)
        self.total_money_line = total_money_line

    def classify(self, state: MonitorState, snap: Snapshot, now: float) -> Classification:
        last = state.last_snapshot
        if last is None:
            state.last_snapshot = snap
            return Classification("baseline")

        if same_tick(last, snap):
            return Classification("duplicate")

        if self.rules.is_crash(snap.unit_price, snap.total_stock):
            return self._crash(state, last, snap, now)

        lines: list[str] = []
        delta = snap.unit_price - last.unit_price
        if delta > 0:
            state.up_streak += 1
            state.down_streak = 0
            lines.append(fmt.streak_line("up", state.up_streak))
            lines.append(fmt.change_line("up", delta, last.unit_price))
        elif delta < 0:
            state.down_streak += 1
            state.up_streak = 0
            lines.append(fmt.streak_line("down", state.down_streak))
            lines.append(fmt.change_line("down", delta, last.unit_price))

        lines.append(fmt.price_line(snap, last, self.rules.unbuyable_price))
        lines.append(fmt.total_stock_line(snap, last))
        if self.total_money_line:
            lines.append(fmt.total_money_line(snap, last))

        sampled = self.sampler.maybe_record(state.history, last, snap, now)
        state.last_snapshot = snap
        return Classification("move", lines, sampled=sampled)

    def _crash(self, state: MonitorState, last: Snapshot, snap: Snapshot, now: float) -> Classification:
        state.up_streak = 0
        state.down_streak = 0
        before = list(state.history)
        lines = fmt.crash_lines(snap, lost_stock=last.total_stock, with_money=self.total_money_line)
        state.last_snapshot = snap
        sampled = self.sampler.reset(state.history, snap, now)
        return Classification("crash", lines, pre_crash_history=before, sampled=sampled)


def classify(
    state: MonitorState,
    snap: Snapshot,
    now: float,
    rules: Optional[MonitorRules] = None,
    total_money_line: bool = True,
) -> Classification:
    """Functional shortcut around TrendClassifier with default sampler settings."""
    return TrendClassifier(rules, total_money_line=total_money_line).classify(state, snap, now)
