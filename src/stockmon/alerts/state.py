from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from stockmon.utils.types import Sample, Snapshot

@dataclass(slots=True)
class MonitorState:
    last_snapshot: Optional[Snapshot] = None
    up_streak: int = 0
    down_streak: int = 0
    enabled: bool = True
    history: list[Sample] = field(default_factory=list)

    def clean(self) -> None:
        """Drop the chart buffer and the baseline; streaks are kept."""
        self.history.clear()
        self.last_snapshot = None

# one state per subscriber key, created on first touch
class StateStore:
    def __init__(self, default_enabled: bool = True):
        self.default_enabled = default_enabled
        self._states: dict[str, MonitorState] = {}

    def get(self, key: str) -> Optional[MonitorState]:
        return self._states.get(key)

    def ensure(self, key: str) -> MonitorState:
        st = self._states.get(key)
        if st is None:
            st = MonitorState(enabled=self.default_enabled)
            self._states[key] = st
        return st
