from __future__ import annotations

import asyncio
from typing import Callable, Optional, Sequence

import structlog

from stockmon.alerts.classifier import Classification, TrendClassifier
from stockmon.alerts.formatting import compose_message
from stockmon.alerts.sampler import HistorySampler, select_range
from stockmon.alerts.state import MonitorState, StateStore
from stockmon.alerts.suggestions import evaluate
from stockmon.chart.render import render_series
from stockmon.config import MonitorConfig
from stockmon.notify.queue import NotifyQueue
from stockmon.utils.time import resolve_tz, utc_now_s
from stockmon.utils.types import (
    BeginEvent,
    CommandEvent,
    FeedEvent,
    OutboundMessage,
    Sample,
    Snapshot,
    SnapshotEvent,
)

log = structlog.get_logger("monitor")

ChartRenderer = Callable[[Sequence[tuple[float, str]], str], bytes]


class MonitorService:
    """
    Owns every subscriber's MonitorState and runs the per-snapshot pipeline:

        classify -> (sample) -> suggestions -> compose -> notify queue

    Inputs:
      - q_events: asyncio.Queue[FeedEvent] (from SnapshotFeedWS)
      - notify:   NotifyQueue[OutboundMessage] (drained by Dispatcher)

    process() is synchronous, so one key's snapshot is fully handled before
    the loop picks up the next event; sends happen on the dispatcher task.
    """
    def __init__(
        self,
        cfg: Optional[MonitorConfig] = None,
        notify: Optional[NotifyQueue] = None,
        q_events: Optional[asyncio.Queue] = None,
        clock: Callable[[], float] = utc_now_s,
        renderer: ChartRenderer = render_series,
    ):
        self.cfg = cfg or MonitorConfig()
        self.notify = notify or NotifyQueue()
        self.q_events = q_events
        self._clock = clock
        self._render = renderer
        self.store = StateStore(default_enabled=self.cfg.auto_enable)
        sampler = HistorySampler(
            interval_s=self.cfg.rules.sample_interval_s,
            tz=resolve_tz(self.cfg.tz_name),
        )
        self.classifier = TrendClassifier(
            rules=self.cfg.rules,
            sampler=sampler,
            total_money_line=self.cfg.total_money_line,
        )
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    # ---------------------------- lifecycle ---------------------------- #

    async def start(self) -> None:
        if self.q_events is None:
            raise RuntimeError("MonitorService.start() needs an events queue")
        self._stop.clear()
        self._task = asyncio.create_task(self._loop(), name="monitor-service")

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _loop(self) -> None:
        try:
            while not self._stop.is_set():
                evt = await self.q_events.get()
                try:
                    self.handle_event(evt)
                except Exception as e:
                    log.error("process_event_failed", key=getattr(evt, "key", None), err=str(e), exc_info=True)
        except asyncio.CancelledError:
            return

    def handle_event(self, evt: FeedEvent) -> None:
        if isinstance(evt, SnapshotEvent):
            self.process(evt.key, evt.snapshot)
        elif isinstance(evt, BeginEvent):
            self.begin(evt.key)
        elif isinstance(evt, CommandEvent):
            self.command(evt)

    # ---------------------------- pipeline ---------------------------- #

    def begin(self, key: str) -> MonitorState:
        st = self.store.ensure(key)
        log.info("monitor_begin", key=key, enabled=st.enabled)
        return st

    def process(self, key: str, snap: Snapshot, now: Optional[float] = None) -> list[OutboundMessage]:
        st = self.store.ensure(key)
        if not st.enabled:
            return []
        now = self._clock() if now is None else now

        result = self.classifier.classify(st, snap, now)
        if result.kind == "baseline":
            log.info("monitor_baseline", key=key, price=snap.unit_price)
            return []
        if result.kind == "duplicate":
            log.debug("monitor_duplicate_tick", key=key, total_money=snap.total_money)
            return []

        out = self._messages_for(key, st, snap, result)
        for msg in out:
            self.notify.try_put(msg)
        return out

    def _messages_for(
        self, key: str, st: MonitorState, snap: Snapshot, result: Classification
    ) -> list[OutboundMessage]:
        if result.kind == "crash":
            log.warning("monitor_crash", key=key, pre_crash_points=len(result.pre_crash_history))
            out: list[OutboundMessage] = []
            if self.cfg.text_on_crash:
                out.append(OutboundMessage(key=key, text=compose_message(result.lines)))
            if self.cfg.chart_on_crash and result.pre_crash_history:
                image = self._render_history(key, result.pre_crash_history, "Before crash")
                if image is not None:
                    out.append(OutboundMessage(key=key, image=image))
            return out

        suggestions = evaluate(
            self.cfg.suggestions, snap, st.up_streak, st.down_streak,
            unbuyable_price=self.cfg.rules.unbuyable_price,
        )
        return [OutboundMessage(key=key, text=compose_message(result.lines, suggestions))]

    def _render_history(self, key: str, history: Sequence[Sample], title: str) -> Optional[bytes]:
        try:
            return self._render(select_range(history), title)
        except Exception as e:
            log.warning("chart_render_failed", key=key, err=str(e))
            return None

    # ---------------------------- control ops ---------------------------- #

    def enable(self, key: str) -> str:
        self.store.ensure(key).enabled = True
        log.info("monitor_enabled", key=key)
        return "Stock monitor enabled"

    def disable(self, key: str) -> str:
        self.store.ensure(key).enabled = False
        log.info("monitor_disabled", key=key)
        return "Stock monitor disabled"

    def clean(self, key: str) -> str:
        self.store.ensure(key).clean()
        log.info("monitor_cleaned", key=key)
        return "Stock history cleared"

    def series(self, key: str, min_pct: float = 0.0, max_pct: float = 100.0) -> list[tuple[float, str]]:
        st = self.store.get(key)
        if st is None:
            return select_range([], min_pct, max_pct)
        return select_range(st.history, min_pct, max_pct)

    def chart(self, key: str, min_pct: float = 0.0, max_pct: float = 100.0) -> Optional[OutboundMessage]:
        """Render the selected part of the history and queue it as an image."""
        points = self.series(key, min_pct, max_pct)
        if not points:
            msg = OutboundMessage(key=key, text="No stock history to chart yet")
        else:
            msg = OutboundMessage(key=key, image=self._render(points, f"Stock price ({key})"))
        self.notify.try_put(msg)
        return msg

    def command(self, evt: CommandEvent) -> Optional[OutboundMessage]:
        if evt.command == "chart":
            try:
                return self.chart(evt.key, evt.min_pct, evt.max_pct)
            except ValueError as e:
                msg = OutboundMessage(key=evt.key, text=f"Cannot chart: {e}")
                self.notify.try_put(msg)
                return msg
        handler = {"enable": self.enable, "disable": self.disable, "clean": self.clean}[evt.command]
        msg = OutboundMessage(key=evt.key, text=handler(evt.key))
        self.notify.try_put(msg)
        return msg
