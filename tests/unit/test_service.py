import asyncio

import pytest

from stockmon.alerts.formatting import HEADER_LINES
from stockmon.alerts.service import MonitorService
from stockmon.alerts.suggestions import PriceRange, SuggestionsEnabled
from stockmon.config import MonitorConfig
from stockmon.notify.queue import NotifyQueue
from stockmon.utils.types import BeginEvent, CommandEvent, Snapshot, SnapshotEvent

T0 = 1_700_000_000.0


class FakeRenderer:
    def __init__(self):
        self.calls = []

    def __call__(self, series, title):
        self.calls.append((list(series), title))
        return b"\x89PNG-fake"


def drain(q: NotifyQueue):
    out = []
    while not q.empty():
        out.append(q.get_nowait())
    return out


def make_service(**cfg_kw):
    renderer = FakeRenderer()
    svc = MonitorService(cfg=MonitorConfig(**cfg_kw), notify=NotifyQueue(), renderer=renderer)
    return svc, renderer


def test_end_to_end_rise():
    svc, _ = make_service()
    assert svc.process("room", Snapshot(10, 100, 1000), now=T0) == []
    out = svc.process("room", Snapshot(12, 100, 1200), now=T0 + 5)

    assert len(out) == 1
    lines = out[0].text.split("\n")
    assert lines[: len(HEADER_LINES)] == list(HEADER_LINES)
    body = lines[len(HEADER_LINES):]
    assert body[0] == "Rising"
    assert "+2.0000 / +20.00%" in body[1]
    assert body[2].startswith("Price:")
    assert body[3].startswith("Total stock:")
    assert body[4].startswith("Total money:")
    assert svc.store.get("room").up_streak == 1
    # also handed to the dispatcher queue
    assert drain(svc.notify) == out


def test_end_to_end_crash_text_and_chart():
    svc, renderer = make_service(chart_on_crash=True)
    svc.process("room", Snapshot(50, 500, 25000), now=T0)
    svc.process("room", Snapshot(52, 500, 26000), now=T0 + 10)
    out = svc.process("room", Snapshot(1, 1000, 1000), now=T0 + 20)

    assert len(out) == 2
    assert "Market crash!" in out[0].text
    assert "500 shares lost before crash" in out[0].text
    assert out[1].image == b"\x89PNG-fake"
    # chart shows the history as it was before the crash
    assert [p for p, _ in renderer.calls[0][0]] == [52.0]

    st = svc.store.get("room")
    assert st.up_streak == 0 and st.down_streak == 0
    assert [s.price for s in st.history] == [1.0]


def test_crash_text_can_be_turned_off():
    svc, renderer = make_service(text_on_crash=False)
    svc.process("room", Snapshot(50, 500, 25000), now=T0)
    assert svc.process("room", Snapshot(1, 1000, 1000), now=T0 + 1) == []
    assert renderer.calls == []


def test_no_chart_when_nothing_was_sampled():
    svc, renderer = make_service(chart_on_crash=True)
    svc.process("room", Snapshot(50, 500, 25000), now=T0)
    out = svc.process("room", Snapshot(1, 1000, 1000), now=T0 + 1)
    assert len(out) == 1 and out[0].image is None
    assert renderer.calls == []


def test_suggestions_are_appended_to_move_messages():
    svc, _ = make_service(suggestions=SuggestionsEnabled(sell_range=PriceRange(10, 20)))
    svc.process("k", Snapshot(10, 100, 1000), now=T0)
    out = svc.process("k", Snapshot(12, 100, 1200), now=T0 + 1)
    assert out[0].text.split("\n")[-1].startswith("Suggestion: sell")


def test_duplicate_tick_produces_nothing():
    svc, _ = make_service()
    svc.process("k", Snapshot(10, 100, 1000), now=T0)
    assert svc.process("k", Snapshot(11, 100, 1000), now=T0 + 1) == []
    assert svc.notify.empty()


def test_disabled_key_ignores_snapshots():
    svc, _ = make_service()
    assert svc.disable("k") == "Stock monitor disabled"
    svc.process("k", Snapshot(10, 100, 1000), now=T0)
    assert svc.store.get("k").last_snapshot is None

    svc.enable("k")
    svc.process("k", Snapshot(10, 100, 1000), now=T0)
    assert svc.store.get("k").last_snapshot is not None


def test_auto_enable_off_creates_disabled_state():
    svc, _ = make_service(auto_enable=False)
    st = svc.begin("k")
    assert st.enabled is False
    assert svc.process("k", Snapshot(10, 100, 1000), now=T0) == []


def test_keys_are_independent():
    svc, _ = make_service()
    svc.process("a", Snapshot(10, 100, 1000), now=T0)
    svc.process("b", Snapshot(10, 100, 1000), now=T0)
    svc.process("a", Snapshot(11, 100, 1100), now=T0 + 1)
    svc.process("b", Snapshot(9, 100, 900), now=T0 + 1)
    assert svc.store.get("a").up_streak == 1 and svc.store.get("a").down_streak == 0
    assert svc.store.get("b").down_streak == 1 and svc.store.get("b").up_streak == 0


def test_clean_resets_history_and_baseline():
    svc, _ = make_service()
    svc.process("k", Snapshot(10, 100, 1000), now=T0)
    svc.process("k", Snapshot(11, 100, 1100), now=T0 + 1)
    assert svc.series("k") == [(11.0, svc.classifier.sampler.label(T0 + 1))]

    svc.clean("k")
    st = svc.store.get("k")
    assert st.history == [] and st.last_snapshot is None
    # next snapshot is a fresh baseline
    assert svc.process("k", Snapshot(20, 100, 2000), now=T0 + 2) == []


def test_series_for_unknown_key_is_empty():
    svc, _ = make_service()
    assert svc.series("nobody") == []


def test_chart_command_renders_selected_range():
    svc, renderer = make_service()
    svc.process("k", Snapshot(10, 100, 1000), now=T0)
    for i, p in enumerate([11, 12, 13, 14]):
        svc.process("k", Snapshot(p, 100, 1000 + 100 * (i + 1)), now=T0 + 100 * (i + 1))
    drain(svc.notify)

    msg = svc.command(CommandEvent(key="k", command="chart", min_pct=50, max_pct=100))
    assert msg.image == b"\x89PNG-fake"
    assert [p for p, _ in renderer.calls[-1][0]] == [13.0, 14.0]

    bad = svc.command(CommandEvent(key="k", command="chart", min_pct=80, max_pct=20))
    assert bad.text.startswith("Cannot chart")


def test_chart_with_empty_history_replies_with_text():
    svc, renderer = make_service()
    msg = svc.chart("k")
    assert msg.image is None and "No stock history" in msg.text
    assert renderer.calls == []


@pytest.mark.parametrize("cmd,reply", [
    ("enable", "Stock monitor enabled"),
    ("disable", "Stock monitor disabled"),
    ("clean", "Stock history cleared"),
])
def test_control_commands_reply(cmd, reply):
    svc, _ = make_service()
    msg = svc.command(CommandEvent(key="k", command=cmd))
    assert msg.text == reply
    assert drain(svc.notify) == [msg]


@pytest.mark.asyncio
async def test_event_loop_processes_feed_events():
    q_events = asyncio.Queue()
    clock = iter([T0, T0 + 1, T0 + 2])
    svc = MonitorService(
        cfg=MonitorConfig(), notify=NotifyQueue(), q_events=q_events,
        clock=lambda: next(clock), renderer=FakeRenderer(),
    )
    await svc.start()

    await q_events.put(BeginEvent("room"))
    await q_events.put(SnapshotEvent("room", Snapshot(10, 100, 1000)))
    await q_events.put(SnapshotEvent("room", Snapshot(9, 100, 900)))

    msg = await asyncio.wait_for(svc.notify.get(), timeout=2.0)
    assert "Falling" in msg.text
    await svc.stop()


@pytest.mark.asyncio
async def test_event_loop_survives_a_failing_event():
    q_events = asyncio.Queue()
    svc = MonitorService(cfg=MonitorConfig(), notify=NotifyQueue(), q_events=q_events)
    calls = {"n": 0}
    real = svc.process

    def flaky(key, snap, now=None):
        calls["n"] += 1
        if calls["n"] == 1:
            raise ZeroDivisionError("boom")
        return real(key, snap, now=T0 + calls["n"])

    svc.process = flaky
    await svc.start()
    for money in (1000, 1100, 1200):
        await q_events.put(SnapshotEvent("k", Snapshot(money / 100, 100, money)))

    msg = await asyncio.wait_for(svc.notify.get(), timeout=2.0)
    assert "Rising" in msg.text
    await svc.stop()
