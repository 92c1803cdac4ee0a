from __future__ import annotations

import asyncio
import json
import random
from dataclasses import dataclass
from typing import Optional

import structlog
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed

from stockmon.ingest import parser  # exposes parse_feed_msg(dict)->FeedEvent|None
from stockmon.notify.destinations import DestinationError
from stockmon.utils.time import utc_now_s
from stockmon.utils.types import FeedEvent


@dataclass(slots=True)
class FeedWSConfig:
    url: str
    keys: list[str]
    token: Optional[str] = None
    # reconnect behavior
    max_backoff_s: float = 30.0
    initial_backoff_s: float = 0.25
    # staleness: warn if nothing arrives for this long
    expect_heartbeat_s: float = 60.0
    open_timeout_s: float = 5.0
    ping_interval_s: float = 20.0


class SnapshotFeedWS:
    """
    Websocket client for the room snapshot feed.

    Lifecycle:
      - Connect -> (auth) -> Subscribe(keys) -> Stream
      - On any error, reconnect with jittered, capped exponential backoff
      - Inbound JSON (object or array) is parsed into FeedEvents and put on
        the events queue without blocking; a full queue drops the event.

    send_json() writes on the live connection; the "room" destination uses it
    to post alerts back into the room.
    """
    def __init__(self, cfg: FeedWSConfig, events_queue: asyncio.Queue):
        self.cfg = cfg
        self.q_events = events_queue
        self._log = structlog.get_logger("feed_ws")
        self._stop = asyncio.Event()
        self._last_msg_ts: float = 0.0
        self._ws = None
        self.connected: bool = False
        self.subscribed: bool = False
        self.dropped: int = 0

    # ---------------------------- public API ---------------------------- #

    async def start(self) -> None:
        backoff = self.cfg.initial_backoff_s
        while not self._stop.is_set():
            try:
                await self._connect_and_stream()
                if self._stop.is_set():
                    break
                # server ended the stream without an error; reconnect gently
                self._log.info("feed_stream_ended_reconnect")
                backoff = self.cfg.initial_backoff_s
                await asyncio.sleep(self._jitter(backoff))
            except asyncio.CancelledError:
                break
            except Exception as e:
                if self._stop.is_set():
                    break
                self._log.warning("feed_error_reconnect", err=str(e), backoff_s=round(backoff, 3))
                await asyncio.sleep(self._jitter(backoff))
                backoff = min(backoff * 2.0, self.cfg.max_backoff_s)
        self._log.info("feed_loop_exit")

    async def stop(self) -> None:
        self._stop.set()
        if self._ws is not None and hasattr(self._ws, "close"):
            try:
                await self._ws.close()
            except Exception as e:
                self._log.debug("feed_close_error", err=str(e))

    async def send_json(self, payload: dict) -> None:
        ws = self._ws
        if ws is None or not self.connected:
            raise DestinationError("feed connection is not open")
        await ws.send(json.dumps(payload, ensure_ascii=False))

    def healthy(self) -> bool:
        if not self.connected or not self.subscribed:
            return False
        return (utc_now_s() - self._last_msg_ts) <= self.cfg.expect_heartbeat_s

    # --------------------------- core internals ------------------------- #

    async def _connect_and_stream(self) -> None:
        self._reset_state()
        self._log.info("feed_connecting", url=self.cfg.url)
        async with ws_connect(
            self.cfg.url,
            open_timeout=self.cfg.open_timeout_s,
            ping_interval=self.cfg.ping_interval_s,
        ) as ws:
            self._ws = ws
            self.connected = True
            self._last_msg_ts = utc_now_s()
            self._log.info("feed_connected")

            if self.cfg.token:
                await ws.send(json.dumps({"action": "auth", "token": self.cfg.token}))
            await ws.send(json.dumps({"action": "subscribe", "keys": list(self.cfg.keys)}))
            self.subscribed = True
            self._log.info("feed_subscribed", keys=list(self.cfg.keys))

            try:
                await self._stream_loop(ws)
            finally:
                self.connected = False
                self._ws = None

    async def _stream_loop(self, ws) -> None:
        while not self._stop.is_set():
            try:
                raw = await asyncio.wait_for(ws.recv(), timeout=self._recv_timeout())
            except asyncio.TimeoutError:
                age = utc_now_s() - self._last_msg_ts
                if age > self.cfg.expect_heartbeat_s:
                    self._log.warning("feed_stale_no_messages", age_s=round(age, 3))
                continue
            except ConnectionClosed as e:
                if self._stop.is_set():
                    return
                self._log.warning("feed_closed", code=getattr(e, "code", None), reason=str(e))
                raise
            except asyncio.CancelledError:
                self._log.info("feed_recv_cancelled")
                return

            self._last_msg_ts = utc_now_s()
            try:
                msg = json.loads(raw)
            except ValueError as e:
                self._log.warning("feed_json_error", err=str(e))
                continue

            for m in (msg if isinstance(msg, list) else [msg]):
                try:
                    evt = parser.parse_feed_msg(m)
                except (TypeError, ValueError) as e:
                    self._log.warning("feed_parse_error", err=str(e), snippet=str(m)[:200])
                    continue
                if evt is not None:
                    self._enqueue(evt)
                else:
                    self._handle_other(m)

        self._log.info("feed_stream_loop_exit")

    def _enqueue(self, evt: FeedEvent) -> None:
        try:
            self.q_events.put_nowait(evt)
        except asyncio.QueueFull:
            self.dropped += 1
            self._log.info("events_queue_full_drop", key=evt.key, dropped=self.dropped)

    def _handle_other(self, m) -> None:
        if isinstance(m, dict) and (m.get("type") or m.get("T")) == "error":
            self._log.warning("feed_server_error", msg=m)

    def _recv_timeout(self) -> float:
        return max(1.0, min(self.cfg.expect_heartbeat_s, 5.0))

    def _reset_state(self) -> None:
        self.connected = False
        self.subscribed = False
        self._last_msg_ts = 0.0
        self._ws = None

    @staticmethod
    def _jitter(base: float) -> float:
        # ±20% jitter
        return base * (0.8 + 0.4 * random.random())
