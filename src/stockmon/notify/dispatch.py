from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import aiohttp
import structlog

from stockmon.notify.destinations import Destination, DestinationError
from stockmon.notify.queue import NotifyQueue
from stockmon.utils.types import OutboundMessage

log = structlog.get_logger("dispatch")


class Dispatcher:
    """
    Background worker draining a NotifyQueue and fanning every message out
    to all destinations. Best-effort per destination: a failure is logged,
    not retried, and never stops the remaining destinations or later messages.
    """
    def __init__(self, queue: NotifyQueue, destinations: Sequence[Destination]):
        self.queue = queue
        self.destinations = list(destinations)
        self.failures: dict[str, int] = {d.name: 0 for d in self.destinations}
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        for d in self.destinations:
            await d.start()
        self._stop.clear()
        self._task = asyncio.create_task(self._loop(), name="dispatcher")

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        for d in self.destinations:
            try:
                await d.stop()
            except Exception as e:
                log.warning("destination_stop_failed", dest=d.name, err=str(e))

    async def _loop(self) -> None:
        try:
            while not self._stop.is_set():
                msg = await self.queue.get()
                await self.dispatch(msg)
        except asyncio.CancelledError:
            return

    async def dispatch(self, msg: OutboundMessage) -> dict[str, bool]:
        """Send one message everywhere; returns destination name -> delivered."""
        results: dict[str, bool] = {}
        for d in self.destinations:
            try:
                await d.send(msg)
                results[d.name] = True
            except (DestinationError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                self._failed(d, msg, results, e)
            except Exception as e:
                # e.g. RuntimeError from a closed aiohttp session
                self._failed(d, msg, results, e, unexpected=True)
        return results

    def _failed(
        self,
        d: Destination,
        msg: OutboundMessage,
        results: dict[str, bool],
        err: Exception,
        unexpected: bool = False,
    ) -> None:
        self.failures[d.name] = self.failures.get(d.name, 0) + 1
        results[d.name] = False
        log.warning(
            "dispatch_destination_failed",
            dest=d.name,
            key=msg.key,
            err=str(err),
            err_type=type(err).__name__,
            unexpected=unexpected,
        )
