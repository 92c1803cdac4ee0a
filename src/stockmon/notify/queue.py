from __future__ import annotations
import asyncio
from dataclasses import dataclass

import structlog

from stockmon.utils.types import OutboundMessage

log = structlog.get_logger("notify_queue")

@dataclass(slots=True)
class QueueStats:
    enq_ok: int = 0
    enq_drop: int = 0
    deq_ok: int = 0

class NotifyQueue:
    """
    Bounded hand-off between the monitor service and the dispatcher.
    try_put() never blocks: a full queue drops the message so
    classification is never held up by slow destinations.
    """
    def __init__(self, maxsize: int = 2000):
        self._q: asyncio.Queue[OutboundMessage] = asyncio.Queue(maxsize=maxsize)
        self.stats = QueueStats()

    def try_put(self, msg: OutboundMessage) -> bool:
        try:
            self._q.put_nowait(msg)
        except asyncio.QueueFull:
            self.stats.enq_drop += 1
            log.warning("notify_queue_full_drop", key=msg.key, dropped=self.stats.enq_drop)
            return False
        self.stats.enq_ok += 1
        return True

    async def get(self) -> OutboundMessage:
        msg = await self._q.get()
        self.stats.deq_ok += 1
        return msg

    def get_nowait(self) -> OutboundMessage:
        msg = self._q.get_nowait()
        self.stats.deq_ok += 1
        return msg

    def empty(self) -> bool:
        return self._q.empty()

    def qsize(self) -> int:
        return self._q.qsize()
