# src/stockmon/notify/destinations.py
from __future__ import annotations

from typing import Awaitable, Callable

import structlog

from stockmon.utils.types import OutboundMessage

log = structlog.get_logger("destinations")


class DestinationError(Exception):
    """A destination could not take the message (offline, rejected, ...)."""


class Destination:
    """Base for outbound channels. send() raises DestinationError on failure."""
    name: str = "destination"

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def send(self, msg: OutboundMessage) -> None:
        raise NotImplementedError


class ConsoleDestination(Destination):
    name = "console"

    def __init__(self, printer: Callable[[str], None] = print):
        self._print = printer

    async def send(self, msg: OutboundMessage) -> None:
        if msg.text:
            self._print(f"[{msg.key}]\n{msg.text}")
        if msg.image:
            self._print(f"[{msg.key}] <chart image, {len(msg.image)} bytes>")


class RoomDestination(Destination):
    """
    Posts text back into the subscriber's room through the feed connection.
    `send_json` is the feed client's send (raises if not connected).
    Images are not supported by the room protocol and are skipped.
    """
    name = "room"

    def __init__(self, send_json: Callable[[dict], Awaitable[None]]):
        self._send_json = send_json

    async def send(self, msg: OutboundMessage) -> None:
        if msg.image and not msg.text:
            log.debug("room_skip_image", key=msg.key)
            return
        if not msg.text:
            return
        try:
            await self._send_json({"action": "send", "key": msg.key, "message": msg.text})
        except DestinationError:
            raise
        except Exception as e:
            raise DestinationError(f"room send failed: {e}") from e
