from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Optional

import aiohttp
import structlog

from stockmon.config import ConfigError
from stockmon.notify.destinations import Destination, DestinationError
from stockmon.utils.types import OutboundMessage

log = structlog.get_logger("telegram")

API_BASE = "https://api.telegram.org"

# --------- small rate limiter (token bucket) ----------

class RateLimiter:
    def __init__(self, rate_per_sec: float, burst: int = 1):
        self.rate = float(rate_per_sec)
        self.capacity = int(burst)
        self.tokens = float(burst)
        self.updated: Optional[float] = None
        self._lock = asyncio.Lock()

    async def acquire(self):
        loop = asyncio.get_running_loop()
        async with self._lock:
            now = loop.time()
            if self.updated is None:
                self.updated = now
            # refill
            self.tokens = min(self.capacity, self.tokens + (now - self.updated) * self.rate)
            self.updated = now
            if self.tokens < 1.0:
                await asyncio.sleep((1.0 - self.tokens) / self.rate)
                self.updated = loop.time()
                self.tokens = 1.0
            self.tokens -= 1.0

# --------- config & destination ----------

@dataclass(slots=True)
class TelegramConfig:
    bot_token: str
    chat_id: str                      # personal chat id or group id
    parse_mode: Optional[str] = None  # "HTML" or "MarkdownV2" or None
    timeout_s: float = 8.0
    per_chat_rate_per_sec: float = 1.0
    per_chat_burst: int = 3
    api_base: str = API_BASE

class TelegramDestination(Destination):
    """
    Sends alerts to one Telegram chat. One attempt per message: a network
    error or non-200 reply raises DestinationError and the dispatcher moves on.
    """
    def __init__(self, cfg: TelegramConfig, session: Optional[aiohttp.ClientSession] = None):
        self.cfg = cfg
        self.name = f"telegram:{cfg.chat_id}"
        self._session = session
        self._owns_session = session is None
        self._rl = RateLimiter(rate_per_sec=cfg.per_chat_rate_per_sec, burst=cfg.per_chat_burst)

    async def start(self) -> None:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.cfg.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

    async def stop(self) -> None:
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    def _url(self, method: str) -> str:
        return f"{self.cfg.api_base}/bot{self.cfg.bot_token}/{method}"

    async def send(self, msg: OutboundMessage) -> None:
        if self._session is None:
            await self.start()
        if msg.image:
            form = aiohttp.FormData()
            form.add_field("chat_id", self.cfg.chat_id)
            if msg.text:
                form.add_field("caption", msg.text[:1024])
            form.add_field("photo", msg.image, filename="chart.png", content_type="image/png")
            await self._post("sendPhoto", form)
            return
        if msg.text:
            payload = {"chat_id": self.cfg.chat_id, "text": msg.text}
            if self.cfg.parse_mode:
                payload["parse_mode"] = self.cfg.parse_mode
            await self._post("sendMessage", payload)

    async def _post(self, method: str, data) -> None:
        assert self._session is not None
        await self._rl.acquire()
        try:
            async with self._session.post(self._url(method), data=data) as resp:
                if resp.status == 200:
                    return
                detail = await _maybe_text(resp)
                raise DestinationError(f"telegram {method} HTTP {resp.status}: {detail[:200]}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DestinationError(f"telegram {method} network error: {e}") from e

def config_from_env(chat_id: str) -> TelegramConfig:
    token = os.getenv("TELEGRAM_BOT_TOKEN")
    if not token:
        raise ConfigError("TELEGRAM_BOT_TOKEN is not set")
    return TelegramConfig(
        bot_token=token,
        chat_id=chat_id,
        parse_mode=os.getenv("TELEGRAM_PARSE_MODE") or None,
    )

async def _maybe_text(resp: aiohttp.ClientResponse) -> str:
    try:
        return await resp.text()
    except Exception:
        return "<no body>"
