# src/stockmon/main.py
import os
import asyncio
import logging

import structlog
from dotenv import load_dotenv

from stockmon.config import (
    ConfigError,
    DestinationSpec,
    FeedConfig,
    MonitorConfig,
    feed_config_from_env,
    monitor_config_from_env,
)
from stockmon.alerts.service import MonitorService
from stockmon.ingest.feed_ws import FeedWSConfig, SnapshotFeedWS
from stockmon.notify.destinations import ConsoleDestination, Destination, RoomDestination
from stockmon.notify.dispatch import Dispatcher
from stockmon.notify.queue import NotifyQueue
from stockmon.notify.telegram import TelegramDestination, config_from_env as telegram_config_from_env

load_dotenv()
log = structlog.get_logger()


def configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def build_destinations(specs: tuple[DestinationSpec, ...], feed: SnapshotFeedWS) -> list[Destination]:
    out: list[Destination] = []
    for spec in specs:
        if spec.kind == "console":
            out.append(ConsoleDestination())
        elif spec.kind == "room":
            out.append(RoomDestination(feed.send_json))
        elif spec.kind == "telegram":
            out.append(TelegramDestination(telegram_config_from_env(spec.target)))
    return out


async def run(monitor_cfg: MonitorConfig, feed_cfg: FeedConfig):
    # Queues
    q_events = asyncio.Queue(maxsize=10_000)   # feed -> monitor
    notify_q = NotifyQueue(maxsize=2_000)      # monitor -> dispatcher

    feed = SnapshotFeedWS(
        FeedWSConfig(url=feed_cfg.url, keys=list(feed_cfg.keys), token=feed_cfg.token),
        q_events,
    )
    service = MonitorService(cfg=monitor_cfg, notify=notify_q, q_events=q_events)
    dispatcher = Dispatcher(notify_q, build_destinations(monitor_cfg.destinations, feed))

    for key in feed_cfg.keys:
        service.begin(key)

    log.info(
        "stock_monitor_starting",
        keys=list(feed_cfg.keys),
        destinations=[d.name for d in monitor_cfg.destinations],
        suggestions=type(monitor_cfg.suggestions).__name__,
    )

    await dispatcher.start()
    await service.start()
    try:
        # feed.start() runs until stop()/cancel
        await feed.start()
    finally:
        # graceful shutdown to avoid unclosed sessions
        for obj in (feed, service, dispatcher):
            try:
                await obj.stop()
            except Exception as e:
                log.warning("shutdown_error", component=type(obj).__name__, err=str(e))


def main() -> None:
    configure_logging()
    try:
        monitor_cfg = monitor_config_from_env()
        feed_cfg = feed_config_from_env()
    except ConfigError as e:
        log.error("config_invalid", err=str(e))
        raise SystemExit(2)
    try:
        asyncio.run(run(monitor_cfg, feed_cfg))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
