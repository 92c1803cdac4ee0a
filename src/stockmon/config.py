# src/stockmon/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from stockmon.alerts.rules import MonitorRules
from stockmon.alerts.suggestions import (
    PriceRange,
    SuggestionConfig,
    SuggestionsDisabled,
    SuggestionsEnabled,
)
from stockmon.utils.time import resolve_tz


class ConfigError(ValueError):
    """Raised at startup for unusable configuration."""


@dataclass(frozen=True, slots=True)
class DestinationSpec:
    kind: str                   # "console" | "room" | "telegram"
    target: Optional[str] = None  # chat id for telegram

    @property
    def name(self) -> str:
        return f"{self.kind}:{self.target}" if self.target else self.kind


@dataclass(frozen=True, slots=True)
class MonitorConfig:
    auto_enable: bool = True
    total_money_line: bool = True
    text_on_crash: bool = True
    chart_on_crash: bool = False
    tz_name: str = "UTC"
    rules: MonitorRules = field(default_factory=MonitorRules)
    suggestions: SuggestionConfig = field(default_factory=SuggestionsDisabled)
    destinations: tuple[DestinationSpec, ...] = (DestinationSpec("console"),)


@dataclass(frozen=True, slots=True)
class FeedConfig:
    url: str = "ws://localhost:8765"
    keys: tuple[str, ...] = ("default",)
    token: Optional[str] = None


# ---------------- env parsing helpers ----------------

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")

def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ConfigError(f"{name}: expected a boolean, got {raw!r}")

def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name}: expected a number, got {raw!r}") from None

def _require(env: Mapping[str, str], name: str, toggle: str) -> str:
    raw = env.get(name)
    if raw is None or not raw.strip():
        raise ConfigError(f"{toggle} is on but {name} is not set")
    return raw.strip()

def _parse_range(env: Mapping[str, str], name: str, toggle: str) -> PriceRange:
    raw = _require(env, name, toggle)
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 2:
        raise ConfigError(f"{name}: expected 'low,high', got {raw!r}")
    try:
        return PriceRange(float(parts[0]), float(parts[1]))
    except ValueError as e:
        raise ConfigError(f"{name}: {e}") from None

def _parse_streak(env: Mapping[str, str], name: str, toggle: str) -> int:
    raw = _require(env, name, toggle)
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name}: expected an integer, got {raw!r}") from None

def parse_suggestions(env: Mapping[str, str]) -> SuggestionConfig:
    if not _get_bool(env, "SUGGEST_ENABLED", False):
        return SuggestionsDisabled()

    buy_range = sell_range = None
    buy_streak = sell_streak = None
    if _get_bool(env, "SUGGEST_BUY_RANGE_ENABLED", False):
        buy_range = _parse_range(env, "SUGGEST_BUY_RANGE", "SUGGEST_BUY_RANGE_ENABLED")
    if _get_bool(env, "SUGGEST_SELL_RANGE_ENABLED", False):
        sell_range = _parse_range(env, "SUGGEST_SELL_RANGE", "SUGGEST_SELL_RANGE_ENABLED")
    if _get_bool(env, "SUGGEST_BUY_STREAK_ENABLED", False):
        buy_streak = _parse_streak(env, "SUGGEST_BUY_STREAK", "SUGGEST_BUY_STREAK_ENABLED")
    if _get_bool(env, "SUGGEST_SELL_STREAK_ENABLED", False):
        sell_streak = _parse_streak(env, "SUGGEST_SELL_STREAK", "SUGGEST_SELL_STREAK_ENABLED")

    try:
        return SuggestionsEnabled(buy_range, sell_range, buy_streak, sell_streak)
    except ValueError as e:
        raise ConfigError(f"SUGGEST_ENABLED: {e}") from None

def parse_destinations(raw: str, telegram_token: Optional[str]) -> tuple[DestinationSpec, ...]:
    out: list[DestinationSpec] = []
    for item in (s.strip() for s in raw.split(",")):
        if not item:
            continue
        kind, _, target = item.partition(":")
        kind = kind.lower()
        if kind in ("console", "room"):
            out.append(DestinationSpec(kind))
        elif kind == "telegram":
            if not target:
                raise ConfigError(f"destination {item!r}: telegram needs a chat id (telegram:<chat_id>)")
            if not telegram_token:
                raise ConfigError(f"destination {item!r}: TELEGRAM_BOT_TOKEN is not set")
            out.append(DestinationSpec("telegram", target))
        else:
            raise ConfigError(f"unknown destination {item!r}")
    if not out:
        raise ConfigError("DISPATCH_DESTINATIONS is empty")
    return tuple(out)

# ---------------- public loaders ----------------

def monitor_config_from_env(env: Optional[Mapping[str, str]] = None) -> MonitorConfig:
    """Build and validate MonitorConfig; raises ConfigError on bad input."""
    env = os.environ if env is None else env
    rules = MonitorRules(
        unbuyable_price=_get_float(env, "MONITOR_UNBUYABLE_PRICE", 0.1),
        sample_interval_s=_get_float(env, "MONITOR_SAMPLE_INTERVAL_S", 90.0),
    )
    if rules.sample_interval_s < 0:
        raise ConfigError("MONITOR_SAMPLE_INTERVAL_S must be >= 0")

    tz_name = env.get("MONITOR_TZ", "UTC").strip() or "UTC"
    try:
        resolve_tz(tz_name)
    except (KeyError, ValueError) as e:  # ZoneInfoNotFoundError is a KeyError
        raise ConfigError(f"MONITOR_TZ: unknown timezone {tz_name!r} ({e})") from None

    return MonitorConfig(
        auto_enable=_get_bool(env, "MONITOR_AUTO_ENABLE", True),
        total_money_line=_get_bool(env, "MONITOR_TOTAL_MONEY_LINE", True),
        text_on_crash=_get_bool(env, "MONITOR_TEXT_ON_CRASH", True),
        chart_on_crash=_get_bool(env, "MONITOR_CHART_ON_CRASH", False),
        tz_name=tz_name,
        rules=rules,
        suggestions=parse_suggestions(env),
        destinations=parse_destinations(
            env.get("DISPATCH_DESTINATIONS", "console"),
            env.get("TELEGRAM_BOT_TOKEN"),
        ),
    )

def feed_config_from_env(env: Optional[Mapping[str, str]] = None) -> FeedConfig:
    env = os.environ if env is None else env
    keys = tuple(k.strip() for k in env.get("FEED_KEYS", "default").split(",") if k.strip())
    if not keys:
        raise ConfigError("FEED_KEYS is empty")
    return FeedConfig(
        url=env.get("FEED_URL", "ws://localhost:8765"),
        keys=keys,
        token=env.get("FEED_TOKEN") or None,
    )
