from __future__ import annotations

import time
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

def utc_now_s() -> float:
    """Unix epoch seconds (float)."""
    return time.time()

def resolve_tz(tz_name: str) -> tzinfo:
    """ZoneInfo lookup; UTC short-circuits so it works without a tz database."""
    if tz_name.upper() in ("UTC", "Z"):
        return timezone.utc
    return ZoneInfo(tz_name)

def hour_minute_label(ts: float, tz: tzinfo = timezone.utc) -> str:
    """Epoch seconds -> 'H:MM' (hour unpadded, minute zero-padded)."""
    dt = datetime.fromtimestamp(float(ts), tz)
    return f"{dt.hour}:{dt.minute:02d}"

def seconds_since(ts_past: float, now: float | None = None) -> float:
    """Non-negative time since past (clamped at 0)."""
    now = utc_now_s() if now is None else now
    return max(0.0, now - ts_past)
