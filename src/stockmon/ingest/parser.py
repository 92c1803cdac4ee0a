from __future__ import annotations
from typing import Any, Optional

from stockmon.utils.types import (
    BeginEvent,
    CommandEvent,
    FeedEvent,
    Snapshot,
    SnapshotEvent,
)

DEFAULT_KEY = "default"
COMMANDS = ("enable", "disable", "clean", "chart")

def _field(m: dict, *names: str) -> Any:
    for n in names:
        if n in m and m[n] is not None:
            return m[n]
    return None

def parse_snapshot(m: dict) -> Optional[Snapshot]:
    """
    Build a Snapshot from camelCase or snake_case fields.
    unit price, total stock and total money are required.
    """
    px = _field(m, "unitPrice", "unit_price")
    stock = _field(m, "totalStock", "total_stock")
    money = _field(m, "totalMoney", "total_money")
    if px is None or stock is None or money is None:
        return None
    return Snapshot(
        unit_price=float(px),
        total_stock=float(stock),
        total_money=float(money),
        personal_stock=float(_field(m, "personalStock", "personal_stock") or 0.0),
        personal_money=float(_field(m, "personalMoney", "personal_money") or 0.0),
    )

def parse_feed_msg(m: dict) -> Optional[FeedEvent]:
    """
    Return a FeedEvent for begin / stock / command messages; else None.

    Examples:
      {"type": "begin", "key": "room-1"}
      {"type": "stock", "key": "room-1", "unitPrice": 1.2, "totalStock": 900, "totalMoney": 1080}
      {"type": "command", "key": "room-1", "command": "chart", "min": 50, "max": 100}
    """
    if not isinstance(m, dict):
        return None
    T = m.get("type") or m.get("T")
    key = str(m.get("key") or DEFAULT_KEY)

    if T == "begin":
        return BeginEvent(key=key)

    if T in ("stock", "snapshot"):
        snap = parse_snapshot(m)
        return SnapshotEvent(key=key, snapshot=snap) if snap else None

    if T == "command":
        cmd = str(m.get("command") or "").lower()
        if cmd not in COMMANDS:
            return None
        lo = m.get("min", 0.0)
        hi = m.get("max", 100.0)
        return CommandEvent(key=key, command=cmd, min_pct=float(lo), max_pct=float(hi))

    return None
