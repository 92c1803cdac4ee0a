from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Union

# ---- feed-level primitives ----

@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    One market observation as pushed by the feed. Never mutated.
    personal_* fields are informational only.
    """
    unit_price: float
    total_stock: float
    total_money: float
    personal_stock: float = 0.0
    personal_money: float = 0.0


def same_tick(a: Snapshot, b: Snapshot) -> bool:
    """Canonical "nothing changed" predicate: equal total money."""
    return a.total_money == b.total_money


@dataclass(slots=True)
class Sample:
    price: float
    label: str   # H:MM
    ts: float    # epoch seconds, drives the sampling throttle

    def point(self) -> tuple[float, str]:
        return (self.price, self.label)


# ---- feed events (parser output) ----

@dataclass(frozen=True, slots=True)
class BeginEvent:
    key: str


@dataclass(frozen=True, slots=True)
class SnapshotEvent:
    key: str
    snapshot: Snapshot


CommandName = Literal["enable", "disable", "clean", "chart"]

@dataclass(frozen=True, slots=True)
class CommandEvent:
    key: str
    command: CommandName
    min_pct: float = 0.0
    max_pct: float = 100.0


FeedEvent = Union[BeginEvent, SnapshotEvent, CommandEvent]

# ---- outbound ----

@dataclass(frozen=True, slots=True)
class OutboundMessage:
    """Payload handed to the dispatcher: text, a PNG image, or both."""
    key: str
    text: Optional[str] = None
    image: Optional[bytes] = None
