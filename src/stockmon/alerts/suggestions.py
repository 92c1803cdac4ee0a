from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from stockmon.alerts.formatting import fmt_amount
from stockmon.utils.types import Snapshot


@dataclass(frozen=True, slots=True)
class PriceRange:
    low: float
    high: float

    def __post_init__(self):
        if self.low > self.high:
            raise ValueError(f"range low {self.low} is above high {self.high}")

    def contains(self, price: float) -> bool:
        return self.low <= price <= self.high

    def __str__(self) -> str:
        return f"{fmt_amount(self.low)}-{fmt_amount(self.high)}"


@dataclass(frozen=True, slots=True)
class SuggestionsDisabled:
    pass


@dataclass(frozen=True, slots=True)
class SuggestionsEnabled:
    """
    Each strategy is optional (None = that rule is off), but at least one
    must be set, otherwise there is nothing to enable.
    """
    buy_range: Optional[PriceRange] = None
    sell_range: Optional[PriceRange] = None
    buy_streak: Optional[int] = None
    sell_streak: Optional[int] = None

    def __post_init__(self):
        if (self.buy_range is None and self.sell_range is None
                and self.buy_streak is None and self.sell_streak is None):
            raise ValueError("suggestions enabled but no strategy configured")
        for name in ("buy_streak", "sell_streak"):
            v = getattr(self, name)
            if v is not None and v < 1:
                raise ValueError(f"{name} must be >= 1, got {v}")


SuggestionConfig = Union[SuggestionsDisabled, SuggestionsEnabled]


def evaluate(
    cfg: SuggestionConfig,
    snap: Snapshot,
    up_streak: int,
    down_streak: int,
    unbuyable_price: float = 0.1,
) -> list[str]:
    """
    Advisory lines in fixed order: buy-by-range, sell-by-range,
    buy-by-streak, sell-by-streak. Buy rules never fire below the
    unbuyable floor.
    """
    if not isinstance(cfg, SuggestionsEnabled):
        return []

    price = snap.unit_price
    buyable = price >= unbuyable_price
    out: list[str] = []

    if cfg.buy_range is not None and buyable and cfg.buy_range.contains(price):
        out.append(f"Suggestion: buy, price {price:.4f} is inside buy range {cfg.buy_range}")
    if cfg.sell_range is not None and cfg.sell_range.contains(price):
        out.append(f"Suggestion: sell, price {price:.4f} is inside sell range {cfg.sell_range}")
    if cfg.buy_streak is not None and buyable and down_streak >= cfg.buy_streak:
        out.append(f"Suggestion: buy, price fell {down_streak} times in a row")
    if cfg.sell_streak is not None and up_streak >= cfg.sell_streak:
        out.append(f"Suggestion: sell, price rose {up_streak} times in a row")
    return out
