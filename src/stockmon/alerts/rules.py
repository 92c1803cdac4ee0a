# src/stockmon/alerts/rules.py
from __future__ import annotations
from dataclasses import dataclass

@dataclass(frozen=True, slots=True)
class MonitorRules:
    """
    Tunable constants of the trend engine.
    - crash_price / crash_total_stock: sentinel values the market resets to after a crash
    - unbuyable_price: at or below this price the stock cannot be bought
      (marks the price line; buy suggestions require price >= this)
    - sample_interval_s: minimum spacing between two history samples
    """
    crash_price: float = 1.0
    crash_total_stock: float = 1000.0
    unbuyable_price: float = 0.1
    sample_interval_s: float = 90.0

    def is_crash(self, unit_price: float, total_stock: float) -> bool:
        return unit_price == self.crash_price and total_stock == self.crash_total_stock
