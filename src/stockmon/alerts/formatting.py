from __future__ import annotations
from typing import Iterable, Optional, Sequence

from stockmon.utils.types import Snapshot

# room markdown marker + title, as the first two lines of every alert
HEADER_LINES: tuple[str, ...] = ("\\\\\\*", "# Stock alert")

def signed(value: float, digits: int = 2) -> str:
    """'+' for non-negative values; negatives keep their own '-'."""
    # round first so a tiny negative does not print as "-0.00"
    v = round(float(value), digits) + 0.0
    s = f"{v:.{digits}f}"
    return s if v < 0 else f"+{s}"

def fmt_amount(value: float) -> str:
    """Whole numbers without decimals, everything else to 4 places."""
    v = round(float(value), 4) + 0.0  # -0.0 -> 0.0
    if v.is_integer():
        return str(int(v))
    return f"{v:.4f}".rstrip("0").rstrip(".")

def pct_change(delta: float, base: float) -> float:
    return delta / base * 100.0

# ---- classifier lines ----

def streak_line(direction: str, streak: int) -> str:
    if direction == "up":
        return "Rising" if streak <= 1 else f"Risen {streak} times"
    return "Falling" if streak <= 1 else f"Fallen {streak} times"

def change_line(direction: str, delta: float, base_price: float) -> str:
    mag = abs(delta)
    pct = abs(pct_change(delta, base_price))
    sign = "+" if direction == "up" else "-"
    return f"Change: {sign}{mag:.4f} / {sign}{pct:.2f}%"

def price_line(snap: Snapshot, prev: Snapshot, unbuyable_price: float) -> str:
    d = snap.unit_price - prev.unit_price
    line = (f"Price: {snap.unit_price:.4f} "
            f"({signed(d, 4)} / {signed(pct_change(d, prev.unit_price))}%)")
    if snap.unit_price <= unbuyable_price:
        line += " [unbuyable]"
    return line

def _amount_line(title: str, curr: float, prev: float) -> str:
    d = curr - prev
    sd = fmt_amount(d)
    if not sd.startswith("-"):
        sd = f"+{sd}"
    return f"{title}: {fmt_amount(curr)} ({sd} / {signed(pct_change(d, prev))}%)"

def total_stock_line(snap: Snapshot, prev: Snapshot) -> str:
    return _amount_line("Total stock", snap.total_stock, prev.total_stock)

def total_money_line(snap: Snapshot, prev: Snapshot) -> str:
    return _amount_line("Total money", snap.total_money, prev.total_money)

# ---- crash lines ----

def crash_lines(snap: Snapshot, lost_stock: float, with_money: bool = True) -> list[str]:
    lines = [
        "Market crash!",
        f"{fmt_amount(lost_stock)} shares lost before crash",
        f"Price: {snap.unit_price:.4f}",
        f"Total stock: {fmt_amount(snap.total_stock)}",
    ]
    if with_money:
        lines.append(f"Total money: {fmt_amount(snap.total_money)}")
    return lines

# ---- composer ----

def compose_message(
    lines: Iterable[str],
    suggestions: Iterable[str] = (),
    header: Optional[Sequence[str]] = HEADER_LINES,
) -> str:
    parts = list(header or ())
    parts.extend(lines)
    parts.extend(suggestions)
    return "\n".join(parts)
