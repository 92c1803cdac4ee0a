import pytest

from stockmon.alerts.suggestions import (
    PriceRange,
    SuggestionsDisabled,
    SuggestionsEnabled,
    evaluate,
)
from stockmon.utils.types import Snapshot


def snap(price):
    return Snapshot(unit_price=price, total_stock=500.0, total_money=1000.0)


def test_disabled_never_suggests():
    assert evaluate(SuggestionsDisabled(), snap(0.15), 9, 9) == []


def test_buy_range_respects_unbuyable_floor():
    cfg = SuggestionsEnabled(buy_range=PriceRange(0.1, 0.2))
    assert evaluate(cfg, snap(0.05), 0, 0) == []
    out = evaluate(cfg, snap(0.15), 0, 0)
    assert len(out) == 1 and out[0].startswith("Suggestion: buy")
    # bounds are inclusive
    assert len(evaluate(cfg, snap(0.2), 0, 0)) == 1
    assert evaluate(cfg, snap(0.21), 0, 0) == []


def test_sell_range_has_no_floor():
    cfg = SuggestionsEnabled(sell_range=PriceRange(0.0, 0.1))
    out = evaluate(cfg, snap(0.05), 0, 0)
    assert len(out) == 1 and out[0].startswith("Suggestion: sell")


def test_streak_rules():
    cfg = SuggestionsEnabled(buy_streak=3, sell_streak=2)
    assert evaluate(cfg, snap(5.0), 0, 2) == []
    assert evaluate(cfg, snap(5.0), 0, 3) == ["Suggestion: buy, price fell 3 times in a row"]
    assert evaluate(cfg, snap(0.05), 0, 5) == []  # floor applies to streak buys too
    assert evaluate(cfg, snap(0.05), 2, 0) == ["Suggestion: sell, price rose 2 times in a row"]


def test_all_rules_fire_in_fixed_order():
    cfg = SuggestionsEnabled(
        buy_range=PriceRange(0.1, 0.2),
        sell_range=PriceRange(0.1, 0.2),
        buy_streak=2,
        sell_streak=1,
    )
    out = evaluate(cfg, snap(0.15), 1, 3)
    assert len(out) == 4
    assert "inside buy range 0.1-0.2" in out[0]
    assert "inside sell range 0.1-0.2" in out[1]
    assert "fell 3 times" in out[2]
    assert "rose 1 times" in out[3]


def test_custom_floor():
    cfg = SuggestionsEnabled(buy_range=PriceRange(0.0, 1.0))
    assert evaluate(cfg, snap(0.3), 0, 0, unbuyable_price=0.5) == []


def test_enabled_needs_at_least_one_rule():
    with pytest.raises(ValueError):
        SuggestionsEnabled()


def test_invalid_values_are_rejected():
    with pytest.raises(ValueError):
        PriceRange(0.3, 0.2)
    with pytest.raises(ValueError):
        SuggestionsEnabled(buy_streak=0)
