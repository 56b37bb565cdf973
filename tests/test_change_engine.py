"""Mini README: Tests for the change-making engine.

Structure:
    * Greedy decomposition - examples and the value-preserving property.
    * Minimal change - dynamic-programming solver and canonical detection.
    * Validation - invalid counts and unpayable totals.
"""

from __future__ import annotations

import pytest

from bazaar.currency import (
    CurrencySystem,
    coin_breakdown,
    coin_count,
    is_canonical,
    make_change,
    minimal_change,
    normalize,
    value_of,
)
from bazaar.exceptions import InvalidCoinCount

CLASSIC = [
    {"name": "Gold", "value": 80},
    {"name": "Silver", "value": 4},
    {"name": "Copper", "value": 1},
]


def test_make_change_takes_largest_coins_first() -> None:
    """328 is four gold coins plus eight copper, paid as two silver."""

    assert make_change(328, CLASSIC) == {"Gold": 4, "Silver": 2, "Copper": 0}


def test_normalize_never_adds_coins() -> None:
    bag = {"Gold": 4, "Silver": 0, "Copper": 8}
    normalized = normalize(bag, CLASSIC)
    assert value_of(normalized, CLASSIC) == 328
    assert normalized == make_change(328, CLASSIC)
    assert coin_count(normalized) <= coin_count(bag)


def test_make_change_preserves_value() -> None:
    scaled = CurrencySystem().scaled_denominations()
    for total in range(0, 1000, 7):
        assert value_of(make_change(total, scaled), scaled) == total
        assert value_of(make_change(total, CLASSIC), CLASSIC) == total


def test_value_of_ignores_unknown_denominations() -> None:
    assert value_of({"Gold": 1, "Button": 40}, CLASSIC) == 80


@pytest.mark.parametrize("count", [-1, 1.5, "3", True, None])
def test_value_of_rejects_invalid_counts(count) -> None:
    with pytest.raises(InvalidCoinCount):
        value_of({"Gold": count}, CLASSIC)


def test_make_change_rejects_invalid_totals() -> None:
    with pytest.raises(InvalidCoinCount):
        make_change(-5, CLASSIC)


def test_unpayable_total_raises() -> None:
    with pytest.raises(ValueError):
        make_change(7, [{"name": "Five", "value": 5}, {"name": "Three", "value": 3}])


def test_minimal_change_beats_greedy_on_non_canonical_table() -> None:
    table = [{"name": "Four", "value": 4}, {"name": "Three", "value": 3}, {"name": "One", "value": 1}]
    greedy = make_change(6, table)
    minimal = minimal_change(6, table)
    assert greedy == {"Four": 1, "Three": 0, "One": 2}
    assert minimal == {"Four": 0, "Three": 2, "One": 0}
    assert not is_canonical(table)


def test_default_and_classic_tables_are_canonical() -> None:
    assert is_canonical(CLASSIC)
    assert is_canonical(CurrencySystem().scaled_denominations())
    assert minimal_change(328, CLASSIC) == make_change(328, CLASSIC)


def test_coin_breakdown_lists_non_zero_counts_in_order() -> None:
    breakdown = coin_breakdown({"Copper": 3, "Gold": 1, "Silver": 0}, CLASSIC)
    assert breakdown == [
        {"name": "Gold", "count": 1, "value": 80},
        {"name": "Copper", "count": 3, "value": 1},
    ]
