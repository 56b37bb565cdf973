"""Mini README: Change-making engine for integer currency amounts.

Structure:
    * value_of - total value of a coin bag.
    * make_change - greedy decomposition of a total into coin counts.
    * normalize - re-decompose a bag into the greedy optimum.
    * minimal_change - dynamic-programming minimum-coin decomposition.
    * is_canonical - detect tables where greedy change is not minimal.
    * coin_breakdown - non-zero counts in display order.

All functions work on denominations whose values are integer base units
(see ``CurrencySystem.scaled_denominations``). Greedy change is minimal for
canonical tables such as 80/4/1 but not for every table an authority might
configure; ``is_canonical`` lets callers detect that case without changing
how ``make_change`` behaves.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..exceptions import InvalidCoinCount
from .denominations import Denomination

CoinBag = Dict[str, int]
DenominationLike = Union[Denomination, Mapping[str, Any]]


def is_non_negative_int(value: object) -> bool:
    """Return True for ints (but not bools) that are zero or larger."""

    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def denomination_table(denominations: Optional[Iterable[DenominationLike]]) -> List[Denomination]:
    if denominations is None:
        raise ValueError("A denomination table is required.")
    table = [
        entry if isinstance(entry, Denomination) else Denomination.from_mapping(entry)
        for entry in denominations
    ]
    for denomination in table:
        if denomination.int_value <= 0:
            raise ValueError(f"Denomination {denomination.name} must be worth at least one unit.")
    return sorted(table, key=lambda denomination: denomination.value, reverse=True)


def value_of(bag: Mapping[str, Any], denominations: Iterable[DenominationLike]) -> int:
    """Sum ``count * value`` for every known denomination in the bag."""

    values = {denomination.name: denomination.int_value for denomination in denomination_table(denominations)}
    total = 0
    for name, count in bag.items():
        if not is_non_negative_int(count):
            raise InvalidCoinCount(f"Invalid quantity for {name}: {count!r}")
        total += count * values.get(name, 0)
    return total


def coin_count(bag: Mapping[str, int]) -> int:
    """Number of physical coins in a bag."""

    return sum(bag.values())


def make_change(total: int, denominations: Iterable[DenominationLike]) -> CoinBag:
    """Decompose ``total`` greedily, highest value first."""

    if not is_non_negative_int(total):
        raise InvalidCoinCount(f"Invalid total: {total!r}")
    table = denomination_table(denominations)
    bag: CoinBag = {}
    remaining = total
    for denomination in table:
        value = denomination.int_value
        bag[denomination.name] = remaining // value
        remaining %= value
    if remaining:
        raise ValueError(f"{total} cannot be expressed with the configured denominations.")
    return bag


def normalize(bag: Mapping[str, Any], denominations: Iterable[DenominationLike]) -> CoinBag:
    """Return the greedy decomposition of the bag's total value."""

    table = denomination_table(denominations)
    return make_change(value_of(bag, table), table)


def minimal_change(total: int, denominations: Iterable[DenominationLike]) -> CoinBag:
    """Return a decomposition using the fewest coins for any table."""

    if not is_non_negative_int(total):
        raise InvalidCoinCount(f"Invalid total: {total!r}")
    table = denomination_table(denominations)
    unreachable = total + 1
    fewest = [0] + [unreachable] * total
    last_coin: List[Optional[Denomination]] = [None] * (total + 1)
    for amount in range(1, total + 1):
        for denomination in table:
            value = denomination.int_value
            if value <= amount and fewest[amount - value] + 1 < fewest[amount]:
                fewest[amount] = fewest[amount - value] + 1
                last_coin[amount] = denomination
    if fewest[total] >= unreachable:
        raise ValueError(f"{total} cannot be expressed with the configured denominations.")

    bag: CoinBag = {denomination.name: 0 for denomination in table}
    amount = total
    while amount:
        coin = last_coin[amount]
        assert coin is not None
        bag[coin.name] += 1
        amount -= coin.int_value
    return bag


def is_canonical(denominations: Iterable[DenominationLike]) -> bool:
    """Check whether greedy change is minimal for every amount.

    A counterexample, if one exists, is smaller than the sum of the two
    largest denominations, so only that range is searched.
    """

    table = denomination_table(denominations)
    if len(table) < 3:
        return True
    values = [denomination.int_value for denomination in table]
    limit = values[0] + values[1]
    fewest = [0] + [limit] * (limit - 1)
    for amount in range(1, limit):
        for value in values:
            if value <= amount and fewest[amount - value] + 1 < fewest[amount]:
                fewest[amount] = fewest[amount - value] + 1
        greedy, remaining = 0, amount
        for value in values:
            greedy += remaining // value
            remaining %= value
        if not remaining and greedy > fewest[amount]:
            return False
    return True


def coin_breakdown(bag: Mapping[str, int], denominations: Iterable[DenominationLike]) -> List[Dict[str, Any]]:
    """List non-zero counts in descending denomination order."""

    breakdown: List[Dict[str, Any]] = []
    for denomination in denomination_table(denominations):
        count = bag.get(denomination.name, 0)
        if count > 0:
            breakdown.append(
                {"name": denomination.name, "count": count, "value": denomination.int_value}
            )
    return breakdown
