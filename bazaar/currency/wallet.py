"""Mini README: Transient coin wallets with configurable normalisation.

Structure:
    * WalletPolicy - the three optimisation switches.
    * Wallet - coin bag supporting add/subtract under a policy.

A wallet is a short-lived computation built by the operation that needs it,
never a shared or persisted object. With every switch enabled the wallet
always holds the greedy decomposition of its total. With switches disabled it
preserves the exact coins it was given: numeric deposits land on the lowest
denomination and spending starts from the smallest coins, breaking one larger
coin at a time when the smaller ones run out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..exceptions import InsufficientFunds, InvalidCoinCount
from ..logging_utils import get_logger
from .change import DenominationLike, denomination_table, is_non_negative_int, make_change, value_of
from .denominations import Denomination

LOGGER = get_logger(__name__)

Amount = Union[int, Mapping[str, int]]


@dataclass(frozen=True, slots=True)
class WalletPolicy:
    """Normalisation switches applied on construct, add and subtract."""

    optimize_on_construct: bool = True
    optimize_on_add: bool = True
    optimize_on_subtract: bool = True

    @classmethod
    def optimized(cls) -> "WalletPolicy":
        return cls(True, True, True)

    @classmethod
    def preserve(cls) -> "WalletPolicy":
        return cls(False, False, False)


class Wallet:
    """In-memory coin bag over an integer denomination table."""

    def __init__(
        self,
        denominations: Iterable[DenominationLike],
        coins: Optional[Mapping[str, int]] = None,
        policy: Optional[WalletPolicy] = None,
    ) -> None:
        self._denominations: List[Denomination] = denomination_table(denominations)
        if not self._denominations:
            raise ValueError("A wallet needs at least one denomination.")
        self.policy = policy or WalletPolicy()
        coins = dict(coins or {})
        initial_value = value_of(coins, self._denominations)
        if self.policy.optimize_on_construct:
            self._counts = make_change(initial_value, self._denominations)
        else:
            self._counts = {
                denomination.name: coins.get(denomination.name, 0)
                for denomination in self._denominations
            }

    @property
    def denominations(self) -> List[Denomination]:
        return list(self._denominations)

    def _delta(self, amount: Amount, operation: str) -> int:
        delta = amount if isinstance(amount, int) else value_of(amount, self._denominations)
        if not is_non_negative_int(delta):
            raise InvalidCoinCount(f"Invalid value to {operation}: {delta!r}")
        return delta

    def total(self) -> int:
        """Total value of the wallet in base units."""

        return value_of(self._counts, self._denominations)

    def count(self, name: str) -> int:
        return self._counts.get(name, 0)

    def add(self, amount: Amount) -> "Wallet":
        """Add base units or a coin bag; returns the wallet for chaining."""

        delta = self._delta(amount, "add")
        if self.policy.optimize_on_add:
            self._counts = make_change(self.total() + delta, self._denominations)
            return self

        if isinstance(amount, int):
            lowest = self._denominations[-1]
            coins, remainder = divmod(delta, lowest.int_value)
            if remainder:
                raise InvalidCoinCount(
                    f"{delta} is not a whole number of {lowest.name} coins."
                )
            self._counts[lowest.name] += coins
        else:
            for name, count in amount.items():
                if name in self._counts:
                    self._counts[name] += count
                else:
                    LOGGER.debug("Ignoring unknown denomination %s while adding coins", name)
        return self

    def subtract(self, amount: Amount) -> "Wallet":
        """Remove base units or a coin bag; the wallet is untouched on failure."""

        delta = self._delta(amount, "subtract")
        total = self.total()
        if total < delta:
            raise InsufficientFunds(delta - total)

        if self.policy.optimize_on_subtract:
            self._counts = make_change(total - delta, self._denominations)
            return self

        ascending = list(reversed(self._denominations))
        smallest = ascending[0]
        if delta % smallest.int_value:
            raise InvalidCoinCount(f"{delta} is not a whole number of {smallest.name} coins.")

        counts = dict(self._counts)
        need = delta
        while need > 0:
            take = min(counts[smallest.name], need // smallest.int_value)
            counts[smallest.name] -= take
            need -= take * smallest.int_value
            if need == 0:
                break
            if not self._break_next_coin(counts, ascending):
                raise InsufficientFunds(need)
        self._counts = counts
        return self

    @staticmethod
    def _break_next_coin(counts: Dict[str, int], ascending: List[Denomination]) -> bool:
        """Split one coin of the nearest larger denomination into smaller ones."""

        for index in range(1, len(ascending)):
            larger = ascending[index]
            if counts[larger.name] > 0:
                counts[larger.name] -= 1
                for name, extra in make_change(larger.int_value, ascending[:index]).items():
                    counts[name] += extra
                return True
        return False

    def normalize(self) -> "Wallet":
        """Replace the counts with the greedy decomposition of the total."""

        self._counts = make_change(self.total(), self._denominations)
        return self

    def as_dict(self) -> Dict[str, int]:
        """Snapshot of the counts in descending denomination order."""

        return {denomination.name: self._counts[denomination.name] for denomination in self._denominations}

    def __repr__(self) -> str:
        return f"Wallet({self.as_dict()!r}, policy={self.policy!r})"

    def __str__(self) -> str:
        counts = ", ".join(f"{count} {name}" for name, count in self.as_dict().items())
        return f"{counts} (total={self.total()})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Wallet):
            return NotImplemented
        return self.as_dict() == other.as_dict()
