"""Mini README: Where a peer's balance lives for the duration of one operation.

Structure:
    * AuthoritativeBalance - scalar balance kept by the authority.
    * CoinItem / DerivedBalance - balance computed from inventory coin items.
    * BalanceSource - the union resolved once per ledger operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Union

from ..currency.change import CoinBag


@dataclass(frozen=True, slots=True)
class AuthoritativeBalance:
    peer_id: str
    units: int


@dataclass(frozen=True, slots=True)
class CoinItem:
    """Path and count of one inventory item matched to a denomination."""

    path: str
    count: int


@dataclass(frozen=True, slots=True)
class DerivedBalance:
    """Coin items found in a peer's inventory, grouped by denomination."""

    peer_id: str
    inventory_id: str
    matches: Dict[str, List[CoinItem]] = field(default_factory=dict)

    def coins(self) -> CoinBag:
        """Sum duplicate items into one count per denomination."""

        return {name: sum(item.count for item in items) for name, items in self.matches.items()}


BalanceSource = Union[AuthoritativeBalance, DerivedBalance]
