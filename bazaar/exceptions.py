"""Mini README: Error taxonomy shared by the bazaar subsystems.

Structure:
    * BazaarError - root of every domain error raised by the package.
    * Currency errors - InvalidCoinCount, InvalidDenominations, InsufficientFunds.
    * Trading errors - OutOfStock, ApprovalDeclined, ApplyFailure.
    * Ledger errors - UnsupportedOperation, VendorNotFound, ItemNotFound,
      InventoryNotFound.

None of these errors is retried automatically. Currency errors are raised to
the immediate caller; trading errors are collected by the transaction
coordinator and turned into outcomes for the requesting peer.
"""

from __future__ import annotations

from typing import Optional


class BazaarError(Exception):
    """Base class for all bazaar domain errors."""


class InvalidCoinCount(BazaarError, ValueError):
    """A coin bag holds a count that is not a non-negative integer."""


class InvalidDenominations(BazaarError, ValueError):
    """The configured denomination list cannot back a currency system."""


class InsufficientFunds(BazaarError):
    """A subtraction asked for more than the wallet holds."""

    def __init__(self, shortfall: int, message: Optional[str] = None) -> None:
        self.shortfall = shortfall
        super().__init__(message or f"Insufficient funds: short by {shortfall} base units.")


class OutOfStock(BazaarError):
    """A request line asks for more units than the vendor or peer holds."""

    def __init__(self, item_name: str, requested: int, available: Optional[int]) -> None:
        self.item_name = item_name
        self.requested = requested
        self.available = available
        if available is None:
            detail = f"{item_name} is out of stock."
        else:
            detail = f"Not enough {item_name} (have {available}, requested {requested})."
        super().__init__(detail)


class UnsupportedOperation(BazaarError):
    """The active balance representation cannot perform the operation."""


class ApprovalDeclined(BazaarError):
    """The authority rejected a pending purchase or sale."""


class ApplyFailure(BazaarError):
    """An inventory mutation failed while applying a single request line."""


class VendorNotFound(BazaarError, KeyError):
    """No vendor is registered under the requested identifier."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Vendor not found"


class InventoryNotFound(BazaarError, KeyError):
    """No inventory document is registered under the requested identifier."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Inventory not found"


class ItemNotFound(BazaarError, KeyError):
    """A vendor does not stock the requested item."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Item not found"
