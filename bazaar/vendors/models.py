"""Mini README: Vendor records persisted in the world settings store.

Structure:
    * VendorItem - a single stocked good (bounded or unbounded quantity).
    * StockParameters - ranges used when generating random stock.
    * VendorRecord - a named vendor with its ordered item list.

Records are stored as plain JSON under the ``vendors`` settings key, keyed by
vendor id. ``from_dict``/``as_dict`` are the only conversion points so the
persisted shape stays in one place. A quantity of ``None`` means the vendor
never runs out of that item.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from ..logging_utils import get_logger

LOGGER = get_logger(__name__)


def _optional_quantity(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    quantity = int(value)
    if quantity < 0:
        raise ValueError(f"Quantity must not be negative: {value}")
    return quantity


@dataclass(slots=True)
class VendorItem:
    """Represent a good offered by a vendor."""

    id: str
    name: str
    price: float
    quantity: Optional[int] = None
    weight: float = 0.0
    external_ref: str = ""

    def __post_init__(self) -> None:
        if float(self.price) < 0:
            raise ValueError(f"Price of {self.name} must not be negative.")
        self.quantity = _optional_quantity(self.quantity)

    @property
    def unbounded(self) -> bool:
        return self.quantity is None

    def has_stock_for(self, requested: int) -> bool:
        """Return True when the vendor can hand out ``requested`` units."""

        return self.unbounded or (self.quantity or 0) >= requested

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VendorItem":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            price=float(data.get("price", 0) or 0),
            quantity=data.get("quantity"),
            weight=float(data.get("weight", 0) or 0),
            external_ref=str(data.get("external_ref", data.get("uuid", "")) or ""),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
            "weight": self.weight,
            "external_ref": self.external_ref,
        }


@dataclass(slots=True)
class StockParameters:
    """Ranges that drive random stock generation for a vendor."""

    item_count: int = 10
    stock_min: int = 1
    stock_max: int = 10
    price_min: Optional[float] = None
    price_max: Optional[float] = None

    def __post_init__(self) -> None:
        validate_stock_range(self.stock_min, self.stock_max)
        validate_price_range(self.price_min, self.price_max)
        if self.item_count < 0:
            raise ValueError("Item count must not be negative.")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StockParameters":
        return cls(
            item_count=int(data.get("item_count", 10)),
            stock_min=int(data.get("stock_min", 1)),
            stock_max=int(data.get("stock_max", 10)),
            price_min=data.get("price_min"),
            price_max=data.get("price_max"),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "item_count": self.item_count,
            "stock_min": self.stock_min,
            "stock_max": self.stock_max,
            "price_min": self.price_min,
            "price_max": self.price_max,
        }


def validate_stock_range(stock_min: int, stock_max: int) -> None:
    """Reject negative bounds or a minimum above the maximum."""

    if stock_min < 0 or stock_max < 0 or stock_min > stock_max:
        raise ValueError(
            "Invalid stock range. Minimum and maximum must be non-negative"
            " and the minimum must not exceed the maximum."
        )


def validate_price_range(price_min: Optional[float], price_max: Optional[float]) -> None:
    if price_min is not None and price_max is not None and price_min > price_max:
        raise ValueError("Minimum price must be less than or equal to the maximum price.")


@dataclass(slots=True)
class VendorRecord:
    """A vendor and the goods it currently stocks."""

    id: str
    name: str
    active: bool = True
    items: List[VendorItem] = field(default_factory=list)
    stock: StockParameters = field(default_factory=StockParameters)

    def find_item(self, item_id: str) -> Optional[VendorItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def find_item_by_ref(self, external_ref: str) -> Optional[VendorItem]:
        for item in self.items:
            if external_ref and item.external_ref == external_ref:
                return item
        return None

    def with_items(self, items: List[VendorItem]) -> "VendorRecord":
        """Return a copy carrying a replacement item list."""

        return replace(self, items=list(items))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VendorRecord":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            active=bool(data.get("active", True)),
            items=[VendorItem.from_dict(item) for item in data.get("items", [])],
            stock=StockParameters.from_dict(data.get("stock", {})),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "active": self.active,
            "items": [item.as_dict() for item in self.items],
            "stock": self.stock.as_dict(),
        }
