"""Mini README: Random stock generation for vendors.

Structure:
    * CatalogEntry - a purchasable good offered by the host catalog.
    * generate_stock - pick catalog entries and assign random quantities.

The host application supplies the catalog (browsing and filtering it is not
this module's concern). Generation only applies the vendor's price range,
draws up to ``item_count`` entries and gives each a quantity within the stock
range. Pass a seeded ``random.Random`` for reproducible stock.
"""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..logging_utils import get_logger
from .models import StockParameters, VendorItem

LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """Item template published by the host catalog."""

    name: str
    price: float
    weight: float = 0.0
    external_ref: str = ""


def generate_stock(
    catalog: Iterable[CatalogEntry],
    parameters: StockParameters,
    rng: Optional[random.Random] = None,
) -> List[VendorItem]:
    """Return freshly generated vendor items."""

    rng = rng or random.Random()
    candidates = [
        entry
        for entry in catalog
        if (parameters.price_min is None or entry.price >= parameters.price_min)
        and (parameters.price_max is None or entry.price <= parameters.price_max)
    ]
    rng.shuffle(candidates)
    selected = candidates[: parameters.item_count]

    items = [
        VendorItem(
            id=uuid.UUID(int=rng.getrandbits(128), version=4).hex,
            name=entry.name,
            price=entry.price,
            quantity=rng.randint(parameters.stock_min, parameters.stock_max),
            weight=entry.weight,
            external_ref=entry.external_ref,
        )
        for entry in selected
    ]
    LOGGER.info(
        "Generated %s vendor items from %s catalog candidates", len(items), len(candidates)
    )
    return items
