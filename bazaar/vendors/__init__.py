"""Mini README: Vendor data model for the bazaar.

Vendors are authority-owned shops persisted in the world settings store.
``models`` defines the records and their JSON shape; ``generator`` fills a
vendor with random stock drawn from a host supplied catalog.
"""

from .generator import CatalogEntry, generate_stock
from .models import (
    StockParameters,
    VendorItem,
    VendorRecord,
    validate_price_range,
    validate_stock_range,
)

__all__ = [
    "CatalogEntry",
    "StockParameters",
    "VendorItem",
    "VendorRecord",
    "generate_stock",
    "validate_price_range",
    "validate_stock_range",
]
