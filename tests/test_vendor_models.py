"""Mini README: Tests for vendor records and stock generation.

Structure:
    * Records - JSON conversion and validation of vendor items.
    * Stock generation - price filtering, quantity ranges and item limits.
"""

from __future__ import annotations

import random

import pytest

from bazaar.vendors import (
    CatalogEntry,
    StockParameters,
    VendorItem,
    VendorRecord,
    generate_stock,
    validate_stock_range,
)


def test_record_survives_dict_conversion() -> None:
    record = VendorRecord(
        id="smith",
        name="Village Smith",
        items=[VendorItem(id="a", name="Axe", price=9.5, quantity=None, external_ref="ref-axe")],
        stock=StockParameters(item_count=3, stock_min=2, stock_max=4, price_min=1, price_max=20),
    )
    restored = VendorRecord.from_dict(record.as_dict())
    assert restored == record
    assert restored.items[0].unbounded
    assert restored.find_item_by_ref("ref-axe").id == "a"


def test_item_validation() -> None:
    with pytest.raises(ValueError):
        VendorItem(id="a", name="Axe", price=-1)
    with pytest.raises(ValueError):
        VendorItem(id="a", name="Axe", price=1, quantity=-2)
    assert VendorItem(id="a", name="Axe", price=1, quantity=2).has_stock_for(2)
    assert not VendorItem(id="a", name="Axe", price=1, quantity=2).has_stock_for(3)


def test_stock_ranges_are_validated() -> None:
    with pytest.raises(ValueError):
        validate_stock_range(5, 1)
    with pytest.raises(ValueError):
        StockParameters(price_min=10, price_max=2)


def test_generate_stock_respects_parameters() -> None:
    catalog = [CatalogEntry(name=f"Item {index}", price=float(index)) for index in range(1, 21)]
    parameters = StockParameters(item_count=5, stock_min=2, stock_max=4, price_min=5, price_max=15)

    items = generate_stock(catalog, parameters, random.Random(42))

    assert len(items) == 5
    assert len({item.id for item in items}) == 5
    for item in items:
        assert 5 <= item.price <= 15
        assert 2 <= item.quantity <= 4


def test_generate_stock_is_reproducible_with_a_seed() -> None:
    catalog = [CatalogEntry(name=f"Item {index}", price=1.0) for index in range(10)]
    parameters = StockParameters(item_count=4)
    first = generate_stock(catalog, parameters, random.Random(7))
    second = generate_stock(catalog, parameters, random.Random(7))
    assert [item.as_dict() for item in first] == [item.as_dict() for item in second]
