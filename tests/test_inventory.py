"""Mini README: Tests for inventory documents and tree helpers.

Structure:
    * Tree helpers - flattening, lookup and dotted-path patches.
    * InMemoryInventory - adding, merging and removing items.
    * InventoryDirectory / NameMatcher - resolution and coin matching.
"""

from __future__ import annotations

import asyncio

import pytest

from bazaar.currency import Denomination
from bazaar.exceptions import ApplyFailure, InventoryNotFound
from bazaar.ledger import (
    DELETE,
    InMemoryInventory,
    InventoryDirectory,
    InventoryItem,
    NameMatcher,
    find_item_path,
    flatten_items,
    get_item_at,
)

CARRIED = {
    "00001": {"name": "Backpack", "count": 1, "collapsed": {
        "00002": {"name": "Torch", "count": 3, "cost": 1.5},
        "00003": {"name": "Pouch", "count": 1, "collapsed": {
            "00004": {"name": " Gold Coin ", "count": 2},
        }},
    }},
    "00005": {"name": "Rope", "count": 1, "ref": "ref-rope"},
}


def test_flatten_walks_nested_containers() -> None:
    paths = [path for path, _ in flatten_items(CARRIED)]
    assert paths == [
        "00001",
        "00001.collapsed.00002",
        "00001.collapsed.00003",
        "00001.collapsed.00003.collapsed.00004",
        "00005",
    ]


def test_find_and_get_item_by_path() -> None:
    path = find_item_path(CARRIED, "00004")
    assert path == "00001.collapsed.00003.collapsed.00004"
    assert get_item_at(CARRIED, path)["count"] == 2
    assert find_item_path(CARRIED, "99999") is None
    assert get_item_at(CARRIED, "00001.collapsed.nope") is None


def test_patch_updates_fields_and_deletes_entries() -> None:
    inventory = InMemoryInventory("pc", ["alice"], CARRIED)

    async def scenario():
        await inventory.patch({"00001.collapsed.00002.count": 5, "00005": DELETE})
        return await inventory.read()

    carried = asyncio.run(scenario())
    assert carried["00001"]["collapsed"]["00002"]["count"] == 5
    assert "00005" not in carried
    assert "00005" in CARRIED


def test_add_item_merges_on_reference() -> None:
    inventory = InMemoryInventory("pc", ["alice"], CARRIED)

    async def scenario():
        await inventory.add_item(InventoryItem(name="Rope", ref="ref-rope"), 2)
        await inventory.add_item(InventoryItem(name="Lantern", cost=4.0), 1)
        return await inventory.read()

    carried = asyncio.run(scenario())
    assert carried["00005"]["count"] == 3
    lanterns = [item for _, item in flatten_items(carried) if item["name"] == "Lantern"]
    assert lanterns == [{"name": "Lantern", "count": 1, "cost": 4.0, "weight": 0.0, "ref": ""}]


def test_remove_item_deletes_when_exhausted() -> None:
    inventory = InMemoryInventory("pc", ["alice"], CARRIED)

    async def scenario():
        await inventory.remove_item("00002", 1)
        await inventory.remove_item("00005", 1)
        return await inventory.read()

    carried = asyncio.run(scenario())
    assert carried["00001"]["collapsed"]["00002"]["count"] == 2
    assert "00005" not in carried


def test_remove_item_rejects_missing_or_short_items() -> None:
    inventory = InMemoryInventory("pc", ["alice"], CARRIED)
    with pytest.raises(ApplyFailure):
        asyncio.run(inventory.remove_item("00002", 4))
    with pytest.raises(ApplyFailure):
        asyncio.run(inventory.remove_item("nothing", 1))


def test_directory_resolves_ownership() -> None:
    directory = InventoryDirectory(
        [InMemoryInventory("mule", ["bob"]), InMemoryInventory("pc", ["alice", "bob"])]
    )
    assert directory.primary_for("alice").inventory_id == "pc"
    assert directory.primary_for("bob").inventory_id == "mule"
    assert directory.primary_for("carol") is None
    with pytest.raises(InventoryNotFound):
        directory.get("missing")


def test_name_matcher_trims_whitespace() -> None:
    gold = Denomination.from_mapping({"name": "Gold Coin", "value": 80})
    matches = NameMatcher().match_all(CARRIED, [gold])
    assert [path for path, _ in matches["Gold Coin"]] == ["00001.collapsed.00003.collapsed.00004"]
