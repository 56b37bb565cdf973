"""Mini README: Tests for the ledger store.

Structure:
    * Authority-managed balances - clamping, persistence and credits.
    * Inventory-derived balances - preserve-mode debits, credits and placeholders.
    * Vendors - writes, stock adjustments and the broadcasts that follow them.
    * Denominations - rebuilding the currency system from settings updates.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

import pytest

from bazaar.exceptions import (
    InsufficientFunds,
    InvalidDenominations,
    ItemNotFound,
    UnsupportedOperation,
    VendorNotFound,
)
from bazaar.ledger import AuthoritativeBalance, DerivedBalance

COIN_SHEET = {
    "00001": {"name": "Gold Coin", "count": 1},
    "00002": {"name": "Silver Coin", "count": 0},
    "00003": {"name": "Copper Farthing", "count": 3},
    "00004": {"name": "Pouch", "count": 1, "collapsed": {
        "00005": {"name": "Copper Farthing", "count": 2},
    }},
}


def test_authoritative_balance_is_clamped_and_stored_as_display_amount(make_world) -> None:
    world = make_world()

    async def scenario():
        await world.ledger.set_balance("alice", 742)
        first = await world.ledger.get_balance("alice")
        await world.ledger.set_balance("alice", -30)
        return first, await world.ledger.get_balance("alice")

    first, clamped = asyncio.run(scenario())
    assert first == 742
    assert clamped == 0
    assert world.store.get("wallets") == {"alice": "0"}


def test_unknown_peer_starts_with_nothing(make_world) -> None:
    world = make_world()
    source = asyncio.run(world.ledger.resolve_balance_source("nobody"))
    assert source == AuthoritativeBalance("nobody", 0)


def test_authoritative_credit_and_breakdown(make_world) -> None:
    world = make_world()

    async def scenario():
        await world.ledger.set_balance("alice", 300)
        new_balance = await world.ledger.credit("alice", 28)
        return new_balance, await world.ledger.coin_breakdown("alice")

    new_balance, breakdown = asyncio.run(scenario())
    assert new_balance == 328
    assert world.store.get("wallets")["alice"] == str(Decimal("32.8"))
    assert breakdown == [
        {"name": "Silver Coin", "count": 8, "value": 40},
        {"name": "Dime", "count": 8, "value": 1},
    ]


def test_derived_balance_sums_matching_coin_items(make_world) -> None:
    world = make_world(useModuleCurrencySystem=False)
    world.add_inventory("alice-pc", "alice", COIN_SHEET)

    source = asyncio.run(world.ledger.resolve_balance_source("alice"))
    assert isinstance(source, DerivedBalance)
    assert source.coins() == {"Gold Coin": 1, "Silver Coin": 0, "Copper Farthing": 5, "Dime": 0}
    assert world.ledger.source_total(source) == 850


def test_derived_debit_breaks_coins_and_drops_duplicates(make_world) -> None:
    world = make_world(useModuleCurrencySystem=False)
    inventory = world.add_inventory("alice-pc", "alice", COIN_SHEET)

    async def scenario():
        await world.ledger.set_balance("alice", 830)
        return await inventory.read(), await world.ledger.get_balance("alice")

    carried, balance = asyncio.run(scenario())
    assert balance == 830
    assert carried["00001"]["count"] == 1
    assert carried["00003"]["count"] == 3
    assert carried["00004"]["collapsed"] == {}


def test_derived_balance_cannot_be_raised_directly(make_world) -> None:
    world = make_world(useModuleCurrencySystem=False)
    world.add_inventory("alice-pc", "alice", COIN_SHEET)
    with pytest.raises(UnsupportedOperation):
        asyncio.run(world.ledger.set_balance("alice", 900))


def test_derived_credit_creates_missing_coin_items(make_world) -> None:
    world = make_world(useModuleCurrencySystem=False)
    inventory = world.add_inventory("alice-pc", "alice", COIN_SHEET)

    async def scenario():
        new_balance = await world.ledger.credit("alice", 45)
        return new_balance, await inventory.read()

    new_balance, carried = asyncio.run(scenario())
    assert new_balance == 895
    assert carried["00002"]["count"] == 1
    assert carried["00003"]["count"] == 5
    dimes = [item for item in carried.values() if item["name"] == "Dime"]
    assert dimes[0]["count"] == 5
    assert asyncio.run(world.ledger.get_balance("alice")) == 895


def test_initialize_missing_coins_adds_placeholders_once(make_world) -> None:
    world = make_world(useModuleCurrencySystem=False)
    world.add_inventory("alice-pc", "alice", COIN_SHEET)

    async def scenario():
        return (
            await world.ledger.initialize_missing_coins("alice-pc"),
            await world.ledger.initialize_missing_coins("alice-pc"),
        )

    assert asyncio.run(scenario()) == (1, 0)
    assert world.ledger.can_credit("alice")
    assert not world.ledger.can_credit("carol")


def test_set_vendor_broadcasts_update(make_world, add_vendor) -> None:
    world = make_world()
    asyncio.run(add_vendor(world))

    assert [vendor.id for vendor in world.ledger.list_vendors()] == ["smith"]
    updates = world.events_of("vendorUpdated")
    assert len(updates) == 1
    assert updates[0].vendor["items"][0]["name"] == "Sword"


def test_adjust_stock_removes_sold_out_items(make_world, add_vendor) -> None:
    world = make_world()

    async def scenario():
        await add_vendor(world)
        reduced = await world.ledger.adjust_stock("smith", "sword", -2)
        gone = await world.ledger.adjust_stock("smith", "sword", -5)
        unbounded = await world.ledger.adjust_stock("smith", "rope", -10)
        return reduced, gone, unbounded

    reduced, gone, unbounded = asyncio.run(scenario())
    assert reduced.quantity == 1
    assert gone is None
    assert unbounded.quantity is None
    assert world.ledger.get_vendor("smith").find_item("sword") is None
    purchases = world.events_of("itemPurchased")
    assert [event.quantity for event in purchases] == [1, 0, None]


def test_vendor_lookup_errors(make_world, add_vendor) -> None:
    world = make_world()
    asyncio.run(add_vendor(world))
    with pytest.raises(VendorNotFound):
        world.ledger.get_vendor("baker")
    with pytest.raises(ItemNotFound):
        asyncio.run(world.ledger.adjust_stock("smith", "bread", -1))
    with pytest.raises(VendorNotFound):
        asyncio.run(world.ledger.delete_vendor("baker"))


def test_delete_vendor_and_find_by_reference(make_world, add_vendor) -> None:
    world = make_world()
    asyncio.run(add_vendor(world))

    record, item = world.ledger.find_vendor_by_item_ref("ref-rope")
    assert (record.id, item.id) == ("smith", "rope")
    assert world.ledger.find_vendor_by_item_ref("ref-missing") is None

    asyncio.run(world.ledger.delete_vendor("smith"))
    assert world.ledger.list_vendors() == []
    assert world.events_of("vendorDeleted")[0].vendorId == "smith"


def test_denomination_updates_rebuild_the_currency(make_world, caplog) -> None:
    world = make_world()
    asyncio.run(
        world.ledger.set_denominations(
            [{"name": "Crown", "value": 5}, {"name": "Penny", "value": 1}]
        )
    )
    assert world.ledger.currency.multiplier == 1
    assert [d.name for d in world.ledger.currency.denominations] == ["Crown", "Penny"]

    with caplog.at_level(logging.WARNING):
        asyncio.run(
            world.ledger.set_denominations(
                [{"name": "Four", "value": 4}, {"name": "Three", "value": 3}, {"name": "One", "value": 1}]
            )
        )
    assert "not canonical" in caplog.text


def test_invalid_denomination_writes_keep_previous_system(make_world) -> None:
    world = make_world()
    before = world.ledger.currency
    asyncio.run(world.store.set("currencyDenominations", [{"name": "Gold", "value": -1}]))
    assert world.ledger.currency is before


def test_debit_settles_against_the_balance_stored_now(make_world) -> None:
    """A top-up landing between a read and a debit is kept."""

    world = make_world()

    async def scenario():
        await world.ledger.set_balance("alice", 1000)
        await world.ledger.get_balance("alice")
        await world.ledger.set_balance("alice", 5000)
        return await world.ledger.debit("alice", 100)

    assert asyncio.run(scenario()) == 4900
    assert world.store.get("wallets")["alice"] == "490"


def test_debit_refuses_more_than_the_balance(make_world) -> None:
    world = make_world()
    asyncio.run(world.ledger.set_balance("alice", 50))

    with pytest.raises(InsufficientFunds) as error:
        asyncio.run(world.ledger.debit("alice", 80))
    assert error.value.shortfall == 30
    assert asyncio.run(world.ledger.get_balance("alice")) == 50
    with pytest.raises(ValueError):
        asyncio.run(world.ledger.debit("alice", -1))


def test_denominations_that_would_round_a_balance_are_refused(make_world) -> None:
    world = make_world(wallets={"alice": "0.5", "bob": "12"})
    before = world.ledger.currency

    with pytest.raises(InvalidDenominations, match="alice"):
        asyncio.run(
            world.ledger.set_denominations(
                [{"name": "Gold", "value": 80}, {"name": "Silver", "value": 4}, {"name": "Copper", "value": 1}]
            )
        )
    assert world.ledger.currency is before
    assert world.store.get("wallets")["alice"] == "0.5"
    assert asyncio.run(world.ledger.get_balance("alice")) == 5


def test_direct_denomination_writes_warn_about_rounded_balances(make_world, caplog) -> None:
    world = make_world(wallets={"alice": "0.5"})

    with caplog.at_level(logging.WARNING):
        asyncio.run(world.store.set("currencyDenominations", [{"name": "Copper", "value": 1}]))
    assert world.ledger.stranded_wallets(world.ledger.currency) == ["alice"]
    assert "alice" in caplog.text
