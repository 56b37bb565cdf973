"""Mini README: Tests for the world settings stores.

Structure:
    * Defaults and copies - registered keys fall back to defaults and reads are isolated.
    * Subscriptions - callbacks fire on writes until unsubscribed.
    * JSON persistence - values survive a new store instance.
"""

from __future__ import annotations

import asyncio

from bazaar.ledger import InMemorySettingsStore, JsonFileSettingsStore, WorldSettings


def test_defaults_and_isolated_copies() -> None:
    store = InMemorySettingsStore()
    assert store.get("requireApproval") is True
    assert store.get("automaticSellPercentage") == 50
    assert store.get("currencyDenominations")[0]["name"] == "Gold Coin"

    vendors = store.get("vendors")
    vendors["ghost"] = {"id": "ghost"}
    assert store.get("vendors") == {}


def test_subscribers_receive_updates_until_unsubscribed() -> None:
    store = InMemorySettingsStore()
    seen = []
    unsubscribe = store.subscribe("currencySymbol", lambda key, value: seen.append((key, value)))

    asyncio.run(store.set("currencySymbol", "£"))
    unsubscribe()
    asyncio.run(store.set("currencySymbol", "€"))

    assert seen == [("currencySymbol", "£")]
    assert store.get("currencySymbol") == "€"


def test_json_store_persists_between_instances(tmp_path) -> None:
    path = tmp_path / "world" / "settings.json"
    store = JsonFileSettingsStore(path)
    asyncio.run(store.set("wallets", {"alice": "12.5"}))

    reloaded = JsonFileSettingsStore(path)
    assert reloaded.get("wallets") == {"alice": "12.5"}
    assert reloaded.get("requireApproval") is True


def test_world_settings_clamps_sell_percentage() -> None:
    store = InMemorySettingsStore({"automaticSellPercentage": 150, "currencyName": "crowns"})
    world = WorldSettings(store)
    assert world.automatic_sell_percentage == 100
    assert world.as_dict()["currencyName"] == "crowns"
