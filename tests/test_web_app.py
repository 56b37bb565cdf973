"""Mini README: HTTP and WebSocket tests for the authority service.

Structure:
    * client fixture - application over an in-memory settings store.
    * Vendor, wallet, settings and denomination routes.
    * Authority edits racing a purchase in flight.
    * Purchase/sale submission and approval routes.
    * Peer WebSocket relaying broadcasts and forwarding requests.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from bazaar.configuration import BazaarSettings
from bazaar.interface import BazaarServices, create_application
from bazaar.ledger import InMemoryInventory, InMemorySettingsStore, InventoryItem
from bazaar.transactions import RequestLine, TransactionKind, TransactionRequest
from bazaar.transactions.locks import wallet_key
from bazaar.vendors import VendorItem, VendorRecord

VENDOR = {
    "name": "Village Smith",
    "items": [
        {"id": "sword", "name": "Sword", "price": "12.5", "quantity": 3},
        {"id": "rope", "name": "Rope", "price": "0.75"},
    ],
}


@pytest.fixture
def client(tmp_path):
    services = BazaarServices.build(
        BazaarSettings(data_directory=tmp_path),
        InMemorySettingsStore({"requireApproval": False}),
    )
    with TestClient(create_application(services)) as test_client:
        yield test_client


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_vendor_crud(client) -> None:
    assert client.put("/vendors/smith", json=VENDOR).status_code == 200

    vendor = client.get("/vendors/smith").json()
    assert vendor["name"] == "Village Smith"
    assert [item["id"] for item in vendor["items"]] == ["sword", "rope"]
    assert len(client.get("/vendors").json()["vendors"]) == 1

    adjusted = client.post("/vendors/smith/stock", json={"item_id": "sword", "delta": -1})
    assert adjusted.json()["item"]["quantity"] == 2

    assert client.delete("/vendors/smith").status_code == 200
    assert client.get("/vendors/smith").status_code == 404
    assert client.delete("/vendors/smith").status_code == 404


def test_invalid_vendor_payload_is_rejected(client) -> None:
    payload = {"name": "Broken", "items": [{"id": "x", "name": "X", "price": "-1"}]}
    assert client.put("/vendors/broken", json=payload).status_code == 422


def test_adjusting_unknown_item_is_not_found(client) -> None:
    client.put("/vendors/smith", json=VENDOR)
    response = client.post("/vendors/smith/stock", json={"item_id": "anvil", "delta": 1})
    assert response.status_code == 404


def test_generate_stock_replaces_items(client) -> None:
    client.put("/vendors/smith", json={**VENDOR, "stock": {"item_count": 2, "stock_min": 1, "stock_max": 4}})
    catalog = [{"name": f"Item {index}", "price": index + 1} for index in range(5)]

    response = client.post("/vendors/smith/generate", json={"catalog": catalog, "seed": 7})
    items = response.json()["items"]
    assert len(items) == 2
    assert all(1 <= item["quantity"] <= 4 for item in items)


def test_wallet_roundtrip(client) -> None:
    response = client.put("/wallets/alice", json={"amount": "93"})
    assert response.status_code == 200

    wallet = client.get("/wallets/alice").json()
    assert wallet["balance"] == "93"
    assert wallet["base_units"] == 930
    assert wallet["display"] == "$93.00"


def test_invalid_denominations_are_rejected(client) -> None:
    duplicate = [{"name": "Coin", "value": "1"}, {"name": "Coin", "value": "2"}]
    assert client.put("/denominations", json=duplicate).status_code == 400
    assert len(client.get("/denominations").json()["denominations"]) == 4


def test_denominations_can_be_replaced(client) -> None:
    table = [{"name": "Crown", "value": "5"}, {"name": "Penny", "value": "1"}]
    response = client.put("/denominations", json=table)
    assert response.status_code == 200
    assert [entry["name"] for entry in response.json()["denominations"]] == ["Crown", "Penny"]
    assert client.get("/denominations").json()["smallest_unit"] == "1"


def test_settings_patch(client) -> None:
    response = client.patch("/settings", json={"automaticSellPercentage": 75, "currencySymbol": "G"})
    assert response.json()["automaticSellPercentage"] == 75
    assert response.json()["currencySymbol"] == "G"
    assert client.patch("/settings", json={"automaticSellPercentage": 150}).status_code == 422


def test_purchase_and_sale_over_http(client) -> None:
    client.put("/vendors/smith", json=VENDOR)
    client.put("/wallets/alice", json={"amount": "100"})
    client.post("/inventories", json={"inventory_id": "alice-pc", "owner_ids": ["alice"], "name": "Alice"})

    purchase = client.post(
        "/purchases",
        json={
            "userId": "alice",
            "actorId": "alice-pc",
            "vendorId": "smith",
            "selectedItems": [{"id": "sword", "quantity": 2}, {"id": "rope"}],
        },
    ).json()
    (outcome,) = purchase["outcomes"]
    assert outcome["type"] == "purchaseCompleted"
    assert outcome["newBalance"] == "74.2"

    carried = client.get("/inventories/alice-pc").json()["carried"]
    sword_key = next(key for key, item in carried.items() if item["name"] == "Sword")
    sale = client.post(
        "/sales",
        json={"userId": "alice", "actorId": "alice-pc", "selectedItems": [{"id": sword_key, "quantity": 1}]},
    ).json()
    assert sale["outcomes"][-1]["type"] == "sellCompleted"
    assert sale["outcomes"][-1]["amount"] == "6.3"


def test_purchase_failure_is_reported_not_raised(client) -> None:
    client.post("/inventories", json={"inventory_id": "alice-pc", "owner_ids": ["alice"]})
    response = client.post(
        "/purchases",
        json={"userId": "bob", "actorId": "alice-pc", "vendorId": "smith", "selectedItems": [{"id": "sword"}]},
    )
    assert response.status_code == 200
    assert response.json()["outcomes"][-1]["type"] == "purchaseFailed"


def test_approval_routes(client) -> None:
    assert client.get("/approvals").json() == {"pending": []}
    response = client.post("/approvals/missing", json={"approved": True})
    assert response.status_code == 404


def test_unknown_inventory_is_not_found(client) -> None:
    assert client.get("/inventories/nowhere").status_code == 404


def test_websocket_relays_broadcasts_and_requests(client) -> None:
    client.put("/wallets/alice", json={"amount": "100"})
    client.post("/inventories", json={"inventory_id": "alice-pc", "owner_ids": ["alice"]})

    with client.websocket_connect("/ws/alice") as websocket:
        client.put("/vendors/smith", json=VENDOR)
        assert websocket.receive_json()["type"] == "vendorUpdated"

        websocket.send_json(
            {
                "type": "playerPurchaseRequest",
                "actorId": "alice-pc",
                "vendorId": "smith",
                "selectedItems": [{"id": "rope", "quantity": 2}],
            }
        )
        received = []
        for _ in range(10):
            message = websocket.receive_json()
            received.append(message["type"])
            if message["type"] == "purchaseCompleted":
                break
        assert received[-1] == "purchaseCompleted"
        assert "itemPurchased" in received


def test_websocket_rejects_non_request_messages(client) -> None:
    with client.websocket_connect("/ws/alice") as websocket:
        websocket.send_json({"type": "vendorDeleted", "vendorId": "smith"})
        assert websocket.receive_json()["type"] == "error"
        websocket.send_json({"type": "teleport"})
        assert websocket.receive_json()["type"] == "error"


def test_denominations_that_would_round_a_wallet_are_refused(client) -> None:
    client.put("/wallets/alice", json={"amount": "0.5"})
    table = [{"name": "Gold", "value": "80"}, {"name": "Silver", "value": "4"}, {"name": "Copper", "value": "1"}]

    response = client.put("/denominations", json=table)
    assert response.status_code == 400
    assert "alice" in response.json()["detail"]
    assert len(client.get("/denominations").json()["denominations"]) == 4
    assert client.get("/wallets/alice").json()["balance"] == "0.5"


class SlowInventory(InMemoryInventory):
    """Yields to the event loop while adding items."""

    async def add_item(self, item: InventoryItem, quantity: int) -> bool:
        await asyncio.sleep(0.01)
        return await super().add_item(item, quantity)


def test_wallet_top_up_during_a_purchase_is_kept(tmp_path) -> None:
    services = BazaarServices.build(
        BazaarSettings(data_directory=tmp_path),
        InMemorySettingsStore({"requireApproval": False}),
    )
    services.directory.register(SlowInventory("alice-pc", ["alice"]))
    app = create_application(services)

    async def scenario():
        await services.ledger.set_vendor(
            "smith",
            VendorRecord(
                id="smith",
                name="Village Smith",
                items=[VendorItem(id="sword", name="Sword", price=10, quantity=1)],
            ),
        )
        await services.ledger.set_balance("alice", 1000)
        processing = asyncio.create_task(
            services.coordinator.process(
                TransactionRequest(
                    request_id="r1",
                    kind=TransactionKind.PURCHASE,
                    requesting_peer_id="alice",
                    target_inventory_id="alice-pc",
                    lines=[RequestLine("sword", 1)],
                    vendor_id="smith",
                )
            )
        )
        while not services.locks.locked(wallet_key("alice")):
            await asyncio.sleep(0)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            response = await http.put("/wallets/alice", json={"amount": "500"})
        return response, processing.done(), await processing

    response, purchase_done, (outcome,) = asyncio.run(scenario())
    assert response.status_code == 200
    assert response.json()["balance"] == "500"
    assert purchase_done
    assert outcome.success
    assert asyncio.run(services.ledger.get_balance("alice")) == 5000
