"""Mini README: Shared fixtures for the bazaar test-suite.

Structure:
    * World - in-memory authority wiring (settings, channel, ledger, coordinator).
    * make_world - fixture returning the ``World`` factory.
    * add_vendor - fixture returning a coroutine that saves a demo vendor.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from bazaar.ledger import (
    InMemoryInventory,
    InMemorySettingsStore,
    InventoryDirectory,
    LedgerStore,
    SettingsStore,
)
from bazaar.messaging import LocalBroadcastChannel
from bazaar.transactions import PendingApprovalQueue, TransactionCoordinator
from bazaar.vendors import VendorItem, VendorRecord


class World:
    """Authority-side objects sharing one in-memory settings store."""

    def __init__(self, store: Optional[SettingsStore] = None, **settings: Any) -> None:
        values: Dict[str, Any] = {"requireApproval": False}
        values.update(settings)
        self.store = store if store is not None else InMemorySettingsStore(values)
        self.channel = LocalBroadcastChannel()
        self.directory = InventoryDirectory()
        self.ledger = LedgerStore(self.store, self.channel, self.directory)
        self.approvals = PendingApprovalQueue()
        self.coordinator = TransactionCoordinator(self.ledger, self.approvals)
        self.events: List[Any] = []
        self.channel.subscribe(self._record)

    async def _record(self, message: Any) -> None:
        self.events.append(message)

    def add_inventory(
        self,
        inventory_id: str,
        owner: str,
        carried: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
    ) -> InMemoryInventory:
        document = InMemoryInventory(inventory_id, [owner], carried, name=name)
        self.directory.register(document)
        return document

    def events_of(self, event_type: str) -> List[Any]:
        return [event for event in self.events if event.type == event_type]


@pytest.fixture
def make_world():
    return World


async def _add_vendor(world: World, vendor_id: str = "smith", items: Optional[List[VendorItem]] = None) -> VendorRecord:
    record = VendorRecord(
        id=vendor_id,
        name="Village Smith",
        items=items
        if items is not None
        else [
            VendorItem(id="sword", name="Sword", price=12.5, quantity=3, weight=3, external_ref="ref-sword"),
            VendorItem(id="rope", name="Rope", price=0.75, quantity=None, weight=1, external_ref="ref-rope"),
        ],
    )
    return await world.ledger.set_vendor(vendor_id, record)


@pytest.fixture
def add_vendor():
    return _add_vendor
