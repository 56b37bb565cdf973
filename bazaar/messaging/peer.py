"""Mini README: Peer-side session for trading with the authority.

Structure:
    * VendorCache - local copies of vendor records kept fresh by broadcasts.
    * PeerSession - sends requests and collects outcomes addressed to the peer.

Peers never mutate vendors or wallets themselves; they only read the shared
settings store and ask the authority through the channel.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel

from ..ledger.settings_store import VENDORS_KEY, SettingsStore
from ..logging_utils import get_logger
from ..vendors.models import VendorRecord
from .channel import BroadcastChannel
from .events import (
    ItemPurchased,
    OutcomeMessage,
    PlayerPurchaseRequest,
    PlayerSellRequest,
    SelectedItem,
    VendorDeleted,
    VendorUpdated,
)

LOGGER = get_logger(__name__)


class VendorCache:
    """Vendor records as last seen by a peer."""

    def __init__(self, settings: SettingsStore) -> None:
        self.settings = settings
        self._records: Dict[str, VendorRecord] = {}

    def get(self, vendor_id: str) -> Optional[VendorRecord]:
        if vendor_id not in self._records:
            data = self.settings.get(VENDORS_KEY).get(vendor_id)
            if data is None:
                return None
            self._records[vendor_id] = VendorRecord.from_dict(data)
        return self._records[vendor_id]

    def is_cached(self, vendor_id: str) -> bool:
        return vendor_id in self._records

    def apply(self, event: BaseModel) -> None:
        if isinstance(event, VendorUpdated):
            self._records[event.vendorId] = VendorRecord.from_dict(event.vendor)
        elif isinstance(event, (ItemPurchased, VendorDeleted)):
            self._records.pop(event.vendorId, None)


class PeerSession:
    """A connected peer."""

    def __init__(self, peer_id: str, channel: BroadcastChannel, settings: SettingsStore) -> None:
        self.peer_id = peer_id
        self.channel = channel
        self.vendors = VendorCache(settings)
        self.outcomes: List[OutcomeMessage] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.channel.subscribe(self._on_message)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _on_message(self, message: BaseModel) -> None:
        if isinstance(message, OutcomeMessage):
            if message.userId == self.peer_id:
                self.outcomes.append(message)
        elif isinstance(message, (VendorUpdated, VendorDeleted, ItemPurchased)):
            self.vendors.apply(message)

    async def purchase(
        self, inventory_id: str, vendor_id: str, items: Iterable[SelectedItem]
    ) -> str:
        """Ask the authority for a purchase; returns the request id."""

        message = PlayerPurchaseRequest(
            userId=self.peer_id,
            actorId=inventory_id,
            vendorId=vendor_id,
            selectedItems=list(items),
        )
        LOGGER.debug("Peer %s requesting purchase %s", self.peer_id, message.requestId)
        await self.channel.emit(message)
        return message.requestId

    async def sell(self, inventory_id: str, items: Iterable[SelectedItem]) -> str:
        """Offer items to the authority; returns the request id."""

        message = PlayerSellRequest(userId=self.peer_id, actorId=inventory_id, selectedItems=list(items))
        LOGGER.debug("Peer %s offering sale %s", self.peer_id, message.requestId)
        await self.channel.emit(message)
        return message.requestId

    def outcomes_for(self, request_id: str) -> List[OutcomeMessage]:
        return [outcome for outcome in self.outcomes if outcome.requestId == request_id]
