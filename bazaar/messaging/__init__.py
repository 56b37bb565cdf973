"""Mini README: Messaging between the authority and its peers.

Structure:
    * events - pydantic wire shapes discriminated on ``type``.
    * channel - broadcast channel abstraction and in-process implementation.
    * bridge - authority-side dispatcher feeding the transaction coordinator.
    * peer - peer-side session with a vendor cache.

Only ``events`` and ``channel`` are re-exported here; import ``bridge`` and
``peer`` from their modules since they depend on the transaction layer.
"""

from .channel import BroadcastChannel, LocalBroadcastChannel, MessageHandler
from .events import (
    ItemPurchased,
    OutcomeMessage,
    PlayerPurchaseRequest,
    PlayerSellRequest,
    PurchaseCompleted,
    PurchaseFailed,
    SelectedItem,
    SellCompleted,
    SellFailed,
    VendorDeleted,
    VendorUpdated,
    dump_message,
    parse_message,
)

__all__ = [
    "BroadcastChannel",
    "ItemPurchased",
    "LocalBroadcastChannel",
    "MessageHandler",
    "OutcomeMessage",
    "PlayerPurchaseRequest",
    "PlayerSellRequest",
    "PurchaseCompleted",
    "PurchaseFailed",
    "SelectedItem",
    "SellCompleted",
    "SellFailed",
    "VendorDeleted",
    "VendorUpdated",
    "dump_message",
    "parse_message",
]
