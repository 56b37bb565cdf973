"""Mini README: Wire shapes exchanged over the broadcast channel.

Structure:
    * SelectedItem - one line of a purchase or sale request.
    * PlayerPurchaseRequest / PlayerSellRequest - peer to authority.
    * PurchaseCompleted / PurchaseFailed / SellCompleted / SellFailed - outcome
      messages addressed to one peer through ``userId``.
    * VendorUpdated / VendorDeleted / ItemPurchased - vendor cache invalidation
      sent to every peer.
    * parse_message / dump_message - conversion from and to JSON payloads.

Every message is a pydantic model discriminated on its ``type`` field, so a
raw payload from the channel or a WebSocket is validated in one call.
Field names keep the camelCase spelling used on the wire.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


def new_request_id() -> str:
    return uuid.uuid4().hex


class SelectedItem(BaseModel):
    """Request line chosen by the peer."""

    id: str
    quantity: int = Field(1, ge=1)
    price: Decimal = Field(Decimal("0"), ge=0)
    name: str = ""


class PlayerPurchaseRequest(BaseModel):
    type: Literal["playerPurchaseRequest"] = "playerPurchaseRequest"
    requestId: str = Field(default_factory=new_request_id)
    userId: str
    actorId: str
    vendorId: str
    selectedItems: List[SelectedItem]


class PlayerSellRequest(BaseModel):
    type: Literal["playerSellRequest"] = "playerSellRequest"
    requestId: str = Field(default_factory=new_request_id)
    userId: str
    actorId: str
    selectedItems: List[SelectedItem]


class OutcomeMessage(BaseModel):
    """Common fields of the four outcome messages."""

    requestId: str
    userId: str
    status: str
    success: bool
    message: str
    amount: Decimal = Decimal("0")
    newBalance: Optional[Decimal] = None
    itemCount: int = 0
    rejectedItems: List[str] = Field(default_factory=list)
    final: bool = True


class PurchaseCompleted(OutcomeMessage):
    type: Literal["purchaseCompleted"] = "purchaseCompleted"


class PurchaseFailed(OutcomeMessage):
    type: Literal["purchaseFailed"] = "purchaseFailed"


class SellCompleted(OutcomeMessage):
    type: Literal["sellCompleted"] = "sellCompleted"


class SellFailed(OutcomeMessage):
    type: Literal["sellFailed"] = "sellFailed"


class VendorUpdated(BaseModel):
    type: Literal["vendorUpdated"] = "vendorUpdated"
    vendorId: str
    vendor: Dict[str, Any]


class VendorDeleted(BaseModel):
    type: Literal["vendorDeleted"] = "vendorDeleted"
    vendorId: str


class ItemPurchased(BaseModel):
    type: Literal["itemPurchased"] = "itemPurchased"
    vendorId: str
    itemId: str
    quantity: Optional[int] = None


RequestMessage = Union[PlayerPurchaseRequest, PlayerSellRequest]
OutcomeEvent = Union[PurchaseCompleted, PurchaseFailed, SellCompleted, SellFailed]
VendorEvent = Union[VendorUpdated, VendorDeleted, ItemPurchased]

Message = Annotated[
    Union[
        PlayerPurchaseRequest,
        PlayerSellRequest,
        PurchaseCompleted,
        PurchaseFailed,
        SellCompleted,
        SellFailed,
        VendorUpdated,
        VendorDeleted,
        ItemPurchased,
    ],
    Field(discriminator="type"),
]

_MESSAGE_ADAPTER: TypeAdapter = TypeAdapter(Message)


def parse_message(payload: Mapping[str, Any]) -> BaseModel:
    """Validate a raw payload into its message model."""

    return _MESSAGE_ADAPTER.validate_python(dict(payload))


def dump_message(message: BaseModel) -> Dict[str, Any]:
    """JSON-compatible payload for a message model."""

    return message.model_dump(mode="json")
