"""Mini README: Request and outcome records handled by the coordinator.

Structure:
    * TransactionKind - purchase or sale.
    * RequestLine / TransactionRequest - what a peer asked for.
    * OutcomeStatus / TransactionOutcome - what the authority answered.

Requests are built from the wire messages in ``bazaar.messaging.events`` and
outcomes convert back to them, so the coordinator itself never deals with
message shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from ..messaging.events import (
    PlayerPurchaseRequest,
    PlayerSellRequest,
    PurchaseCompleted,
    PurchaseFailed,
    SellCompleted,
    SellFailed,
)


class TransactionKind(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"


class OutcomeStatus(str, Enum):
    """Terminal states of a request."""

    COMPLETED = "completed"
    INSUFFICIENT_STOCK = "failed-insufficient-stock"
    INSUFFICIENT_FUNDS = "failed-insufficient-funds"
    DECLINED = "declined"
    FAILED = "failed"


@dataclass(slots=True)
class RequestLine:
    """One requested item with its quantity and quoted unit price."""

    item_id: str
    quantity: int = 1
    unit_price: Decimal = Decimal("0")
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.item_id


@dataclass(slots=True)
class TransactionRequest:
    request_id: str
    kind: TransactionKind
    requesting_peer_id: str
    target_inventory_id: str
    lines: List[RequestLine] = field(default_factory=list)
    vendor_id: Optional[str] = None

    @classmethod
    def from_message(
        cls, message: Union[PlayerPurchaseRequest, PlayerSellRequest]
    ) -> "TransactionRequest":
        lines = [
            RequestLine(
                item_id=item.id,
                quantity=item.quantity,
                unit_price=item.price,
                name=item.name,
            )
            for item in message.selectedItems
        ]
        if isinstance(message, PlayerPurchaseRequest):
            return cls(
                request_id=message.requestId,
                kind=TransactionKind.PURCHASE,
                requesting_peer_id=message.userId,
                target_inventory_id=message.actorId,
                lines=lines,
                vendor_id=message.vendorId,
            )
        return cls(
            request_id=message.requestId,
            kind=TransactionKind.SALE,
            requesting_peer_id=message.userId,
            target_inventory_id=message.actorId,
            lines=lines,
        )


@dataclass(slots=True)
class TransactionOutcome:
    """Answer for the requesting peer.

    ``final`` is False only for the stock rejection notice that precedes
    the outcome of the remaining lines.
    """

    request_id: str
    peer_id: str
    kind: TransactionKind
    status: OutcomeStatus
    message: str
    affected_amount: Decimal = Decimal("0")
    new_balance: Optional[Decimal] = None
    item_count: int = 0
    rejected_items: List[str] = field(default_factory=list)
    final: bool = True

    @property
    def success(self) -> bool:
        return self.status is OutcomeStatus.COMPLETED

    def to_message(self) -> BaseModel:
        if self.kind is TransactionKind.PURCHASE:
            message_cls = PurchaseCompleted if self.success else PurchaseFailed
        else:
            message_cls = SellCompleted if self.success else SellFailed
        return message_cls(
            requestId=self.request_id,
            userId=self.peer_id,
            status=self.status.value,
            success=self.success,
            message=self.message,
            amount=self.affected_amount,
            newBalance=self.new_balance,
            itemCount=self.item_count,
            rejectedItems=list(self.rejected_items),
            final=self.final,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "peer_id": self.peer_id,
            "kind": self.kind.value,
            "status": self.status.value,
            "success": self.success,
            "message": self.message,
            "affected_amount": str(self.affected_amount),
            "new_balance": None if self.new_balance is None else str(self.new_balance),
            "item_count": self.item_count,
            "rejected_items": list(self.rejected_items),
            "final": self.final,
        }
