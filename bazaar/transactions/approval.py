"""Mini README: Authority approval of purchases and sales.

Structure:
    * ApprovalDecision - approve/decline plus the payout percentage for sales.
    * ApprovalProvider - abstract reviewer consulted by the coordinator.
    * AutoApprover - approves everything at a fixed sale percentage; the
      coordinator uses it whenever the world does not require approval.
    * ApprovalTicket / PendingApprovalQueue - park reviews until the authority
      answers through the web interface.

A pending review waits for as long as the authority takes; there is no
timeout. Only the task handling that request is blocked, other requests keep
flowing. Tickets abandoned on shutdown resolve as declined.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

from ..logging_utils import get_logger
from .models import TransactionKind, TransactionRequest

LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ApprovalDecision:
    approved: bool
    percentage: int = 100
    reason: str = ""

    def __post_init__(self) -> None:
        if not 0 <= self.percentage <= 100:
            raise ValueError("Sale percentage must be between 0 and 100.")

    @classmethod
    def approve(cls, percentage: int = 100) -> "ApprovalDecision":
        return cls(True, percentage)

    @classmethod
    def decline(cls, reason: str = "") -> "ApprovalDecision":
        return cls(False, 0, reason)


class ApprovalProvider(ABC):
    """Reviewer asked before a request is applied."""

    @abstractmethod
    async def review_purchase(self, request: TransactionRequest, total: Decimal) -> ApprovalDecision:
        """Decide on a purchase costing ``total`` (display amount)."""

    @abstractmethod
    async def review_sale(
        self, request: TransactionRequest, total: Decimal, default_percentage: int
    ) -> ApprovalDecision:
        """Decide on a sale worth ``total`` and pick the payout percentage."""


class AutoApprover(ApprovalProvider):
    """Approves every purchase and pays a fixed share for sales."""

    def __init__(self, sell_percentage: int = 100) -> None:
        self.sell_percentage = sell_percentage

    async def review_purchase(self, request: TransactionRequest, total: Decimal) -> ApprovalDecision:
        return ApprovalDecision.approve()

    async def review_sale(
        self, request: TransactionRequest, total: Decimal, default_percentage: int
    ) -> ApprovalDecision:
        return ApprovalDecision.approve(self.sell_percentage)


@dataclass(slots=True)
class ApprovalTicket:
    """A review waiting for the authority."""

    ticket_id: str
    request: TransactionRequest
    total: Decimal
    default_percentage: int
    future: "asyncio.Future[ApprovalDecision]" = field(repr=False)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "kind": self.request.kind.value,
            "request_id": self.request.request_id,
            "peer_id": self.request.requesting_peer_id,
            "inventory_id": self.request.target_inventory_id,
            "vendor_id": self.request.vendor_id,
            "total": str(self.total),
            "default_percentage": self.default_percentage,
            "items": [
                {"id": line.item_id, "name": line.label, "quantity": line.quantity}
                for line in self.request.lines
            ],
        }


class PendingApprovalQueue(ApprovalProvider):
    """Approval provider answered asynchronously by the authority."""

    def __init__(self) -> None:
        self._tickets: Dict[str, ApprovalTicket] = {}

    async def _park(
        self, request: TransactionRequest, total: Decimal, default_percentage: int
    ) -> ApprovalDecision:
        ticket = ApprovalTicket(
            ticket_id=uuid.uuid4().hex,
            request=request,
            total=total,
            default_percentage=default_percentage,
            future=asyncio.get_running_loop().create_future(),
        )
        self._tickets[ticket.ticket_id] = ticket
        LOGGER.info(
            "Awaiting approval %s for %s request %s (total %s)",
            ticket.ticket_id,
            request.kind.value,
            request.request_id,
            total,
        )
        try:
            return await ticket.future
        finally:
            self._tickets.pop(ticket.ticket_id, None)

    async def review_purchase(self, request: TransactionRequest, total: Decimal) -> ApprovalDecision:
        return await self._park(request, total, 100)

    async def review_sale(
        self, request: TransactionRequest, total: Decimal, default_percentage: int
    ) -> ApprovalDecision:
        return await self._park(request, total, default_percentage)

    def list_pending(self) -> List[ApprovalTicket]:
        return list(self._tickets.values())

    def resolve(self, ticket_id: str, decision: ApprovalDecision) -> ApprovalTicket:
        """Answer a pending ticket."""

        ticket = self._tickets.get(ticket_id)
        if ticket is None or ticket.future.done():
            raise KeyError(f"Unknown approval ticket '{ticket_id}'")
        if ticket.request.kind is TransactionKind.PURCHASE and decision.approved:
            decision = ApprovalDecision.approve()
        ticket.future.set_result(decision)
        LOGGER.info(
            "Approval %s %s", ticket_id, "granted" if decision.approved else "declined"
        )
        return ticket

    def decline_all(self) -> int:
        """Decline every pending ticket; returns how many were pending."""

        pending = [ticket for ticket in self._tickets.values() if not ticket.future.done()]
        for ticket in pending:
            ticket.future.set_result(ApprovalDecision.decline("The authority went offline."))
        if pending:
            LOGGER.warning("Declined %s abandoned approval tickets", len(pending))
        return len(pending)
