"""Mini README: Authoritative processing of purchase and sale requests.

Structure:
    * TransactionCoordinator - runs one request to its terminal outcomes.

Processing order for every request:

1. Resolve the target inventory, check the requesting peer owns it and, for
   purchases, load the vendor.
2. Split the lines into those the vendor (or the peer, when selling) can
   satisfy and those rejected for stock. Rejected lines produce a
   ``failed-insufficient-stock`` notice; the rest continue.
3. Price the valid lines. Purchase totals use the vendor's current prices and
   round up to the smallest coin. Sale totals use the carried item's cost,
   falling back to the quoted price.
4. Ask the reviewer. When the world requires approval that is the
   authority's provider; otherwise an ``AutoApprover`` passes purchases at
   100% and sales at the automatic percentage. A decline surfaces as
   ``ApprovalDeclined`` and ends the request.
5. Under the vendor, wallet and inventory locks: re-check stock, check funds,
   apply each line and settle the processed total only.

Each line's inventory and stock changes land together. A line whose
inventory change is refused or whose stock write fails is undone and
skipped, so it is neither delivered nor charged. If settling fails the
inventory (and, for purchases, the vendor record) is put back before the
error is reported.

Approval happens before the locks are taken, so a slow reviewer never blocks
unrelated requests. Everything a reviewer saw is re-validated once the locks
are held. Unexpected errors are logged and reported to the peer as a generic
failure.
"""

from __future__ import annotations

import math
from collections import defaultdict
from decimal import Decimal
from fractions import Fraction
from typing import Any, Dict, List, Optional, Tuple

from ..currency.denominations import ROUND_UP, to_fraction
from ..currency.formatting import format_currency
from ..exceptions import ApplyFailure, ApprovalDeclined, InventoryNotFound, OutOfStock, VendorNotFound
from ..ledger.inventory import (
    DELETE,
    InventoryDocument,
    InventoryItem,
    find_item_path,
    flatten_items,
    get_item_at,
)
from ..ledger.store import LedgerStore
from ..logging_utils import get_logger
from ..vendors.models import VendorRecord
from .approval import ApprovalDecision, ApprovalProvider, AutoApprover, PendingApprovalQueue
from .locks import ResourceLocks, inventory_key, vendor_key, wallet_key
from .models import OutcomeStatus, RequestLine, TransactionKind, TransactionOutcome, TransactionRequest

LOGGER = get_logger(__name__)

Checked = Tuple[List[RequestLine], List[OutOfStock]]


class TransactionCoordinator:
    """Applies peer requests against the ledger on behalf of the authority."""

    def __init__(
        self,
        ledger: LedgerStore,
        approvals: Optional[ApprovalProvider] = None,
        locks: Optional[ResourceLocks] = None,
    ) -> None:
        self.ledger = ledger
        self.approvals = approvals or PendingApprovalQueue()
        self.locks = locks or ResourceLocks()

    async def process(self, request: TransactionRequest) -> List[TransactionOutcome]:
        """Run a request and return its outcomes, the final one last."""

        LOGGER.info(
            "Processing %s request %s from %s (%s lines)",
            request.kind.value,
            request.request_id,
            request.requesting_peer_id,
            len(request.lines),
        )
        try:
            if request.kind is TransactionKind.PURCHASE:
                outcomes = await self._purchase(request)
            else:
                outcomes = await self._sale(request)
        except Exception as error:
            LOGGER.exception("Request %s failed while applying", request.request_id)
            verb = "purchase" if request.kind is TransactionKind.PURCHASE else "sale"
            outcomes = [
                self._outcome(
                    request,
                    OutcomeStatus.FAILED,
                    f"An error occurred while processing the {verb}: {error}",
                )
            ]
        final = outcomes[-1]
        LOGGER.info("Request %s finished: %s", request.request_id, final.status.value)
        return outcomes

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _outcome(
        self, request: TransactionRequest, status: OutcomeStatus, message: str, **details
    ) -> TransactionOutcome:
        return TransactionOutcome(
            request_id=request.request_id,
            peer_id=request.requesting_peer_id,
            kind=request.kind,
            status=status,
            message=message,
            **details,
        )

    def _stock_notice(
        self, request: TransactionRequest, rejected: List[OutOfStock], final: bool
    ) -> TransactionOutcome:
        return self._outcome(
            request,
            OutcomeStatus.INSUFFICIENT_STOCK,
            " ".join(str(error) for error in rejected),
            rejected_items=[error.item_name for error in rejected],
            final=final,
        )

    def _format(self, units: int) -> str:
        return format_currency(
            self.ledger.currency.from_base_units(units), self.ledger.world.currency_symbol
        )

    def _display(self, units: int) -> Decimal:
        return self.ledger.currency.from_base_units(units)

    def _inventory_for(
        self, request: TransactionRequest
    ) -> Tuple[Optional[InventoryDocument], Optional[TransactionOutcome]]:
        try:
            document = self.ledger.directory.get(request.target_inventory_id)
        except InventoryNotFound:
            return None, self._outcome(
                request,
                OutcomeStatus.FAILED,
                "Character not found. Please ensure your character exists and has proper permissions.",
            )
        if not document.is_owned_by(request.requesting_peer_id):
            LOGGER.warning(
                "Peer %s does not own inventory %s",
                request.requesting_peer_id,
                request.target_inventory_id,
            )
            return None, self._outcome(
                request,
                OutcomeStatus.FAILED,
                f"You do not own {document.name}.",
            )
        return document, None

    def _reviewer(self) -> ApprovalProvider:
        if self.ledger.world.require_approval:
            return self.approvals
        return AutoApprover(self.ledger.world.automatic_sell_percentage)

    @staticmethod
    def _require(decision: ApprovalDecision, verb: str) -> ApprovalDecision:
        if not decision.approved:
            message = f"{verb} declined by the authority."
            if decision.reason:
                message = f"{message} {decision.reason}"
            raise ApprovalDeclined(message)
        return decision

    @staticmethod
    async def _restore_items(document: InventoryDocument, before: Dict[str, Any]) -> None:
        """Put every carried item back the way ``before`` had it."""

        previous = dict(flatten_items(before))
        current = dict(flatten_items(await document.read()))
        updates: Dict[str, Any] = {}
        for path, item in previous.items():
            now = current.get(path)
            if now is None:
                updates[path] = dict(item)
            elif now.get("count") != item.get("count"):
                updates[f"{path}.count"] = item.get("count")
        for path in current:
            if path not in previous:
                updates[path] = DELETE
        if updates:
            LOGGER.warning("Restoring %s entries of inventory %s", len(updates), document.inventory_id)
            await document.patch(updates)

    @staticmethod
    def _check_vendor_stock(vendor: VendorRecord, lines: List[RequestLine]) -> Checked:
        valid: List[RequestLine] = []
        rejected: List[OutOfStock] = []
        claimed: Dict[str, int] = defaultdict(int)
        for line in lines:
            item = vendor.find_item(line.item_id)
            if item is None:
                rejected.append(OutOfStock(line.label, line.quantity, None))
                continue
            wanted = claimed[item.id] + line.quantity
            if not item.has_stock_for(wanted):
                available = item.quantity - claimed[item.id] if item.quantity else None
                rejected.append(OutOfStock(item.name, line.quantity, available))
                continue
            claimed[item.id] = wanted
            valid.append(line)
        return valid, rejected

    @staticmethod
    def _check_holdings(carried: Dict, lines: List[RequestLine]) -> Checked:
        valid: List[RequestLine] = []
        rejected: List[OutOfStock] = []
        claimed: Dict[str, int] = defaultdict(int)
        for line in lines:
            path = find_item_path(carried, line.item_id)
            item = get_item_at(carried, path) if path else None
            if item is None:
                rejected.append(OutOfStock(line.label, line.quantity, None))
                continue
            held = int(item.get("count", 0)) - claimed[line.item_id]
            if held < line.quantity:
                rejected.append(OutOfStock(item["name"], line.quantity, max(0, held)))
                continue
            claimed[line.item_id] += line.quantity
            valid.append(line)
        return valid, rejected

    def _purchase_total(self, vendor: VendorRecord, lines: List[RequestLine]) -> int:
        total = Fraction(0)
        for line in lines:
            item = vendor.find_item(line.item_id)
            total += to_fraction(item.price) * line.quantity
        return self.ledger.currency.to_base_units(total, ROUND_UP)

    @staticmethod
    def _sale_value(carried: Dict, line: RequestLine) -> Fraction:
        item = get_item_at(carried, find_item_path(carried, line.item_id) or "")
        cost = item.get("cost") if item else None
        unit = to_fraction(cost) if cost not in (None, "", 0) else to_fraction(line.unit_price)
        return unit * line.quantity

    def _payout(self, value: Fraction, percentage: int) -> int:
        return math.ceil(value * self.ledger.currency.multiplier * percentage / 100)

    def _remaining_stock(self, vendor_id: str, item_id: str) -> Optional[int]:
        """Units the vendor holds now; ``None`` for unbounded items."""

        item = self.ledger.get_vendor(vendor_id).find_item(item_id)
        return 0 if item is None else item.quantity

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------
    async def _purchase(self, request: TransactionRequest) -> List[TransactionOutcome]:
        document, failure = self._inventory_for(request)
        if failure:
            return [failure]
        if not request.lines:
            return [self._outcome(request, OutcomeStatus.FAILED, "No items were selected.")]
        try:
            vendor = self.ledger.get_vendor(request.vendor_id or "")
        except VendorNotFound:
            return [
                self._outcome(
                    request,
                    OutcomeStatus.FAILED,
                    "Vendor not found. The vendor may have been deleted.",
                )
            ]
        if not vendor.active:
            return [self._outcome(request, OutcomeStatus.FAILED, f"{vendor.name} is not trading right now.")]

        outcomes: List[TransactionOutcome] = []
        valid, rejected = self._check_vendor_stock(vendor, request.lines)
        if rejected:
            outcomes.append(self._stock_notice(request, rejected, final=not valid))
        if not valid:
            return outcomes

        quoted = self._purchase_total(vendor, valid)
        try:
            decision = await self._reviewer().review_purchase(request, self._display(quoted))
            self._require(decision, "Purchase")
        except ApprovalDeclined as error:
            LOGGER.info("Purchase %s declined", request.request_id)
            outcomes.append(self._outcome(request, OutcomeStatus.DECLINED, str(error)))
            return outcomes

        async with self.locks.hold(
            vendor_key(vendor.id),
            wallet_key(request.requesting_peer_id),
            inventory_key(document.inventory_id),
        ):
            outcomes.extend(await self._apply_purchase(request, document, valid))
        return outcomes

    async def _apply_purchase(
        self, request: TransactionRequest, document: InventoryDocument, lines: List[RequestLine]
    ) -> List[TransactionOutcome]:
        outcomes: List[TransactionOutcome] = []
        try:
            vendor = self.ledger.get_vendor(request.vendor_id or "")
        except VendorNotFound:
            return [self._outcome(request, OutcomeStatus.FAILED, "Vendor not found. The vendor may have been deleted.")]

        valid, rejected = self._check_vendor_stock(vendor, lines)
        if rejected:
            outcomes.append(self._stock_notice(request, rejected, final=not valid))
        if not valid:
            return outcomes

        peer_id = request.requesting_peer_id
        total = self._purchase_total(vendor, valid)
        balance = await self.ledger.get_balance(peer_id)
        if balance < total:
            outcomes.append(
                self._outcome(
                    request,
                    OutcomeStatus.INSUFFICIENT_FUNDS,
                    f"{document.name} doesn't have enough coins! Needs {self._format(total)}"
                    f" but only has {self._format(balance)}.",
                    affected_amount=self._display(total),
                    new_balance=self._display(balance),
                )
            )
            return outcomes

        carried = await document.read()
        items_processed = 0
        processed: List[RequestLine] = []
        for line in valid:
            if await self._apply_purchase_line(request, document, vendor, line):
                items_processed += line.quantity
                processed.append(line)

        if not processed:
            outcomes.append(self._outcome(request, OutcomeStatus.FAILED, "No items were purchased."))
            return outcomes

        cost = self._purchase_total(vendor, processed)
        try:
            new_balance = await self.ledger.debit(peer_id, cost)
        except Exception:
            LOGGER.exception("Charging request %s failed; taking the goods back", request.request_id)
            await self._restore_items(document, carried)
            await self.ledger.set_vendor(vendor.id, vendor)
            raise
        outcomes.append(
            self._outcome(
                request,
                OutcomeStatus.COMPLETED,
                f"{document.name} purchased {items_processed} items for {self._format(cost)}!",
                affected_amount=self._display(cost),
                new_balance=self._display(new_balance),
                item_count=items_processed,
            )
        )
        return outcomes

    async def _apply_purchase_line(
        self,
        request: TransactionRequest,
        document: InventoryDocument,
        vendor: VendorRecord,
        line: RequestLine,
    ) -> bool:
        """Deliver one line and take it from stock; returns False when it was skipped."""

        item = vendor.find_item(line.item_id)
        before = await document.read()
        try:
            added = await document.add_item(
                InventoryItem(
                    name=item.name,
                    count=line.quantity,
                    cost=item.price,
                    weight=item.weight,
                    ref=item.external_ref,
                ),
                line.quantity,
            )
            if not added:
                raise ApplyFailure(f"Failed to add {item.name} to {document.name}.")
        except ApplyFailure as error:
            LOGGER.warning("Skipping line %s of request %s: %s", line.item_id, request.request_id, error)
            await self._restore_items(document, before)
            return False
        except Exception:
            LOGGER.exception("Adding %s for request %s failed; skipping the line", item.name, request.request_id)
            await self._restore_items(document, before)
            return False

        stock_before = self._remaining_stock(vendor.id, item.id)
        try:
            await self.ledger.adjust_stock(vendor.id, item.id, -line.quantity)
        except Exception:
            stock_after = self._remaining_stock(vendor.id, item.id)
            if stock_before is not None and stock_after is not None and stock_after < stock_before:
                LOGGER.exception("Stock of %s was taken but announcing it failed", item.name)
                return True
            LOGGER.exception("Taking %s from stock failed; undoing line of request %s", item.name, request.request_id)
            await self._restore_items(document, before)
            return False
        return True

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------
    async def _sale(self, request: TransactionRequest) -> List[TransactionOutcome]:
        document, failure = self._inventory_for(request)
        if failure:
            return [failure]
        if not request.lines:
            return [self._outcome(request, OutcomeStatus.FAILED, "No items were selected.")]
        peer_id = request.requesting_peer_id
        if not self.ledger.can_credit(peer_id):
            return [self._outcome(request, OutcomeStatus.FAILED, f"{document.name} has nowhere to keep coins.")]

        outcomes: List[TransactionOutcome] = []
        carried = await document.read()
        valid, rejected = self._check_holdings(carried, request.lines)
        if rejected:
            outcomes.append(self._stock_notice(request, rejected, final=not valid))
        if not valid:
            return outcomes

        value = sum((self._sale_value(carried, line) for line in valid), Fraction(0))
        value_units = self.ledger.currency.to_base_units(value, ROUND_UP)
        automatic = not self.ledger.world.require_approval
        try:
            decision = await self._reviewer().review_sale(
                request, self._display(value_units), self.ledger.world.automatic_sell_percentage
            )
            self._require(decision, "Sale")
        except ApprovalDeclined as error:
            LOGGER.info("Sale %s declined", request.request_id)
            outcomes.append(self._outcome(request, OutcomeStatus.DECLINED, str(error)))
            return outcomes
        if self._payout(value, decision.percentage) < 1:
            outcomes.append(
                self._outcome(
                    request,
                    OutcomeStatus.FAILED,
                    "It's not worth trading just that! The sale value must be at least"
                    f" {self._format(1)}.",
                )
            )
            return outcomes

        async with self.locks.hold(wallet_key(peer_id), inventory_key(document.inventory_id)):
            outcomes.extend(
                await self._apply_sale(request, document, valid, decision.percentage, automatic)
            )
        return outcomes

    async def _apply_sale(
        self,
        request: TransactionRequest,
        document: InventoryDocument,
        lines: List[RequestLine],
        percentage: int,
        automatic: bool,
    ) -> List[TransactionOutcome]:
        outcomes: List[TransactionOutcome] = []
        carried = await document.read()
        valid, rejected = self._check_holdings(carried, lines)
        if rejected:
            outcomes.append(self._stock_notice(request, rejected, final=not valid))
        if not valid:
            return outcomes

        items_processed = 0
        value = Fraction(0)
        for line in valid:
            line_value = self._sale_value(carried, line)
            before = await document.read()
            try:
                await document.remove_item(line.item_id, line.quantity)
            except ApplyFailure as error:
                LOGGER.warning("Skipping line %s of request %s: %s", line.item_id, request.request_id, error)
                continue
            except Exception:
                LOGGER.exception("Removing %s for request %s failed; skipping the line", line.item_id, request.request_id)
                await self._restore_items(document, before)
                continue
            items_processed += line.quantity
            value += line_value

        if items_processed == 0:
            outcomes.append(self._outcome(request, OutcomeStatus.FAILED, "No items were sold."))
            return outcomes

        payout = self._payout(value, percentage)
        try:
            new_balance = await self.ledger.credit(request.requesting_peer_id, payout)
        except Exception:
            LOGGER.exception("Paying request %s failed; returning the items", request.request_id)
            await self._restore_items(document, carried)
            raise
        full_value = self.ledger.currency.to_base_units(value, ROUND_UP)
        verb = "automatically sold" if automatic else "sold"
        outcomes.append(
            self._outcome(
                request,
                OutcomeStatus.COMPLETED,
                f"{document.name} {verb} {items_processed} items for {self._format(payout)}"
                f" ({percentage}% of {self._format(full_value)})!",
                affected_amount=self._display(payout),
                new_balance=self._display(new_balance),
                item_count=items_processed,
            )
        )
        return outcomes
