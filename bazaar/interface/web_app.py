"""Mini README: FastAPI-powered authority service for the bazaar.

Structure:
    * BazaarServices - container wiring settings, ledger, coordinator and bridge.
    * create_application - application factory registering routes.
    * JSON routes - vendors, wallets, denominations, world settings,
      inventories, purchase/sale submission and approval tickets.
    * /ws/{peer_id} - WebSocket relaying the broadcast channel to one peer.

The HTTP routes act for the authority. Peers either call the submission
routes, which wait for the outcome, or keep a WebSocket open: requests they
send are forwarded to the channel and every broadcast (minus outcomes meant
for other peers) is pushed back to them. Authority edits hold the same
resource locks as the transactions they could race with; denomination and
world setting edits hold every resource at once.
"""

from __future__ import annotations

import asyncio
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from ..configuration import BazaarSettings, get_settings
from ..currency.denominations import ROUND_NEAREST
from ..currency.formatting import format_currency
from ..exceptions import (
    BazaarError,
    InsufficientFunds,
    InventoryNotFound,
    ItemNotFound,
    OutOfStock,
    UnsupportedOperation,
    VendorNotFound,
)
from ..ledger.inventory import InMemoryInventory, InventoryDirectory
from ..ledger.settings_store import (
    AUTOMATIC_SELL_PERCENTAGE_KEY,
    CURRENCY_NAME_KEY,
    CURRENCY_SYMBOL_KEY,
    REQUIRE_APPROVAL_KEY,
    USE_MODULE_CURRENCY_KEY,
    JsonFileSettingsStore,
    SettingsStore,
)
from ..ledger.store import LedgerStore
from ..logging_utils import configure_root_logger, get_logger
from ..messaging.bridge import MessagingBridge
from ..messaging.channel import LocalBroadcastChannel
from ..messaging.events import (
    OutcomeMessage,
    PlayerPurchaseRequest,
    PlayerSellRequest,
    dump_message,
    parse_message,
)
from ..transactions.approval import ApprovalDecision, PendingApprovalQueue
from ..transactions.coordinator import TransactionCoordinator
from ..transactions.locks import ResourceLocks, inventory_key, vendor_key, wallet_key
from ..vendors.generator import CatalogEntry, generate_stock
from ..vendors.models import StockParameters, VendorItem, VendorRecord

LOGGER = get_logger(__name__)


@dataclass
class BazaarServices:
    """Everything one authority process needs, built once per application."""

    settings: BazaarSettings
    store: SettingsStore
    channel: LocalBroadcastChannel
    directory: InventoryDirectory
    ledger: LedgerStore
    approvals: PendingApprovalQueue
    locks: ResourceLocks
    coordinator: TransactionCoordinator
    bridge: MessagingBridge

    @classmethod
    def build(
        cls,
        settings: Optional[BazaarSettings] = None,
        store: Optional[SettingsStore] = None,
    ) -> "BazaarServices":
        settings = settings or get_settings()
        store = store or JsonFileSettingsStore(settings.world_settings_path)
        channel = LocalBroadcastChannel()
        directory = InventoryDirectory()
        ledger = LedgerStore(store, channel, directory)
        approvals = PendingApprovalQueue()
        locks = ResourceLocks()
        coordinator = TransactionCoordinator(ledger, approvals, locks)
        bridge = MessagingBridge(channel, coordinator)
        return cls(settings, store, channel, directory, ledger, approvals, locks, coordinator, bridge)


class VendorItemPayload(BaseModel):
    id: str
    name: str
    price: Decimal = Field(ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    weight: float = 0.0
    external_ref: str = ""


class StockPayload(BaseModel):
    item_count: int = Field(10, ge=0)
    stock_min: int = Field(1, ge=0)
    stock_max: int = Field(10, ge=0)
    price_min: Optional[float] = None
    price_max: Optional[float] = None


class VendorPayload(BaseModel):
    name: str
    active: bool = True
    items: List[VendorItemPayload] = Field(default_factory=list)
    stock: StockPayload = Field(default_factory=StockPayload)


class StockAdjustment(BaseModel):
    item_id: str
    delta: int


class CatalogEntryPayload(BaseModel):
    name: str
    price: float = Field(ge=0)
    weight: float = 0.0
    external_ref: str = ""


class GenerateStockPayload(BaseModel):
    catalog: List[CatalogEntryPayload]
    seed: Optional[int] = None


class BalancePayload(BaseModel):
    amount: Decimal


class DenominationPayload(BaseModel):
    name: str
    value: Decimal
    weight: Decimal = Decimal("0")


class WorldSettingsPayload(BaseModel):
    useModuleCurrencySystem: Optional[bool] = None
    requireApproval: Optional[bool] = None
    automaticSellPercentage: Optional[int] = Field(None, ge=0, le=100)
    currencySymbol: Optional[str] = None
    currencyName: Optional[str] = None


class InventoryPayload(BaseModel):
    inventory_id: str
    owner_ids: List[str]
    name: Optional[str] = None
    carried: Dict[str, Any] = Field(default_factory=dict)


class ApprovalPayload(BaseModel):
    approved: bool
    percentage: int = Field(100, ge=0, le=100)
    reason: str = ""


def _http_error(error: Exception) -> HTTPException:
    """Translate domain errors into HTTP status codes."""

    if isinstance(error, (VendorNotFound, InventoryNotFound, ItemNotFound, KeyError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (InsufficientFunds, OutOfStock, UnsupportedOperation)):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


def _record_from_payload(vendor_id: str, payload: VendorPayload) -> VendorRecord:
    return VendorRecord(
        id=vendor_id,
        name=payload.name,
        active=payload.active,
        items=[
            VendorItem(
                id=item.id,
                name=item.name,
                price=float(item.price),
                quantity=item.quantity,
                weight=item.weight,
                external_ref=item.external_ref,
            )
            for item in payload.items
        ],
        stock=StockParameters(**payload.stock.model_dump()),
    )


def create_application(services: Optional[BazaarServices] = None) -> FastAPI:
    """Create the FastAPI application with routes and dependencies."""

    services = services or BazaarServices.build()
    configure_root_logger(services.settings.log_level)
    ledger = services.ledger
    bridge = services.bridge
    approvals = services.approvals
    locks = services.locks
    timeout = services.settings.outcome_timeout_seconds

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        bridge.start()
        LOGGER.info("Bazaar authority '%s' ready", services.settings.authority_id)
        try:
            yield
        finally:
            approvals.decline_all()
            await bridge.drain()
            bridge.stop()

    app = FastAPI(title="Instant Bazaar", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    def balance_payload(peer_id: str, units: int, breakdown: List[Dict[str, Any]]) -> Dict[str, Any]:
        amount = ledger.currency.from_base_units(units)
        return {
            "peer_id": peer_id,
            "balance": str(amount),
            "base_units": units,
            "display": format_currency(amount, ledger.world.currency_symbol),
            "coins": breakdown,
        }

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "environment": services.settings.environment})

    # ------------------------------------------------------------------
    # Vendors
    # ------------------------------------------------------------------
    @app.get("/vendors")
    async def list_vendors() -> JSONResponse:
        vendors = [record.as_dict() for record in ledger.list_vendors()]
        LOGGER.debug("Returning %s vendors", len(vendors))
        return JSONResponse({"vendors": vendors})

    @app.get("/vendors/{vendor_id}")
    async def get_vendor(vendor_id: str) -> JSONResponse:
        try:
            record = ledger.get_vendor(vendor_id)
        except VendorNotFound as error:
            raise _http_error(error) from error
        return JSONResponse(record.as_dict())

    @app.put("/vendors/{vendor_id}")
    async def put_vendor(vendor_id: str, payload: VendorPayload) -> JSONResponse:
        """Create or replace a vendor record."""

        try:
            record = _record_from_payload(vendor_id, payload)
        except ValueError as error:
            raise _http_error(error) from error
        async with locks.hold(vendor_key(vendor_id)):
            await ledger.set_vendor(vendor_id, record)
        return JSONResponse(record.as_dict())

    @app.delete("/vendors/{vendor_id}")
    async def delete_vendor(vendor_id: str) -> JSONResponse:
        try:
            async with locks.hold(vendor_key(vendor_id)):
                await ledger.delete_vendor(vendor_id)
        except VendorNotFound as error:
            raise _http_error(error) from error
        return JSONResponse({"deleted": vendor_id})

    @app.post("/vendors/{vendor_id}/stock")
    async def adjust_stock(vendor_id: str, payload: StockAdjustment) -> JSONResponse:
        try:
            async with locks.hold(vendor_key(vendor_id)):
                item = await ledger.adjust_stock(vendor_id, payload.item_id, payload.delta)
        except BazaarError as error:
            raise _http_error(error) from error
        return JSONResponse({"item": item.as_dict() if item else None})

    @app.post("/vendors/{vendor_id}/generate")
    async def generate_vendor_stock(vendor_id: str, payload: GenerateStockPayload) -> JSONResponse:
        """Replace the vendor's items with freshly generated stock."""

        catalog = [CatalogEntry(**entry.model_dump()) for entry in payload.catalog]
        async with locks.hold(vendor_key(vendor_id)):
            try:
                record = ledger.get_vendor(vendor_id)
            except VendorNotFound as error:
                raise _http_error(error) from error
            items = generate_stock(catalog, record.stock, random.Random(payload.seed))
            record = await ledger.set_vendor(vendor_id, record.with_items(items))
        return JSONResponse(record.as_dict())

    # ------------------------------------------------------------------
    # Wallets and currency
    # ------------------------------------------------------------------
    @app.get("/wallets/{peer_id}")
    async def get_wallet(peer_id: str) -> JSONResponse:
        try:
            units = await ledger.get_balance(peer_id)
            breakdown = await ledger.coin_breakdown(peer_id)
        except BazaarError as error:
            raise _http_error(error) from error
        return JSONResponse(balance_payload(peer_id, units, breakdown))

    @app.put("/wallets/{peer_id}")
    async def put_wallet(peer_id: str, payload: BalancePayload) -> JSONResponse:
        """Set a peer's balance from a display amount."""

        try:
            async with locks.hold(wallet_key(peer_id)):
                units = ledger.currency.to_base_units(payload.amount, ROUND_NEAREST)
                await ledger.set_balance(peer_id, units)
                units = await ledger.get_balance(peer_id)
                breakdown = await ledger.coin_breakdown(peer_id)
        except (BazaarError, ValueError) as error:
            raise _http_error(error) from error
        LOGGER.info("Authority set wallet of %s", peer_id)
        return JSONResponse(balance_payload(peer_id, units, breakdown))

    @app.get("/denominations")
    async def get_denominations() -> JSONResponse:
        return JSONResponse(
            {
                "denominations": ledger.currency.as_payload(),
                "smallest_unit": str(ledger.currency.smallest_unit()),
            }
        )

    @app.put("/denominations")
    async def put_denominations(payload: List[DenominationPayload]) -> JSONResponse:
        try:
            async with locks.hold_all():
                system = await ledger.set_denominations([entry.model_dump() for entry in payload])
        except (BazaarError, ValueError) as error:
            raise _http_error(error) from error
        return JSONResponse({"denominations": system.as_payload()})

    @app.get("/settings")
    async def get_world_settings() -> JSONResponse:
        return JSONResponse(ledger.world.as_dict())

    @app.patch("/settings")
    async def patch_world_settings(payload: WorldSettingsPayload) -> JSONResponse:
        keys = {
            USE_MODULE_CURRENCY_KEY: payload.useModuleCurrencySystem,
            REQUIRE_APPROVAL_KEY: payload.requireApproval,
            AUTOMATIC_SELL_PERCENTAGE_KEY: payload.automaticSellPercentage,
            CURRENCY_SYMBOL_KEY: payload.currencySymbol,
            CURRENCY_NAME_KEY: payload.currencyName,
        }
        async with locks.hold_all():
            for key, value in keys.items():
                if value is not None:
                    await services.store.set(key, value)
        return JSONResponse(ledger.world.as_dict())

    # ------------------------------------------------------------------
    # Inventories
    # ------------------------------------------------------------------
    @app.post("/inventories")
    async def register_inventory(payload: InventoryPayload) -> JSONResponse:
        document = InMemoryInventory(
            payload.inventory_id, payload.owner_ids, payload.carried, name=payload.name
        )
        services.directory.register(document)
        return JSONResponse({"inventory_id": document.inventory_id, "owner_ids": document.owner_ids})

    @app.get("/inventories/{inventory_id}")
    async def get_inventory(inventory_id: str) -> JSONResponse:
        try:
            document = services.directory.get(inventory_id)
        except InventoryNotFound as error:
            raise _http_error(error) from error
        return JSONResponse(
            {
                "inventory_id": document.inventory_id,
                "name": document.name,
                "owner_ids": document.owner_ids,
                "carried": await document.read(),
            }
        )

    @app.post("/inventories/{inventory_id}/coins")
    async def initialise_coins(inventory_id: str) -> JSONResponse:
        try:
            async with locks.hold(inventory_key(inventory_id)):
                created = await ledger.initialize_missing_coins(inventory_id)
        except InventoryNotFound as error:
            raise _http_error(error) from error
        return JSONResponse({"created": created})

    # ------------------------------------------------------------------
    # Trading
    # ------------------------------------------------------------------
    async def submit(message: Any) -> JSONResponse:
        try:
            outcomes = await bridge.submit(message, timeout=timeout)
        except asyncio.TimeoutError as error:
            raise HTTPException(status_code=504, detail="Timed out waiting for the outcome.") from error
        except OSError as error:
            raise HTTPException(status_code=502, detail=f"The outcome could not be delivered: {error}") from error
        return JSONResponse(
            {
                "request_id": message.requestId,
                "outcomes": [dump_message(outcome) for outcome in outcomes],
            }
        )

    @app.post("/purchases")
    async def submit_purchase(payload: PlayerPurchaseRequest) -> JSONResponse:
        return await submit(payload)

    @app.post("/sales")
    async def submit_sale(payload: PlayerSellRequest) -> JSONResponse:
        return await submit(payload)

    @app.get("/approvals")
    async def list_approvals() -> JSONResponse:
        return JSONResponse({"pending": [ticket.as_dict() for ticket in approvals.list_pending()]})

    @app.post("/approvals/{ticket_id}")
    async def resolve_approval(ticket_id: str, payload: ApprovalPayload) -> JSONResponse:
        if payload.approved:
            decision = ApprovalDecision.approve(payload.percentage)
        else:
            decision = ApprovalDecision.decline(payload.reason)
        try:
            ticket = approvals.resolve(ticket_id, decision)
        except KeyError as error:
            raise _http_error(error) from error
        return JSONResponse({"ticket_id": ticket.ticket_id, "approved": decision.approved})

    # ------------------------------------------------------------------
    # Peer connections
    # ------------------------------------------------------------------
    @app.websocket("/ws/{peer_id}")
    async def peer_socket(websocket: WebSocket, peer_id: str) -> None:
        """Relay the broadcast channel to one peer and forward its requests."""

        await websocket.accept()
        queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()

        async def relay(message: BaseModel) -> None:
            if isinstance(message, OutcomeMessage) and message.userId != peer_id:
                return
            if isinstance(message, (PlayerPurchaseRequest, PlayerSellRequest)):
                return
            await queue.put(dump_message(message))

        async def sender() -> None:
            while True:
                await websocket.send_json(await queue.get())

        unsubscribe = services.channel.subscribe(relay)
        sending = asyncio.create_task(sender())
        LOGGER.info("Peer %s connected", peer_id)
        try:
            while True:
                payload = await websocket.receive_json()
                try:
                    message = parse_message({**payload, "userId": peer_id})
                except ValidationError as error:
                    LOGGER.warning("Rejected malformed message from %s", peer_id)
                    await websocket.send_json({"type": "error", "detail": str(error)})
                    continue
                if not isinstance(message, (PlayerPurchaseRequest, PlayerSellRequest)):
                    await websocket.send_json({"type": "error", "detail": "Peers may only send requests."})
                    continue
                await services.channel.emit(message)
        except WebSocketDisconnect:
            LOGGER.info("Peer %s disconnected", peer_id)
        finally:
            unsubscribe()
            sending.cancel()

    return app
