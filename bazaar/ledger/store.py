"""Mini README: Ledger store bridging the currency model and world state.

Structure:
    * LedgerStore - balances, vendor records and stock adjustments.

Balances are integers in base units at this boundary. Depending on the
``useModuleCurrencySystem`` setting a peer's balance is either a scalar kept
by the authority under the ``wallets`` settings key (stored as a decimal
display string so it survives denomination edits) or derived from the coin
items carried in the peer's primary inventory. The source is resolved once
per call and every read/patch pair is a single step. Callers serialise
between calls by holding the matching ``ResourceLocks`` keys; ``debit`` and
``credit`` re-read the balance so they never settle against a stale value.

Vendor records live under the ``vendors`` settings key. Every successful
write is followed by a broadcast so peer caches can refresh.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..currency.change import coin_breakdown as breakdown_for_bag
from ..currency.change import is_canonical, make_change, value_of
from ..currency.denominations import ROUND_NEAREST, CurrencySystem, Denomination, to_fraction
from ..currency.wallet import Wallet, WalletPolicy
from ..exceptions import (
    InsufficientFunds,
    InvalidDenominations,
    InventoryNotFound,
    ItemNotFound,
    UnsupportedOperation,
    VendorNotFound,
)
from ..logging_utils import get_logger
from ..messaging.channel import BroadcastChannel
from ..messaging.events import ItemPurchased, VendorDeleted, VendorUpdated
from ..vendors.models import VendorItem, VendorRecord
from .balance import AuthoritativeBalance, BalanceSource, CoinItem, DerivedBalance
from .inventory import (
    DELETE,
    CurrencyItemMatcher,
    InventoryDirectory,
    InventoryDocument,
    InventoryItem,
    NameMatcher,
)
from .settings_store import (
    DENOMINATIONS_KEY,
    VENDORS_KEY,
    WALLETS_KEY,
    SettingsStore,
    WorldSettings,
)

LOGGER = get_logger(__name__)


class LedgerStore:
    """Read/patch access to wallets and vendors for the authority."""

    def __init__(
        self,
        settings: SettingsStore,
        channel: BroadcastChannel,
        directory: Optional[InventoryDirectory] = None,
        matcher: Optional[CurrencyItemMatcher] = None,
    ) -> None:
        self.settings = settings
        self.world = WorldSettings(settings)
        self.channel = channel
        self.directory = directory or InventoryDirectory()
        self.matcher = matcher or NameMatcher()
        self.currency = CurrencySystem(self.world.denominations)
        self._warn_if_non_canonical()
        self._unsubscribe = settings.subscribe(DENOMINATIONS_KEY, self._on_denominations_changed)

    # ------------------------------------------------------------------
    # Currency configuration
    # ------------------------------------------------------------------
    def _warn_if_non_canonical(self) -> None:
        if not is_canonical(self.currency.scaled_denominations()):
            LOGGER.warning(
                "Configured denominations are not canonical; greedy change may use"
                " more coins than necessary."
            )

    def _on_denominations_changed(self, key: str, value: Any) -> None:
        try:
            system = CurrencySystem(value)
        except InvalidDenominations as error:
            LOGGER.error("Ignoring invalid %s update: %s", key, error)
            return
        stranded = self.stranded_wallets(system)
        if stranded:
            LOGGER.warning(
                "Stored balances of %s are not whole coins in the new denominations and will be rounded",
                ", ".join(stranded),
            )
        self.currency = system
        LOGGER.info("Currency system rebuilt with %s denominations", len(self.currency.denominations))
        self._warn_if_non_canonical()

    def stranded_wallets(self, system: CurrencySystem) -> List[str]:
        """Peers whose stored balance the given system cannot pay exactly."""

        stranded = []
        for peer_id, stored in self.settings.get(WALLETS_KEY).items():
            if (to_fraction(stored) * system.multiplier).denominator != 1:
                stranded.append(peer_id)
        return sorted(stranded)

    async def set_denominations(self, entries: Iterable[Any]) -> CurrencySystem:
        """Validate and persist a new denomination table.

        The table is refused when an authority-managed balance would have to
        be rounded to fit it.
        """

        system = CurrencySystem(entries)
        stranded = self.stranded_wallets(system)
        if stranded:
            raise InvalidDenominations(
                f"Balances of {', '.join(stranded)} cannot be paid exactly with these denominations."
            )
        await self.settings.set(DENOMINATIONS_KEY, system.as_payload())
        return self.currency

    def close(self) -> None:
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------
    async def resolve_balance_source(self, peer_id: str) -> BalanceSource:
        """Find where the peer's balance lives right now."""

        if self.world.use_module_currency:
            wallets = self.settings.get(WALLETS_KEY)
            stored = wallets.get(peer_id, "0")
            return AuthoritativeBalance(peer_id, self.currency.to_base_units(stored, ROUND_NEAREST))

        document = self.directory.primary_for(peer_id)
        if document is None:
            raise InventoryNotFound(f"Peer '{peer_id}' owns no inventory")
        return await self._derived_balance(peer_id, document)

    async def _derived_balance(self, peer_id: str, document: InventoryDocument) -> DerivedBalance:
        carried = await document.read()
        matches = self.matcher.match_all(carried, self.currency.denominations)
        coins: Dict[str, List[CoinItem]] = {}
        for name, items in matches.items():
            coins[name] = [CoinItem(path, item.get("count", 0)) for path, item in items]
        return DerivedBalance(peer_id, document.inventory_id, coins)

    def source_total(self, source: BalanceSource) -> int:
        if isinstance(source, AuthoritativeBalance):
            return source.units
        return value_of(source.coins(), self.currency.scaled_denominations())

    async def get_balance(self, peer_id: str) -> int:
        """Current balance of the peer in base units."""

        return self.source_total(await self.resolve_balance_source(peer_id))

    async def set_balance(self, peer_id: str, amount: int) -> bool:
        """Replace the peer's balance.

        Authority-managed balances are clamped at zero. Inventory-derived
        balances can only shrink; the difference is spent from the smallest
        coins upward and the resulting counts are written back.
        """

        amount = max(0, int(amount))
        source = await self.resolve_balance_source(peer_id)
        if isinstance(source, AuthoritativeBalance):
            wallets = self.settings.get(WALLETS_KEY)
            wallets[peer_id] = str(self.currency.from_base_units(amount))
            await self.settings.set(WALLETS_KEY, wallets)
            LOGGER.info("Balance of %s set to %s base units", peer_id, amount)
            return True

        current = self.source_total(source)
        if amount > current:
            raise UnsupportedOperation(
                "Inventory-derived balances cannot be increased directly; credit coins instead."
            )
        if amount == current:
            return True
        wallet = Wallet(self.currency.scaled_denominations(), source.coins(), WalletPolicy.preserve())
        wallet.subtract(current - amount)
        await self._write_coin_counts(source, wallet.as_dict())
        LOGGER.info("Spent %s base units from %s's coin items", current - amount, peer_id)
        return True

    async def credit(self, peer_id: str, amount: int) -> int:
        """Add ``amount`` base units to the peer; returns the new balance."""

        if amount < 0:
            raise ValueError("Credit amount must not be negative.")
        source = await self.resolve_balance_source(peer_id)
        if isinstance(source, AuthoritativeBalance):
            await self.set_balance(peer_id, source.units + amount)
            return source.units + amount

        counts = source.coins()
        for name, extra in make_change(amount, self.currency.scaled_denominations()).items():
            counts[name] = counts.get(name, 0) + extra
        await self._write_coin_counts(source, counts)
        return self.source_total(source) + amount

    async def debit(self, peer_id: str, amount: int) -> int:
        """Take ``amount`` base units from the balance as it is now; returns the new balance."""

        if amount < 0:
            raise ValueError("Debit amount must not be negative.")
        current = await self.get_balance(peer_id)
        if current < amount:
            raise InsufficientFunds(amount - current)
        await self.set_balance(peer_id, current - amount)
        return current - amount

    def can_credit(self, peer_id: str) -> bool:
        """Whether ``credit`` has somewhere to put the money."""

        if self.world.use_module_currency:
            return True
        return self.directory.primary_for(peer_id) is not None

    async def _write_coin_counts(self, source: DerivedBalance, counts: Mapping[str, int]) -> None:
        """Write one count per denomination onto its first coin item, dropping duplicates."""

        document = self.directory.get(source.inventory_id)
        updates: Dict[str, Any] = {}
        for denomination in self.currency.denominations:
            count = counts.get(denomination.name, 0)
            items = source.matches.get(denomination.name, [])
            if not items:
                if count > 0:
                    await document.add_item(self._coin_item(denomination), count)
                continue
            updates[f"{items[0].path}.count"] = count
            for duplicate in items[1:]:
                updates[duplicate.path] = DELETE
        if updates:
            await document.patch(updates)

    @staticmethod
    def _coin_item(denomination: Denomination) -> InventoryItem:
        return InventoryItem(
            name=denomination.name,
            count=0,
            cost=float(denomination.value),
            weight=float(denomination.weight),
        )

    async def coin_breakdown(self, peer_id: str) -> List[Dict[str, Any]]:
        """Coins the peer holds (or would hold) for display."""

        source = await self.resolve_balance_source(peer_id)
        scaled = self.currency.scaled_denominations()
        if isinstance(source, AuthoritativeBalance):
            bag = make_change(source.units, scaled)
        else:
            bag = source.coins()
        return breakdown_for_bag(bag, scaled)

    async def initialize_missing_coins(self, inventory_id: str) -> int:
        """Create zero-count coin items for denominations the inventory lacks."""

        if self.world.use_module_currency:
            LOGGER.debug("Module currency active; no coin items to initialise")
            return 0
        document = self.directory.get(inventory_id)
        matches = self.matcher.match_all(await document.read(), self.currency.denominations)
        created = 0
        for denomination in self.currency.denominations:
            if not matches[denomination.name]:
                await document.add_item(self._coin_item(denomination), 0)
                created += 1
        LOGGER.info("Initialised %s coin items in inventory %s", created, inventory_id)
        return created

    # ------------------------------------------------------------------
    # Vendors
    # ------------------------------------------------------------------
    def list_vendors(self) -> List[VendorRecord]:
        return [VendorRecord.from_dict(data) for data in self.settings.get(VENDORS_KEY).values()]

    def get_vendor(self, vendor_id: str) -> VendorRecord:
        data = self.settings.get(VENDORS_KEY).get(vendor_id)
        if data is None:
            raise VendorNotFound(f"Unknown vendor '{vendor_id}'")
        return VendorRecord.from_dict(data)

    async def set_vendor(self, vendor_id: str, record: VendorRecord) -> VendorRecord:
        """Replace the whole record and broadcast ``vendorUpdated``."""

        vendors = self.settings.get(VENDORS_KEY)
        vendors[vendor_id] = record.as_dict()
        await self.settings.set(VENDORS_KEY, vendors)
        LOGGER.info("Vendor '%s' saved with %s items", vendor_id, len(record.items))
        await self.channel.emit(VendorUpdated(vendorId=vendor_id, vendor=record.as_dict()))
        return record

    async def delete_vendor(self, vendor_id: str) -> None:
        vendors = self.settings.get(VENDORS_KEY)
        if vendors.pop(vendor_id, None) is None:
            raise VendorNotFound(f"Unknown vendor '{vendor_id}'")
        await self.settings.set(VENDORS_KEY, vendors)
        LOGGER.info("Vendor '%s' deleted", vendor_id)
        await self.channel.emit(VendorDeleted(vendorId=vendor_id))

    async def adjust_stock(self, vendor_id: str, item_id: str, delta: int) -> Optional[VendorItem]:
        """Change an item's quantity; returns the item or ``None`` once sold out."""

        record = self.get_vendor(vendor_id)
        item = record.find_item(item_id)
        if item is None:
            raise ItemNotFound(f"Vendor '{vendor_id}' has no item '{item_id}'")

        updated: Optional[VendorItem] = item
        if not item.unbounded:
            quantity = max(0, (item.quantity or 0) + delta)
            if quantity == 0:
                updated = None
                items = [entry for entry in record.items if entry.id != item_id]
            else:
                updated = VendorItem.from_dict({**item.as_dict(), "quantity": quantity})
                items = [updated if entry.id == item_id else entry for entry in record.items]
            record = record.with_items(items)

        await self.set_vendor(vendor_id, record)
        await self.channel.emit(
            ItemPurchased(
                vendorId=vendor_id,
                itemId=item_id,
                quantity=updated.quantity if updated is not None else 0,
            )
        )
        return updated

    def find_vendor_by_item_ref(self, external_ref: str) -> Optional[Tuple[VendorRecord, VendorItem]]:
        """First vendor stocking an item with the given external reference."""

        for record in self.list_vendors():
            item = record.find_item_by_ref(external_ref)
            if item is not None:
                return record, item
        return None
