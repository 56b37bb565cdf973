"""Mini README: Persistence bridge for balances, vendors and inventories.

Structure:
    * settings_store - key-value world settings with subscriptions.
    * inventory - peer inventory documents and coin item matching.
    * balance - balance sources resolved per operation.
    * store - LedgerStore combining the above for the authority.
"""

from .balance import AuthoritativeBalance, BalanceSource, CoinItem, DerivedBalance
from .inventory import (
    DELETE,
    CurrencyItemMatcher,
    InMemoryInventory,
    InventoryDirectory,
    InventoryDocument,
    InventoryItem,
    NameMatcher,
    find_item_path,
    flatten_items,
    get_item_at,
)
from .settings_store import (
    SETTING_DEFAULTS,
    InMemorySettingsStore,
    JsonFileSettingsStore,
    SettingsStore,
    WorldSettings,
)
from .store import LedgerStore

__all__ = [
    "AuthoritativeBalance",
    "BalanceSource",
    "CoinItem",
    "CurrencyItemMatcher",
    "DELETE",
    "DerivedBalance",
    "InMemoryInventory",
    "InMemorySettingsStore",
    "InventoryDirectory",
    "InventoryDocument",
    "InventoryItem",
    "JsonFileSettingsStore",
    "LedgerStore",
    "NameMatcher",
    "SETTING_DEFAULTS",
    "SettingsStore",
    "WorldSettings",
    "find_item_path",
    "flatten_items",
    "get_item_at",
]
