"""Mini README: World settings store shared by the authority and its peers.

Structure:
    * SETTING_DEFAULTS - registered keys and their default values.
    * SettingsStore - abstract get/set/subscribe key-value store.
    * InMemorySettingsStore - process-local store used by tests and demos.
    * JsonFileSettingsStore - store persisted to a JSON document on disk.
    * WorldSettings - typed accessors for the registered keys.

Values are JSON-compatible and copied on every read and write so callers can
never mutate stored state in place. ``set`` is a coroutine because real
backends persist over the network; subscribers are notified after the value
is stored, in registration order.
"""

from __future__ import annotations

import copy
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..currency.denominations import DEFAULT_DENOMINATIONS
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

SettingsCallback = Callable[[str, Any], None]

VENDORS_KEY = "vendors"
WALLETS_KEY = "wallets"
DENOMINATIONS_KEY = "currencyDenominations"
USE_MODULE_CURRENCY_KEY = "useModuleCurrencySystem"
REQUIRE_APPROVAL_KEY = "requireApproval"
AUTOMATIC_SELL_PERCENTAGE_KEY = "automaticSellPercentage"
CURRENCY_SYMBOL_KEY = "currencySymbol"
CURRENCY_NAME_KEY = "currencyName"

SETTING_DEFAULTS: Dict[str, Any] = {
    VENDORS_KEY: {},
    WALLETS_KEY: {},
    DENOMINATIONS_KEY: [denomination.as_dict() for denomination in DEFAULT_DENOMINATIONS],
    USE_MODULE_CURRENCY_KEY: True,
    REQUIRE_APPROVAL_KEY: True,
    AUTOMATIC_SELL_PERCENTAGE_KEY: 50,
    CURRENCY_SYMBOL_KEY: "$",
    CURRENCY_NAME_KEY: "coins",
}


class SettingsStore(ABC):
    """Key-value store with change notifications."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[SettingsCallback]] = {}

    @abstractmethod
    def _read(self, key: str) -> Any:
        """Return the raw stored value or ``None`` when unset."""

    @abstractmethod
    async def _write(self, key: str, value: Any) -> None:
        """Persist ``value`` under ``key``."""

    def get(self, key: str) -> Any:
        """Return a copy of the stored value, falling back to the default."""

        value = self._read(key)
        if value is None:
            value = SETTING_DEFAULTS.get(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        """Store a copy of ``value`` and notify subscribers of ``key``."""

        stored = copy.deepcopy(value)
        await self._write(key, stored)
        LOGGER.debug("Setting '%s' updated", key)
        for callback in list(self._subscribers.get(key, [])):
            callback(key, copy.deepcopy(stored))

    def subscribe(self, key: str, callback: SettingsCallback) -> Callable[[], None]:
        """Register ``callback`` for changes to ``key``; returns an unsubscribe hook."""

        self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe


class InMemorySettingsStore(SettingsStore):
    """Settings held in a dictionary for the lifetime of the process."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        super().__init__()
        self._values: Dict[str, Any] = copy.deepcopy(initial or {})

    def _read(self, key: str) -> Any:
        return self._values.get(key)

    async def _write(self, key: str, value: Any) -> None:
        self._values[key] = value


class JsonFileSettingsStore(SettingsStore):
    """Settings persisted as a single JSON document."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._values: Dict[str, Any] = {}
        if self.path.exists():
            with self.path.open("r", encoding="utf-8") as handle:
                self._values = json.load(handle)
            LOGGER.info("Loaded %s world settings from %s", len(self._values), self.path)

    def _read(self, key: str) -> Any:
        return self._values.get(key)

    async def _write(self, key: str, value: Any) -> None:
        self._values[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temporary = self.path.with_suffix(self.path.suffix + ".tmp")
        with temporary.open("w", encoding="utf-8") as handle:
            json.dump(self._values, handle, indent=2, sort_keys=True)
        temporary.replace(self.path)


class WorldSettings:
    """Typed view over the registered settings keys."""

    def __init__(self, store: SettingsStore) -> None:
        self.store = store

    @property
    def use_module_currency(self) -> bool:
        return bool(self.store.get(USE_MODULE_CURRENCY_KEY))

    @property
    def require_approval(self) -> bool:
        return bool(self.store.get(REQUIRE_APPROVAL_KEY))

    @property
    def automatic_sell_percentage(self) -> int:
        value = int(self.store.get(AUTOMATIC_SELL_PERCENTAGE_KEY))
        return max(0, min(100, value))

    @property
    def currency_symbol(self) -> str:
        return str(self.store.get(CURRENCY_SYMBOL_KEY))

    @property
    def currency_name(self) -> str:
        return str(self.store.get(CURRENCY_NAME_KEY))

    @property
    def denominations(self) -> List[Dict[str, Any]]:
        return list(self.store.get(DENOMINATIONS_KEY))

    def as_dict(self) -> Dict[str, Any]:
        """Snapshot of the scalar settings for the authority dashboard."""

        return {
            USE_MODULE_CURRENCY_KEY: self.use_module_currency,
            REQUIRE_APPROVAL_KEY: self.require_approval,
            AUTOMATIC_SELL_PERCENTAGE_KEY: self.automatic_sell_percentage,
            CURRENCY_SYMBOL_KEY: self.currency_symbol,
            CURRENCY_NAME_KEY: self.currency_name,
        }
