"""Mini README: Peer inventory documents and the helpers that walk them.

Structure:
    * InventoryItem - item payload stored in an inventory tree.
    * DELETE - patch sentinel removing the addressed entry.
    * flatten_items / find_item_path / get_item_at - tree helpers.
    * InventoryDocument - abstract read/patch document owned by peers.
    * InMemoryInventory - reference backend keeping the tree in memory.
    * InventoryDirectory - registry resolving documents and primary inventories.
    * CurrencyItemMatcher / NameMatcher - map denominations to coin items.

An inventory tree maps item keys to item mappings (``name``, ``count``,
``cost``, ``weight``, ``ref``). Containers keep their contents under a
``collapsed`` mapping, so a nested item is addressed with a dotted path such
as ``"00002.collapsed.00005"``. Patches address fields the same way
(``"00002.collapsed.00005.count"``).
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..currency.denominations import Denomination
from ..exceptions import ApplyFailure, InventoryNotFound
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

Tree = Dict[str, Any]
CONTAINER_KEY = "collapsed"


class _Delete:
    def __repr__(self) -> str:
        return "DELETE"


DELETE = _Delete()


@dataclass(slots=True)
class InventoryItem:
    """Item payload as stored in an inventory tree."""

    name: str
    count: int = 1
    cost: float = 0.0
    weight: float = 0.0
    ref: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "count": self.count,
            "cost": self.cost,
            "weight": self.weight,
            "ref": self.ref,
        }


def is_item(value: Any) -> bool:
    """Items are mappings carrying a non-empty string name."""

    return isinstance(value, Mapping) and isinstance(value.get("name"), str) and bool(value["name"])


def flatten_items(carried: Mapping[str, Any], prefix: str = "") -> List[Tuple[str, Mapping[str, Any]]]:
    """Return ``(path, item)`` pairs for every item, containers included."""

    items: List[Tuple[str, Mapping[str, Any]]] = []
    for key, value in carried.items():
        if not isinstance(value, Mapping):
            continue
        path = f"{prefix}{key}"
        if is_item(value):
            items.append((path, value))
        elif "name" in value:
            LOGGER.warning("Skipping invalid inventory entry at %s", path)
        nested = value.get(CONTAINER_KEY)
        if isinstance(nested, Mapping):
            items.extend(flatten_items(nested, f"{path}.{CONTAINER_KEY}."))
    return items


def find_item_path(carried: Mapping[str, Any], item_key: str, prefix: str = "") -> Optional[str]:
    """Locate an item key anywhere in the tree."""

    for key, value in carried.items():
        path = f"{prefix}{key}"
        if key == item_key:
            return path
        if isinstance(value, Mapping) and isinstance(value.get(CONTAINER_KEY), Mapping):
            nested = find_item_path(value[CONTAINER_KEY], item_key, f"{path}.{CONTAINER_KEY}.")
            if nested:
                return nested
    return None


def get_item_at(carried: Mapping[str, Any], path: str) -> Optional[Mapping[str, Any]]:
    """Return the item addressed by ``path`` or ``None``."""

    current: Any = carried
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current if is_item(current) else None


def apply_patch(tree: Tree, updates: Mapping[str, Any]) -> None:
    """Apply dotted-path updates to ``tree`` in place."""

    for path, value in updates.items():
        parts = path.split(".")
        parent = tree
        for part in parts[:-1]:
            child = parent.get(part)
            if not isinstance(child, dict):
                if value is DELETE:
                    break
                child = parent[part] = {}
            parent = child
        else:
            if value is DELETE:
                parent.pop(parts[-1], None)
            else:
                parent[parts[-1]] = copy.deepcopy(value)


class InventoryDocument(ABC):
    """A peer-owned document holding a carried-items tree."""

    def __init__(
        self, inventory_id: str, owner_ids: Iterable[str] = (), name: Optional[str] = None
    ) -> None:
        self.inventory_id = inventory_id
        self.owner_ids = list(owner_ids)
        self.name = name or inventory_id

    def is_owned_by(self, peer_id: str) -> bool:
        return peer_id in self.owner_ids

    @abstractmethod
    async def read(self) -> Tree:
        """Return a copy of the carried tree."""

    @abstractmethod
    async def patch(self, updates: Mapping[str, Any]) -> None:
        """Apply ``{path: value | DELETE}`` updates as one write."""

    @abstractmethod
    async def add_item(self, item: InventoryItem, quantity: int) -> bool:
        """Add ``quantity`` units of ``item``; returns False when it failed."""

    async def remove_item(self, item_key: str, quantity: int) -> Mapping[str, Any]:
        """Take ``quantity`` units of an item, deleting it when none remain.

        Returns the item as it was before removal.
        """

        carried = await self.read()
        path = find_item_path(carried, item_key)
        item = get_item_at(carried, path) if path else None
        if item is None:
            raise ApplyFailure(f"Item {item_key} is not in inventory {self.inventory_id}.")
        remaining = int(item.get("count", 0)) - quantity
        if remaining < 0:
            raise ApplyFailure(f"Inventory {self.inventory_id} holds too few of {item['name']}.")
        if remaining == 0:
            await self.patch({path: DELETE})
        else:
            await self.patch({f"{path}.count": remaining})
        return item


class InMemoryInventory(InventoryDocument):
    """Inventory tree kept in memory."""

    def __init__(
        self,
        inventory_id: str,
        owner_ids: Iterable[str] = (),
        carried: Optional[Tree] = None,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(inventory_id, owner_ids, name)
        self._carried: Tree = copy.deepcopy(carried or {})
        self._next_key = len(self._carried)

    def _new_key(self) -> str:
        while True:
            self._next_key += 1
            key = f"{self._next_key:05d}"
            if key not in self._carried:
                return key

    async def read(self) -> Tree:
        return copy.deepcopy(self._carried)

    async def patch(self, updates: Mapping[str, Any]) -> None:
        apply_patch(self._carried, updates)
        LOGGER.debug("Patched inventory %s (%s fields)", self.inventory_id, len(updates))

    async def add_item(self, item: InventoryItem, quantity: int) -> bool:
        if quantity < 0:
            return False
        if item.ref:
            for path, existing in flatten_items(self._carried):
                if existing.get("ref") == item.ref:
                    await self.patch({f"{path}.count": int(existing.get("count", 0)) + quantity})
                    return True
        payload = item.as_dict()
        payload["count"] = quantity
        key = self._new_key()
        self._carried[key] = payload
        LOGGER.debug("Added %s x %s to inventory %s", quantity, item.name, self.inventory_id)
        return True


class InventoryDirectory:
    """Registry of inventory documents keyed by identifier."""

    def __init__(self, documents: Iterable[InventoryDocument] = ()) -> None:
        self._documents: Dict[str, InventoryDocument] = {}
        for document in documents:
            self.register(document)

    def register(self, document: InventoryDocument) -> None:
        LOGGER.debug("Registering inventory '%s'", document.inventory_id)
        self._documents[document.inventory_id] = document

    def unregister(self, inventory_id: str) -> None:
        self._documents.pop(inventory_id, None)

    def get(self, inventory_id: str) -> InventoryDocument:
        document = self._documents.get(inventory_id)
        if document is None:
            raise InventoryNotFound(f"Unknown inventory '{inventory_id}'")
        return document

    def owned_by(self, peer_id: str) -> List[InventoryDocument]:
        return [document for document in self._documents.values() if document.is_owned_by(peer_id)]

    def primary_for(self, peer_id: str) -> Optional[InventoryDocument]:
        """The first registered inventory the peer owns."""

        owned = self.owned_by(peer_id)
        return owned[0] if owned else None

    def __iter__(self):
        return iter(self._documents.values())


class CurrencyItemMatcher(ABC):
    """Decides which inventory items represent a denomination's coins."""

    @abstractmethod
    def matches(self, denomination: Denomination, item: Mapping[str, Any]) -> bool:
        """Return True when ``item`` holds coins of ``denomination``."""

    def match_all(
        self, carried: Mapping[str, Any], denominations: Sequence[Denomination]
    ) -> Dict[str, List[Tuple[str, Mapping[str, Any]]]]:
        """Group the tree's coin items by denomination name, in tree order."""

        matches: Dict[str, List[Tuple[str, Mapping[str, Any]]]] = {
            denomination.name: [] for denomination in denominations
        }
        for path, item in flatten_items(carried):
            for denomination in denominations:
                if self.matches(denomination, item):
                    matches[denomination.name].append((path, item))
                    break
        return matches


class NameMatcher(CurrencyItemMatcher):
    """Match coin items whose trimmed name equals the denomination name."""

    def matches(self, denomination: Denomination, item: Mapping[str, Any]) -> bool:
        return str(item.get("name", "")).strip() == denomination.name.strip()
