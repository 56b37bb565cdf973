"""Mini README: Per-resource serialisation for concurrent requests.

Structure:
    * ResourceLocks - named ``asyncio.Lock`` objects taken in sorted order,
      plus an exclusive hold over every resource for currency-wide edits.

Each request locks the vendor, the peer wallet and the target inventory it
touches. Keys are always acquired in sorted order so two requests sharing
resources cannot deadlock, and requests that share nothing run side by side.
Authority edits (wallet top-ups, vendor changes) take the same keys as the
transactions they could race with. Edits that change how every balance is
read, such as a new denomination table, use ``hold_all``: it waits for every
running ``hold`` to finish and keeps new ones out until it is released.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional


def vendor_key(vendor_id: str) -> str:
    return f"vendor:{vendor_id}"


def wallet_key(peer_id: str) -> str:
    return f"wallet:{peer_id}"


def inventory_key(inventory_id: str) -> str:
    return f"inventory:{inventory_id}"


class ResourceLocks:
    """Registry of named locks created on first use."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._gate = asyncio.Condition()
        self._holders = 0
        self._exclusive = False
        self._exclusive_waiting = 0

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return bool(lock and lock.locked())

    @property
    def exclusive(self) -> bool:
        return self._exclusive

    async def _enter(self) -> None:
        async with self._gate:
            await self._gate.wait_for(lambda: not self._exclusive and not self._exclusive_waiting)
            self._holders += 1

    async def _leave(self) -> None:
        async with self._gate:
            self._holders -= 1
            self._gate.notify_all()

    @asynccontextmanager
    async def hold(self, *keys: Optional[str]) -> AsyncIterator[None]:
        """Hold every named lock for the duration of the block."""

        await self._enter()
        acquired: List[asyncio.Lock] = []
        try:
            for key in sorted({key for key in keys if key}):
                lock = self._lock(key)
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            await self._leave()

    @asynccontextmanager
    async def hold_all(self) -> AsyncIterator[None]:
        """Hold every resource at once; must not be nested inside ``hold``."""

        async with self._gate:
            self._exclusive_waiting += 1
            try:
                await self._gate.wait_for(lambda: not self._exclusive and self._holders == 0)
            finally:
                self._exclusive_waiting -= 1
                self._gate.notify_all()
            self._exclusive = True
        try:
            yield
        finally:
            async with self._gate:
                self._exclusive = False
                self._gate.notify_all()
