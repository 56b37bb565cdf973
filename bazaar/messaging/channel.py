"""Mini README: Broadcast channel connecting the authority with its peers.

Structure:
    * BroadcastChannel - abstract emit/subscribe channel.
    * LocalBroadcastChannel - in-process channel delivering to every handler.

Delivery is at-least-once to every subscriber, including the sender.
Handlers are awaited in subscription order, so a handler that needs to do
slow work (such as the authority running a transaction) must hand that work
off to its own task.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List

from pydantic import BaseModel

from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

MessageHandler = Callable[[BaseModel], Awaitable[None]]


class BroadcastChannel(ABC):
    """Channel every connected peer listens on."""

    @abstractmethod
    async def emit(self, message: BaseModel) -> None:
        """Send ``message`` to every subscriber."""

    @abstractmethod
    def subscribe(self, handler: MessageHandler) -> Callable[[], None]:
        """Register ``handler``; returns a callable that removes it."""


class LocalBroadcastChannel(BroadcastChannel):
    """Channel living inside one process."""

    def __init__(self) -> None:
        self._handlers: List[MessageHandler] = []

    async def emit(self, message: BaseModel) -> None:
        LOGGER.debug(
            "Broadcasting %s to %s handlers", getattr(message, "type", "message"), len(self._handlers)
        )
        for handler in list(self._handlers):
            await handler(message)

    def subscribe(self, handler: MessageHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe
