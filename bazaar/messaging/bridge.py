"""Mini README: Authority-side bridge between the channel and the coordinator.

Structure:
    * MessagingBridge - dispatches peer requests and correlates outcomes.

Every purchase or sale request received on the channel is processed in its
own task, so one request waiting for approval never stalls the others. The
outcomes are broadcast back; peers filter on ``userId``. ``submit`` lets a
caller that owns the request (such as the HTTP interface) emit it and wait
for its outcomes, matched by ``requestId``. When an outcome cannot be
delivered the error is logged and raised to that caller instead of leaving
it waiting.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional, Set, Union

from pydantic import BaseModel

from ..logging_utils import get_logger
from ..transactions.coordinator import TransactionCoordinator
from ..transactions.models import TransactionRequest
from .channel import BroadcastChannel
from .events import OutcomeMessage, PlayerPurchaseRequest, PlayerSellRequest

LOGGER = get_logger(__name__)


class _Waiter:
    def __init__(self) -> None:
        self.outcomes: List[OutcomeMessage] = []
        self.done: "asyncio.Future[List[OutcomeMessage]]" = asyncio.get_running_loop().create_future()


class MessagingBridge:
    """Runs the authority's side of the request/outcome protocol."""

    def __init__(self, channel: BroadcastChannel, coordinator: TransactionCoordinator) -> None:
        self.channel = channel
        self.coordinator = coordinator
        self._tasks: Set[asyncio.Task] = set()
        self._waiters: Dict[str, _Waiter] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.channel.subscribe(self._on_message)
            LOGGER.info("Messaging bridge listening for peer requests")

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _on_message(self, message: BaseModel) -> None:
        if isinstance(message, (PlayerPurchaseRequest, PlayerSellRequest)):
            task = asyncio.create_task(self._handle(message), name=f"request-{message.requestId}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        elif isinstance(message, OutcomeMessage):
            waiter = self._waiters.get(message.requestId)
            if waiter is None:
                return
            waiter.outcomes.append(message)
            if message.final and not waiter.done.done():
                waiter.done.set_result(list(waiter.outcomes))

    async def _handle(self, message: Union[PlayerPurchaseRequest, PlayerSellRequest]) -> None:
        try:
            request = TransactionRequest.from_message(message)
            outcomes = await self.coordinator.process(request)
            for outcome in outcomes:
                await self.channel.emit(outcome.to_message())
        except Exception as error:
            LOGGER.exception("Outcome of request %s could not be delivered", message.requestId)
            waiter = self._waiters.get(message.requestId)
            if waiter is not None and not waiter.done.done():
                waiter.done.set_exception(error)

    async def drain(self) -> None:
        """Wait until every dispatched request has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def submit(
        self,
        message: Union[PlayerPurchaseRequest, PlayerSellRequest],
        timeout: Optional[float] = None,
    ) -> List[OutcomeMessage]:
        """Emit a request and return its outcomes, the final one last."""

        waiter = _Waiter()
        self._waiters[message.requestId] = waiter
        try:
            await self.channel.emit(message)
            return await asyncio.wait_for(waiter.done, timeout)
        finally:
            self._waiters.pop(message.requestId, None)
