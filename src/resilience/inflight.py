"""In-flight request collapsing.

Concurrent calls that share a key are served by one underlying
operation: the first caller starts it, later callers await the same
result. The key is released once the operation settles, whether it
succeeded or raised, so a failure never blocks later calls.
"""

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


class InFlight(Generic[K, T]):
    """Map from key to the shared task currently serving that key.

    Example:
        creates: InFlight[tuple[str, int], Order] = InFlight("order_create")
        order = await creates.run((user_id, ms), lambda: insert(...))
    """

    def __init__(self, name: str) -> None:
        """Initialize the registry.

        Args:
            name: Label used in log events.
        """
        self.name = name
        self._pending: dict[K, asyncio.Task[T]] = {}
        self._logger = logger.bind(component="in_flight", registry=name)

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    async def run(self, key: K, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` for ``key`` unless one is already running.

        Args:
            key: Identity of the logical operation.
            operation: Zero-argument coroutine factory; only called when
                no operation for ``key`` is in flight.

        Returns:
            The result of the (possibly shared) operation.
        """
        existing = self._pending.get(key)
        if existing is not None:
            self._logger.info("joined_in_flight", key=str(key))
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(self._settle(key, operation))
        self._pending[key] = task
        return await asyncio.shield(task)

    async def _settle(self, key: K, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await operation()
        finally:
            self._pending.pop(key, None)
            self._logger.debug("in_flight_released", key=str(key))
