"""Single-flight deduplication of concurrent async calls.

Used to guarantee that near-simultaneous boot requests share one underlying
sandbox boot instead of racing each other.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class SingleFlight:
    """Deduplicates concurrent calls to the same function with the same key.

    Only one call per key is in flight at a time. Other callers wait for the
    result (or exception) of the first call. Once it settles the key is free
    again, so a failed call can be retried.

    Example:
        sf = SingleFlight()
        container = await sf.do("boot", runtime.boot)
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Future[Any]] = {}
        self._lock = asyncio.Lock()

    def in_flight(self, key: str) -> bool:
        """Whether a call for ``key`` is currently running."""
        return key in self._in_flight

    async def do(
        self,
        key: str,
        func: Callable[[], Awaitable[T]],
    ) -> T:
        """Execute function, deduplicating concurrent calls.

        Args:
            key: Unique key for this operation
            func: Async function to execute

        Returns:
            Result from func (may be from another caller)
        """
        async with self._lock:
            if key in self._in_flight:
                future = self._in_flight[key]
            else:
                future = asyncio.get_running_loop().create_future()
                self._in_flight[key] = future
                asyncio.create_task(self._execute(key, func, future))

        # shield: a cancelled waiter must not cancel the shared result
        return await asyncio.shield(future)

    async def _execute(
        self,
        key: str,
        func: Callable[[], Awaitable[T]],
        future: asyncio.Future[T],
    ) -> None:
        try:
            result = await func()
            future.set_result(result)
        except Exception as e:
            future.set_exception(e)
        finally:
            async with self._lock:
                self._in_flight.pop(key, None)
