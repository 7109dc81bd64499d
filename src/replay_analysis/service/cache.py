"""Per-key single-flight cache for analysis results."""
import asyncio
import logging
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class _Flight:
    """One in-flight computation and the number of callers awaiting it."""

    def __init__(self, task: "asyncio.Task"):
        self.task = task
        self.waiters = 0


class SingleFlightCache:
    """At most one concurrent computation per key.

    Concurrent ``get`` calls for the same key share one task and receive the
    same result or the same exception. Successful results are kept in a
    bounded LRU; failures are not cached. When every caller of a flight has
    been cancelled, the computation itself is cancelled. In all cases the
    slot is released once the flight ends, so the next call retries.
    """

    def __init__(self, max_size: int = 256):
        self.max_size = max_size
        self._results: "OrderedDict[str, Any]" = OrderedDict()
        self._flights: Dict[str, _Flight] = {}
        self.computations = 0

    def __len__(self) -> int:
        return len(self._results)

    def in_flight(self, key: str) -> bool:
        return key in self._flights

    def peek(self, key: str) -> Optional[Any]:
        """Completed result for ``key`` without starting a computation."""
        if key not in self._results:
            return None
        self._results.move_to_end(key)
        return self._results[key]

    def put(self, key: str, value: Any) -> None:
        self._results[key] = value
        self._results.move_to_end(key)
        while len(self._results) > self.max_size:
            evicted, _ = self._results.popitem(last=False)
            logger.debug(f"Evicted {evicted} from analysis cache")

    async def get(self, key: str, compute: Callable[[], Awaitable[Any]]) -> Tuple[Any, bool]:
        """Return ``(value, cached)``, computing at most once per key at a time."""
        if key in self._results:
            self._results.move_to_end(key)
            return self._results[key], True

        flight = self._flights.get(key)
        if flight is None:
            flight = _Flight(asyncio.ensure_future(self._run(key, compute)))
            self._flights[key] = flight
            self.computations += 1
        else:
            logger.debug(f"Joining in-flight computation for {key}")

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task), False
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not flight.task.done():
                logger.info(f"All callers for {key} cancelled, abandoning computation")
                flight.task.cancel()
                self._release(key, flight.task)

    async def _run(self, key: str, compute: Callable[[], Awaitable[Any]]) -> Any:
        task = asyncio.current_task()
        try:
            value = await compute()
            self.put(key, value)
            return value
        finally:
            self._release(key, task)

    def _release(self, key: str, task: Optional["asyncio.Task"]) -> None:
        flight = self._flights.get(key)
        if flight is not None and flight.task is task:
            del self._flights[key]
