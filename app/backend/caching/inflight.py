"""
Coalescing of concurrent identical upstream calls.

While a fetch for a key is running, every other caller asking for the same key
awaits that one task instead of starting its own. The registry only spans the
lifetime of the fetch; storing the result is left to the caller.
"""
import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _consume_exception(task: "asyncio.Task[Any]"):
    # every waiter may have been cancelled before a failed fetch settles
    if not task.cancelled() and task.exception() is not None:
        logger.debug("In-flight fetch failed: %r", task.exception())


class InFlightRegistry:
    def __init__(self):
        self._pending: Dict[str, "asyncio.Task[Any]"] = {}
        # check-then-insert must be atomic when handlers share the registry across threads
        self._lock = threading.Lock()

    async def run_deduplicated(self, key: str, fetcher: Callable[[], Awaitable[T]]) -> T:
        """
        Runs fetcher once per key among overlapping callers.

        Joiners receive the same result or the same exception as the caller
        that started the fetch. A caller being cancelled does not cancel the
        shared fetch.
        """
        with self._lock:
            task = self._pending.get(key)
            joined = task is not None
            if not joined:
                # registered before fetcher gets a chance to run
                task = asyncio.ensure_future(self._settle(key, fetcher))
                task.add_done_callback(_consume_exception)
                self._pending[key] = task

        if joined:
            logger.debug("Request deduplicated (in-flight): %s...", key[:16])
        return await asyncio.shield(task)

    async def _settle(self, key: str, fetcher: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fetcher()
        finally:
            # cleared on success and failure alike
            with self._lock:
                if self._pending.get(key) is asyncio.current_task():
                    del self._pending[key]

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def clear(self):
        """Forgets pending fetches. Callers already waiting still get their result."""
        with self._lock:
            self._pending.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
