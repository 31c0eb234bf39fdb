"""Single entry point for widget updates produced by background work.

Background tasks never touch widgets. They compute a value and hand a
callback to :meth:`MutationQueue.submit`; the queue runs callbacks on the
event loop thread, in submission order, batching everything submitted
between two loop iterations into one drain.
"""
from __future__ import annotations

import asyncio
import threading
from collections import deque
from typing import Callable, Deque, Optional

from valkys.utils.logging import get_logger

logger = get_logger(__name__)

Mutation = Callable[[], None]


class MutationQueue:
    """Thread-safe FIFO of callbacks applied on the owning event loop."""

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        *,
        after_drain: Optional[Callable[[], None]] = None,
    ) -> None:
        self._loop = loop
        self._after_drain = after_drain
        self._pending: Deque[Mutation] = deque()
        self._lock = threading.Lock()
        self._scheduled = False
        self.applied = 0

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the queue to the loop that owns the widgets."""

        self._loop = loop

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def submit(self, mutation: Mutation) -> None:
        """Queue ``mutation`` for execution on the render loop.

        Safe to call from worker threads as well as from coroutines running on
        the loop itself.
        """

        loop = self._loop or asyncio.get_running_loop()
        with self._lock:
            self._pending.append(mutation)
            if self._scheduled:
                return
            self._scheduled = True
        try:
            loop.call_soon_threadsafe(self._drain)
        except RuntimeError:
            # Loop already closed during shutdown.
            with self._lock:
                self._pending.clear()
                self._scheduled = False
            logger.debug("mutation dropped, render loop closed")

    def _drain(self) -> None:
        with self._lock:
            batch = list(self._pending)
            self._pending.clear()
            self._scheduled = False
        for mutation in batch:
            try:
                mutation()
            except Exception:
                logger.exception("ui mutation failed", extra={"task": getattr(mutation, "__name__", "mutation")})
            self.applied += 1
        if batch and self._after_drain is not None:
            self._after_drain()

    async def flush(self) -> None:
        """Wait until every mutation submitted so far has been applied."""

        while True:
            with self._lock:
                idle = not self._pending and not self._scheduled
            if idle:
                return
            await asyncio.sleep(0)


__all__ = ["Mutation", "MutationQueue"]
