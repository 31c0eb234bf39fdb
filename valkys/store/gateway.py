"""Async front door for the blocking store client.

The render loop must never wait on the network, so every store call is
shipped to a small thread pool and awaited with a deadline. A timed-out call
is abandoned: the worker keeps running until the socket timeout fires, but
its result is never delivered. Clients that cannot be shared between threads
get a single worker, which serialises every request in submission order.
"""
from __future__ import annotations

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, TypeVar

from valkys.utils.errors import StoreTimeoutError
from valkys.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 5.0


class StoreGateway:
    """Run store client methods off the event loop with a timeout."""

    def __init__(self, client: Any, *, max_workers: Optional[int] = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.client = client
        self.timeout = timeout
        if not getattr(client, "concurrent_safe", False):
            workers = 1
        else:
            workers = max_workers or getattr(client, "pool_size", 4)
        self.max_workers = max(1, workers)
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="valkys-store")
        self._closed = False

    async def call(self, fn: Callable[..., T], *args: Any, timeout: Optional[float] = None) -> T:
        """Run ``fn(*args)`` on a worker thread and await its result.

        Raises :class:`StoreTimeoutError` when the deadline passes; the store's
        own errors propagate unchanged.
        """

        if self._closed:
            raise RuntimeError("store gateway is closed")
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, functools.partial(fn, *args))
        budget = self.timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(future, budget)
        except asyncio.TimeoutError as exc:
            name = getattr(fn, "__name__", repr(fn))
            logger.warning("store call abandoned after timeout", extra={"command": name, "elapsed": budget})
            raise StoreTimeoutError(f"{name} exceeded {budget:.1f}s") from exc

    def close(self) -> None:
        """Stop accepting work and drop queued calls without waiting on running ones."""

        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)
        close = getattr(self.client, "close", None)
        if callable(close):
            close()

    @property
    def closed(self) -> bool:
        return self._closed


__all__ = ["StoreGateway", "DEFAULT_TIMEOUT"]
