"""Timer driven background refresh."""
from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from valkys.utils.errors import StoreError, StoreTimeoutError
from valkys.utils.logging import get_logger

from .mutations import MutationQueue

logger = get_logger(__name__)

T = TypeVar("T")


class BackgroundPoller(Generic[T]):
    """Fetch a snapshot on a fixed cadence and apply it through the mutation queue.

    At most one polling task is alive per poller. :meth:`start` stops and
    awaits the previous task before creating a new one; if that task ignores
    cancellation past the stop timeout, no new task is created. :meth:`stop`
    returns once the task has exited or the stop timeout elapsed.
    Failed or timed-out ticks are logged and skipped; the last applied result
    stays on screen.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        apply: Callable[[T], None],
        queue: MutationQueue,
        *,
        timeout: float = 2.0,
        is_relevant: Optional[Callable[[], bool]] = None,
        stop_timeout: float = 3.0,
    ) -> None:
        self.name = name
        self._fetch = fetch
        self._apply = apply
        self._queue = queue
        self.timeout = timeout
        self._is_relevant = is_relevant
        self.stop_timeout = stop_timeout
        self.interval: Optional[float] = None
        self.last_result: Optional[T] = None
        self.skipped_ticks = 0
        self.live_count = 0
        self.max_live = 0
        self._task: Optional[asyncio.Task[None]] = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, interval: float) -> None:
        """Begin polling every ``interval`` seconds, replacing any running task."""

        async with self._lock:
            if not await self._stop_locked(self.stop_timeout):
                logger.error("poller not restarted, previous task still running", extra={"poller": self.name})
                return
            self.interval = interval
            self._task = asyncio.create_task(self._run(interval), name=f"poller:{self.name}")
            logger.debug("poller started", extra={"poller": self.name, "elapsed": interval})

    async def stop(self, *, timeout: Optional[float] = None) -> None:
        """Cancel the polling task and wait for it to exit. Idempotent."""

        async with self._lock:
            await self._stop_locked(self.stop_timeout if timeout is None else timeout)

    async def set_interval(self, interval: float) -> None:
        await self.start(interval)

    async def _stop_locked(self, timeout: float) -> bool:
        task = self._task
        if task is None:
            return True
        task.cancel()
        await asyncio.wait({task}, timeout=timeout)
        if not task.done():
            # Kept until it exits.
            logger.warning("poller did not stop in time", extra={"poller": self.name})
            return False
        self._task = None
        logger.debug("poller stopped", extra={"poller": self.name})
        return True

    async def _run(self, interval: float) -> None:
        self.live_count += 1
        self.max_live = max(self.max_live, self.live_count)
        try:
            while True:
                await self.tick()
                await asyncio.sleep(interval)
        finally:
            self.live_count -= 1

    async def tick(self) -> bool:
        """Run one fetch; returns ``True`` when a result was queued for display."""

        try:
            result = await asyncio.wait_for(self._fetch(), self.timeout)
        except (asyncio.TimeoutError, StoreTimeoutError):
            self.skipped_ticks += 1
            logger.warning("poll tick skipped: timeout", extra={"poller": self.name, "elapsed": self.timeout})
            return False
        except StoreError as exc:
            self.skipped_ticks += 1
            logger.warning("poll tick skipped: %s", exc, extra={"poller": self.name})
            return False
        except Exception:
            self.skipped_ticks += 1
            logger.exception("poll tick failed", extra={"poller": self.name})
            return False
        self.last_result = result
        self._queue.submit(functools.partial(self._apply_if_relevant, result))
        return True

    def _apply_if_relevant(self, result: Any) -> None:
        if self._is_relevant is not None and not self._is_relevant():
            logger.debug("stale poll result discarded", extra={"poller": self.name})
            return
        self._apply(result)


__all__ = ["BackgroundPoller"]
