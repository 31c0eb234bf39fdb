"""Shared state for the Textual user interface.

:class:`AppState` is the one object every component receives explicitly. It
holds the active view, the focus index inside that view, and the handles of
every background task so that a single place can cancel them.
"""
from __future__ import annotations

import asyncio
import enum
import functools
from dataclasses import dataclass, field
from typing import Any, Coroutine, Dict, List, Optional, Set

from valkys.utils.logging import get_logger

logger = get_logger(__name__)


class ViewKind(str, enum.Enum):
    KEYS = "keys"
    INFO = "info"
    MONITOR = "monitor"
    CONSOLE = "console"
    CONFIG = "config"
    HELP = "help"

    @property
    def label(self) -> str:
        return "CLI" if self is ViewKind.CONSOLE else self.value.capitalize()


@dataclass(frozen=True)
class KeySnapshot:
    """Point-in-time description of one stored key.

    ``ttl_seconds`` is -1 for keys without expiry, -2 for keys that vanished
    before they could be described, and ``None`` when the detail lookup failed.
    """

    name: str
    kind: str
    ttl_seconds: Optional[int]
    size_bytes: Optional[int]

    @classmethod
    def placeholder(cls, name: str, *, missing: bool = False) -> "KeySnapshot":
        return cls(name=name, kind="unknown", ttl_seconds=-2 if missing else None, size_bytes=None)

    @property
    def is_placeholder(self) -> bool:
        return self.kind == "unknown"


@dataclass
class CommandHistory:
    """Console commands in execution order with a navigation cursor.

    The cursor ranges over ``[0, len(entries)]``; the upper bound means
    "past the newest entry", where the input line is blank.
    """

    entries: List[str] = field(default_factory=list)
    cursor: int = 0

    def append(self, command: str) -> None:
        if command:
            self.entries.append(command)
        self.cursor = len(self.entries)

    def previous(self) -> Optional[str]:
        return self._move(-1)

    def next(self) -> Optional[str]:
        return self._move(1)

    def _move(self, step: int) -> Optional[str]:
        if not self.entries:
            return None
        self.cursor = max(0, min(len(self.entries), self.cursor + step))
        if self.cursor == len(self.entries):
            return ""
        return self.entries[self.cursor]

    def clear(self) -> None:
        self.entries.clear()
        self.cursor = 0

    def __len__(self) -> int:
        return len(self.entries)


class AppState:
    """Single owner of shell state and background task handles.

    Pollers are registered once and only started, restarted or stopped through
    this object. One-off work (loader runs, detail lookups, user operations)
    goes through :meth:`spawn`; named tasks spawned with ``replace=True``
    cancel their predecessor and wait for it before starting.
    """

    def __init__(self, *, initial_view: ViewKind = ViewKind.KEYS, stop_timeout: float = 3.0) -> None:
        self.active_view = initial_view
        self.focused_widget_index = 0
        self.running = True
        self.prompt_open = False
        self.stop_timeout = stop_timeout
        self._pollers: Dict[str, Any] = {}
        self._tasks: Dict[str, asyncio.Task[Any]] = {}
        self._transient: Set[asyncio.Task[Any]] = set()

    # pollers -------------------------------------------------------------------

    def register_poller(self, poller: Any) -> None:
        self._pollers[poller.name] = poller

    async def start_poller(self, name: str, interval: float) -> None:
        if not self.running:
            return
        await self._pollers[name].start(interval)

    async def stop_poller(self, name: str) -> None:
        poller = self._pollers.get(name)
        if poller is not None:
            await poller.stop(timeout=self.stop_timeout)

    # tasks ---------------------------------------------------------------------

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str, replace: bool = False) -> Optional[asyncio.Task[Any]]:
        """Schedule ``coro`` as a tracked background task."""

        if not self.running:
            coro.close()
            return None
        previous = self._tasks.get(name) if replace else None
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.create_task(self._supervise(name, coro, previous), name=name)
        task.add_done_callback(functools.partial(self._finished, name, coro))
        if replace:
            self._tasks[name] = task
        else:
            self._transient.add(task)
            task.add_done_callback(self._transient.discard)
        return task

    async def stop_task(self, name: str) -> None:
        task = self._tasks.pop(name, None)
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait({task}, timeout=self.stop_timeout)
        if not task.done():
            logger.warning("task did not stop in time", extra={"task": name})

    def task(self, name: str) -> Optional[asyncio.Task[Any]]:
        return self._tasks.get(name)

    async def _supervise(
        self,
        name: str,
        coro: Coroutine[Any, Any, Any],
        previous: Optional[asyncio.Task[Any]],
    ) -> Any:
        try:
            if previous is not None and not previous.done():
                await asyncio.wait({previous}, timeout=self.stop_timeout)
            return await coro
        except asyncio.CancelledError:
            logger.debug("task cancelled", extra={"task": name})
            raise
        except Exception:
            logger.exception("background task failed", extra={"task": name})
            return None

    def _finished(self, name: str, coro: Coroutine[Any, Any, Any], task: asyncio.Task[Any]) -> None:
        # Also reached when the task is cancelled before its first step.
        coro.close()
        if self._tasks.get(name) is task:
            del self._tasks[name]

    def live_tasks(self) -> List[asyncio.Task[Any]]:
        return [task for task in (*self._tasks.values(), *self._transient) if not task.done()]

    async def shutdown(self, timeout: Optional[float] = None) -> List[str]:
        """Cancel every poller and task, waiting at most ``timeout`` seconds.

        Returns the names of tasks that did not acknowledge cancellation in
        time; those are logged and abandoned.
        """

        budget = self.stop_timeout if timeout is None else timeout
        self.running = False
        tasks = self.live_tasks()
        for task in tasks:
            task.cancel()
        stoppers = [
            asyncio.create_task(poller.stop(timeout=budget), name=f"stop:{name}")
            for name, poller in self._pollers.items()
        ]
        waiting = [*tasks, *stoppers]
        if not waiting:
            return []
        _, pending = await asyncio.wait(waiting, timeout=budget)
        abandoned = sorted(task.get_name() for task in pending)
        for name in abandoned:
            logger.warning("task abandoned at shutdown", extra={"task": name})
        self._tasks.clear()
        self._transient.clear()
        logger.info("background tasks stopped", extra={"elapsed": budget})
        return abandoned


__all__ = [
    "AppState",
    "CommandHistory",
    "KeySnapshot",
    "ViewKind",
]
