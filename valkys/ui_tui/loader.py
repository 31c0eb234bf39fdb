"""Batched enumeration of the key space for the Keys view."""
from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Callable, List, Optional, Set, Tuple

from valkys.store.client import LIST_KEYS_LIMIT, SCAN_COUNT
from valkys.store.gateway import StoreGateway
from valkys.utils.errors import KeyNotFoundError, StoreError
from valkys.utils.logging import get_logger

from .context import KeySnapshot
from .mutations import MutationQueue

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class LoadProgress:
    """State of one loader run as delivered to the UI.

    Intermediate updates carry ``done=False``. The final update carries the
    complete, name-sorted snapshot that replaces the previous list; when the
    scan itself failed ``error`` is set and ``snapshots`` is empty so the
    consumer keeps what it already shows.
    """

    generation: int
    snapshots: Tuple[KeySnapshot, ...]
    done: bool
    partial: bool = False
    error: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.snapshots)


class IncrementalLoader:
    """Walk the key space with cursor scans and describe each key.

    Every ``batch_size`` described keys a progress update is submitted to the
    mutation queue. Enumeration stops when the cursor wraps to zero or when a
    key beyond ``max_keys`` is seen, in which case the result is flagged
    partial. A key whose detail cannot be fetched is kept as an ``unknown``
    placeholder. Names the cursor returns more than once are described once.
    """

    def __init__(
        self,
        gateway: StoreGateway,
        queue: MutationQueue,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_keys: int = LIST_KEYS_LIMIT,
        scan_count: int = SCAN_COUNT,
        timeout: Optional[float] = None,
    ) -> None:
        self._gateway = gateway
        self._queue = queue
        self.batch_size = max(1, batch_size)
        self.max_keys = max(1, min(max_keys, LIST_KEYS_LIMIT))
        self.scan_count = scan_count
        self.timeout = timeout
        self.generation = 0

    async def run(self, apply: Callable[[LoadProgress], None], pattern: str = "*") -> LoadProgress:
        """Enumerate keys matching ``pattern`` and return the final result."""

        self.generation += 1
        generation = self.generation
        client = self._gateway.client
        buffer: List[KeySnapshot] = []
        seen: Set[str] = set()
        cursor = 0
        partial = False
        logger.debug("key load started", extra={"generation": generation})
        while True:
            try:
                cursor, names = await self._gateway.call(
                    client.scan, cursor, pattern, self.scan_count, timeout=self.timeout
                )
            except StoreError as exc:
                logger.warning("key scan failed: %s", exc, extra={"generation": generation})
                result = LoadProgress(generation=generation, snapshots=(), done=True, error=str(exc))
                self._emit(apply, result)
                return result
            for name in names:
                if name in seen:
                    continue
                if len(buffer) >= self.max_keys:
                    partial = True
                    break
                seen.add(name)
                buffer.append(await self._describe(name))
                if len(buffer) % self.batch_size == 0:
                    self._emit(apply, LoadProgress(generation=generation, snapshots=_sorted(buffer), done=False))
            if partial or cursor == 0:
                break
        result = LoadProgress(generation=generation, snapshots=_sorted(buffer), done=True, partial=partial)
        self._emit(apply, result)
        logger.info(
            "key load finished: %d keys%s",
            len(buffer),
            " (partial)" if partial else "",
            extra={"generation": generation},
        )
        return result

    async def _describe(self, name: str) -> KeySnapshot:
        client = self._gateway.client
        try:
            detail = await self._gateway.call(client.describe_key, name, timeout=self.timeout)
        except KeyNotFoundError:
            return KeySnapshot.placeholder(name, missing=True)
        except StoreError as exc:
            logger.debug("key detail unavailable: %s", exc, extra={"key": name})
            return KeySnapshot.placeholder(name)
        return KeySnapshot(name=name, kind=detail.kind, ttl_seconds=detail.ttl, size_bytes=detail.size)

    def _emit(self, apply: Callable[[LoadProgress], None], progress: LoadProgress) -> None:
        self._queue.submit(functools.partial(apply, progress))


def _sorted(buffer: List[KeySnapshot]) -> Tuple[KeySnapshot, ...]:
    return tuple(sorted(buffer, key=lambda snapshot: snapshot.name))


__all__ = ["DEFAULT_BATCH_SIZE", "IncrementalLoader", "LoadProgress"]
