"""Blocking data store client built on :mod:`redis`.

Every method here performs network I/O and may block, so the UI never calls
them directly; they run on :class:`~valkys.store.gateway.StoreGateway` worker
threads. Library exceptions are translated into the
:mod:`valkys.utils.errors` hierarchy so callers can tell transient transport
failures apart from commands the server rejected.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import redis
from redis import exceptions as redis_errors

from valkys.core.config import RedisSettings
from valkys.utils.errors import (
    KeyNotFoundError,
    StartupError,
    StoreCommandError,
    StoreTimeoutError,
    StoreTransportError,
)
from valkys.utils.logging import get_logger

logger = get_logger(__name__)

SCAN_COUNT = 100
LIST_KEYS_LIMIT = 10_000

# Per-element weights used when MEMORY USAGE is unavailable.
_APPROX_WEIGHTS = {"list": 50, "set": 50, "hash": 100, "zset": 100}


@dataclass(frozen=True)
class KeyDetail:
    """Type, TTL and size of a single key."""

    name: str
    kind: str
    ttl: int
    size: int
    exact_size: bool = True


@dataclass(frozen=True)
class CommandStat:
    command: str
    calls: int = 0
    total_ms: float = 0.0
    per_call_ms: float = 0.0
    rejected_calls: int = 0
    failed_calls: int = 0


@dataclass(frozen=True)
class ClientInfo:
    id: str
    address: str
    name: str = ""
    age: int = 0
    idle: int = 0
    db: int = 0
    last_command: str = ""

    @property
    def total_minutes(self) -> float:
        return self.age / 60.0


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except redis_errors.TimeoutError as exc:
        raise StoreTimeoutError(f"{operation} timed out: {exc}") from exc
    except redis_errors.ConnectionError as exc:
        raise StoreTransportError(f"{operation} failed: {exc}") from exc
    except redis_errors.ResponseError as exc:
        raise StoreCommandError(str(exc)) from exc
    except redis_errors.RedisError as exc:
        raise StoreCommandError(f"{operation} failed: {exc}") from exc


class StoreClient:
    """Thin wrapper exposing the operations the dashboard consumes."""

    # redis-py clients draw connections from a thread-safe pool.
    concurrent_safe = True

    def __init__(self, connection: redis.Redis, *, settings: Optional[RedisSettings] = None) -> None:
        self._redis = connection
        self.settings = settings or RedisSettings()

    @classmethod
    def from_settings(cls, settings: RedisSettings) -> "StoreClient":
        timeout = settings.timeout / 1000.0
        options: Dict[str, Any] = {
            "host": settings.host,
            "port": settings.port,
            "db": settings.db,
            "password": settings.password or None,
            "socket_timeout": timeout,
            "socket_connect_timeout": timeout,
            "max_connections": settings.pool_size,
            "decode_responses": True,
        }
        if settings.tls.enabled:
            options.update(
                ssl=True,
                ssl_certfile=settings.tls.cert_file or None,
                ssl_keyfile=settings.tls.key_file or None,
                ssl_ca_certs=settings.tls.ca_file or None,
                ssl_cert_reqs="none" if settings.tls.insecure_skip_verify else "required",
            )
        return cls(redis.Redis(**options), settings=settings)

    @property
    def pool_size(self) -> int:
        return self.settings.pool_size

    # key space -----------------------------------------------------------------

    def scan(self, cursor: int = 0, pattern: str = "*", count: int = SCAN_COUNT) -> Tuple[int, List[str]]:
        """Run one ``SCAN`` step and return ``(next_cursor, names)``."""

        with _translate_errors("SCAN"):
            next_cursor, names = self._redis.scan(cursor=cursor, match=pattern, count=count)
        return int(next_cursor), list(names)

    def list_keys(self, pattern: str = "*", limit: int = LIST_KEYS_LIMIT) -> List[str]:
        """Collect key names with cursor scans, stopping at ``limit``."""

        keys: List[str] = []
        cursor = 0
        while True:
            cursor, names = self.scan(cursor, pattern)
            keys.extend(names)
            if cursor == 0 or len(keys) >= limit:
                break
        return keys[:limit]

    def describe_key(self, name: str) -> KeyDetail:
        with _translate_errors("TYPE"):
            kind = self._redis.type(name)
        if kind == "none":
            raise KeyNotFoundError(name)
        ttl = -1
        try:
            with _translate_errors("TTL"):
                ttl = int(self._redis.ttl(name))
        except StoreCommandError:
            logger.debug("ttl lookup failed", extra={"key": name})
        try:
            with _translate_errors("MEMORY USAGE"):
                usage = self._redis.memory_usage(name)
        except StoreCommandError:
            usage = None
        if usage is not None:
            return KeyDetail(name=name, kind=kind, ttl=ttl, size=int(usage))
        return KeyDetail(name=name, kind=kind, ttl=ttl, size=self._approximate_size(name, kind), exact_size=False)

    def _approximate_size(self, name: str, kind: str) -> int:
        try:
            with _translate_errors("size estimate"):
                if kind == "string":
                    return int(self._redis.strlen(name))
                if kind == "list":
                    length = self._redis.llen(name)
                elif kind == "set":
                    length = self._redis.scard(name)
                elif kind == "hash":
                    length = self._redis.hlen(name)
                elif kind == "zset":
                    length = self._redis.zcard(name)
                else:
                    return 0
        except StoreCommandError:
            return 0
        return int(length) * _APPROX_WEIGHTS[kind]

    def get_value(self, name: str) -> str:
        """Return the value of ``name`` rendered as a single string."""

        with _translate_errors("read value"):
            kind = self._redis.type(name)
            if kind == "none":
                raise KeyNotFoundError(name)
            if kind == "string":
                return self._redis.get(name) or ""
            if kind == "list":
                return "[" + ", ".join(self._redis.lrange(name, 0, -1)) + "]"
            if kind == "set":
                return "{" + ", ".join(sorted(self._redis.smembers(name))) + "}"
            if kind == "hash":
                pairs = self._redis.hgetall(name)
                return "{" + ", ".join(f"{field}: {value}" for field, value in pairs.items()) + "}"
            if kind == "zset":
                members = self._redis.zrange(name, 0, -1, withscores=True)
                return "[" + ", ".join(f"{member}: {score:.2f}" for member, score in members) + "]"
        raise StoreCommandError(f"unsupported key type: {kind}")

    def set_value(self, name: str, value: str) -> None:
        with _translate_errors("SET"):
            self._redis.set(name, value)

    def delete(self, name: str) -> int:
        with _translate_errors("DEL"):
            return int(self._redis.delete(name))

    def expire(self, name: str, seconds: int) -> bool:
        """Set a TTL; a non-positive value removes the expiry instead."""

        with _translate_errors("EXPIRE"):
            if seconds <= 0:
                return bool(self._redis.persist(name))
            return bool(self._redis.expire(name, seconds))

    # server --------------------------------------------------------------------

    def server_snapshot(self) -> Dict[str, Any]:
        """Return ``INFO`` as a flat mapping of metric name to value."""

        with _translate_errors("INFO"):
            return dict(self._redis.info())

    def command_stats(self) -> List[CommandStat]:
        with _translate_errors("INFO commandstats"):
            raw = self._redis.info("commandstats")
        stats = []
        for section, values in raw.items():
            if not section.startswith("cmdstat_") or not isinstance(values, dict):
                continue
            stats.append(
                CommandStat(
                    command=section[len("cmdstat_"):],
                    calls=int(values.get("calls", 0)),
                    total_ms=float(values.get("usec", 0)) / 1000.0,
                    per_call_ms=float(values.get("usec_per_call", 0)) / 1000.0,
                    rejected_calls=int(values.get("rejected_calls", 0)),
                    failed_calls=int(values.get("failed_calls", 0)),
                )
            )
        return stats

    def client_list(self) -> List[ClientInfo]:
        with _translate_errors("CLIENT LIST"):
            entries = self._redis.client_list()
        clients = []
        for entry in entries:
            clients.append(
                ClientInfo(
                    id=str(entry.get("id", "")),
                    address=entry.get("addr", ""),
                    name=entry.get("name", ""),
                    age=_as_int(entry.get("age")),
                    idle=_as_int(entry.get("idle")),
                    db=_as_int(entry.get("db")),
                    last_command=entry.get("cmd", ""),
                )
            )
        return clients

    def cluster_nodes(self) -> str:
        """Return ``CLUSTER NODES`` output, one node per line."""

        with _translate_errors("CLUSTER NODES"):
            reply = self._redis.execute_command("CLUSTER", "NODES")
        if isinstance(reply, dict):
            return "\n".join(
                f"{node.get('node_id', '')} {address} {node.get('flags', '')}".strip()
                for address, node in reply.items()
            )
        if isinstance(reply, bytes):
            return reply.decode("utf-8", errors="replace")
        return str(reply)

    def execute(self, verb: str, *args: Any) -> Any:
        """Run an arbitrary command typed into the console."""

        with _translate_errors(verb.upper()):
            return self._redis.execute_command(verb, *args)

    def ping(self) -> float:
        """Ping the server and return the round trip in milliseconds."""

        started = time.perf_counter()
        with _translate_errors("PING"):
            self._redis.ping()
        return (time.perf_counter() - started) * 1000.0

    def close(self) -> None:
        try:
            self._redis.close()
        except redis_errors.RedisError:
            logger.debug("error while closing store connection", exc_info=True)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def connect(settings: RedisSettings) -> StoreClient:
    """Create a client and verify the server answers ``PING``."""

    try:
        client = StoreClient.from_settings(settings)
    except (OSError, redis_errors.RedisError) as exc:
        raise StartupError(f"Cannot configure connection to {settings.url}: {exc}") from exc
    try:
        latency = client.ping()
    except (StoreTransportError, StoreCommandError) as exc:
        client.close()
        raise StartupError(f"Cannot reach {settings.url}: {exc}") from exc
    logger.info("connected to store", extra={"path": settings.url, "elapsed": round(latency, 2)})
    return client


__all__ = [
    "ClientInfo",
    "CommandStat",
    "KeyDetail",
    "LIST_KEYS_LIMIT",
    "SCAN_COUNT",
    "StoreClient",
    "connect",
]
