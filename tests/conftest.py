from __future__ import annotations

import fnmatch
import time
from typing import Any, Dict, List, Optional, Tuple

import pytest

from valkys.store.client import ClientInfo, CommandStat, KeyDetail
from valkys.utils.errors import KeyNotFoundError, StoreCommandError, StoreTransportError


class FakeStore:
    """In-memory stand-in for :class:`valkys.store.client.StoreClient`."""

    concurrent_safe = False
    pool_size = 1

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self.data: Dict[str, Any] = dict(data or {})
        self.ttls: Dict[str, int] = {}
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail: Dict[str, Exception] = {}
        self.failing_keys: Dict[str, Exception] = {}
        self.delay = 0.0
        self.info: Dict[str, Any] = {
            "redis_version": "7.2.4",
            "redis_mode": "standalone",
            "connected_clients": 2,
            "used_memory": 2048,
            "used_memory_peak": 4096,
            "instantaneous_ops_per_sec": 12,
            "total_commands_processed": 99,
            "keyspace_hits": 3,
            "keyspace_misses": 1,
            "uptime_in_seconds": 3700,
            "cluster_enabled": 0,
        }
        self.closed = False

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if self.delay:
            time.sleep(self.delay)
        error = self.fail.get(name)
        if error is not None:
            raise error

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def scan(self, cursor: int = 0, pattern: str = "*", count: int = 100) -> Tuple[int, List[str]]:
        self._record("scan", cursor, pattern, count)
        names = sorted(name for name in self.data if fnmatch.fnmatchcase(name, pattern))
        chunk = names[cursor : cursor + count]
        next_cursor = cursor + count
        return (0 if next_cursor >= len(names) else next_cursor), chunk

    def describe_key(self, name: str) -> KeyDetail:
        self._record("describe_key", name)
        if name in self.failing_keys:
            raise self.failing_keys[name]
        if name not in self.data:
            raise KeyNotFoundError(name)
        value = self.data[name]
        kind = {str: "string", list: "list", set: "set", dict: "hash"}.get(type(value), "string")
        return KeyDetail(name=name, kind=kind, ttl=self.ttls.get(name, -1), size=len(str(value)), exact_size=True)

    def get_value(self, name: str) -> str:
        self._record("get_value", name)
        if name not in self.data:
            raise KeyNotFoundError(name)
        return str(self.data[name])

    def set_value(self, name: str, value: str) -> None:
        self._record("set_value", name, value)
        self.data[name] = value

    def delete(self, name: str) -> int:
        self._record("delete", name)
        return 1 if self.data.pop(name, None) is not None else 0

    def expire(self, name: str, seconds: int) -> bool:
        self._record("expire", name, seconds)
        if name not in self.data:
            return False
        if seconds <= 0:
            self.ttls.pop(name, None)
        else:
            self.ttls[name] = seconds
        return True

    def server_snapshot(self) -> Dict[str, Any]:
        self._record("server_snapshot")
        return dict(self.info, db0={"keys": len(self.data), "expires": len(self.ttls)})

    def command_stats(self) -> List[CommandStat]:
        self._record("command_stats")
        return [
            CommandStat("get", 10, 5.0, 0.5, 0, 0),
            CommandStat("set", 4, 12.0, 3.0, 0, 1),
        ]

    def client_list(self) -> List[ClientInfo]:
        self._record("client_list")
        return [
            ClientInfo(id="1", address="127.0.0.1:5000", name="", age=120, idle=5, db=0, last_command="get"),
            ClientInfo(id="2", address="127.0.0.1:5001", name="worker", age=600, idle=90, db=0, last_command="set"),
        ]

    def cluster_nodes(self) -> str:
        self._record("cluster_nodes")
        return ""

    def execute(self, verb: str, *args: Any) -> Any:
        self._record("execute", verb, *args)
        command = verb.upper()
        if command == "PING":
            return "PONG"
        if command == "GET":
            return self.data.get(args[0])
        if command == "SET":
            self.data[args[0]] = args[1]
            return True
        raise StoreCommandError(f"ERR unknown command '{verb}'")

    def ping(self) -> float:
        self._record("ping")
        return 0.5

    def close(self) -> None:
        self.closed = True


class ScriptedScanStore(FakeStore):
    """Returns fixed cursor pages, which may repeat names."""

    def __init__(self, pages: List[List[str]]) -> None:
        super().__init__({name: "v" for page in pages for name in page})
        self.pages = pages

    def scan(self, cursor: int = 0, pattern: str = "*", count: int = 100) -> Tuple[int, List[str]]:
        self._record("scan", cursor, pattern, count)
        next_cursor = cursor + 1
        return (0 if next_cursor >= len(self.pages) else next_cursor), list(self.pages[cursor])


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore({"alpha": "1", "beta": ["x", "y"], "gamma": {"f": "v"}})


@pytest.fixture()
def transport_error() -> StoreTransportError:
    return StoreTransportError("connection refused")
