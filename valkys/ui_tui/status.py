"""Server metrics shown in the header bar."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from rich.table import Table
from rich.text import Text

from valkys.store.gateway import StoreGateway
from valkys.utils.formatting import format_bytes, format_uptime


@dataclass(frozen=True)
class HeaderMetrics:
    url: str
    latency_ms: float
    version: str
    used_memory: int
    peak_memory: int
    ops_per_sec: int
    clients: int
    uptime_seconds: int
    total_keys: int


class MetricsAggregator:
    """Collects the header snapshot with a ping and an ``INFO`` call."""

    def __init__(self, gateway: StoreGateway, url: str, db: int = 0) -> None:
        self._gateway = gateway
        self._url = url
        self._db = db

    async def gather(self) -> HeaderMetrics:
        client = self._gateway.client
        latency = await self._gateway.call(client.ping)
        info = await self._gateway.call(client.server_snapshot)
        return self.from_info(info, latency)

    def from_info(self, info: Dict[str, Any], latency_ms: float) -> HeaderMetrics:
        return HeaderMetrics(
            url=self._url,
            latency_ms=latency_ms,
            version=str(info.get("redis_version") or info.get("valkey_version") or "?"),
            used_memory=_int(info.get("used_memory")),
            peak_memory=_int(info.get("used_memory_peak")),
            ops_per_sec=_int(info.get("instantaneous_ops_per_sec")),
            clients=_int(info.get("connected_clients")),
            uptime_seconds=_int(info.get("uptime_in_seconds")),
            total_keys=_keyspace_keys(info, self._db),
        )

    @staticmethod
    def render(metrics: Optional[HeaderMetrics], url: str = "") -> Table:
        table = Table.grid(padding=(0, 2), expand=True)
        table.add_column(justify="left")
        table.add_column(justify="right")
        if metrics is None:
            table.add_row(Text(url, style="bold cyan"), Text("connecting…", style="dim"))
            return table
        status = Text()
        status.append(metrics.url, style="bold cyan")
        status.append(f"  v{metrics.version}", style="dim")
        status.append(f"  up {format_uptime(metrics.uptime_seconds)}", style="dim")
        numbers = Text()
        numbers.append(f"latency {metrics.latency_ms:.1f}ms", style="green" if metrics.latency_ms < 50 else "yellow")
        numbers.append(f"  mem {format_bytes(metrics.used_memory)}/{format_bytes(metrics.peak_memory)}")
        numbers.append(f"  ops {metrics.ops_per_sec}/s")
        numbers.append(f"  clients {metrics.clients}")
        table.add_row(status, numbers)
        return table


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _keyspace_keys(info: Dict[str, Any], db: int) -> int:
    entry = info.get(f"db{db}")
    if isinstance(entry, dict):
        return _int(entry.get("keys"))
    return 0


__all__ = ["HeaderMetrics", "MetricsAggregator"]
