"""Live monitor: command statistics, clients, server stats and cluster info."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.table import Table
from rich.text import Text
from textual.containers import Horizontal, Vertical
from textual.widget import Widget
from textual.widgets import DataTable, Static

from valkys.store.client import ClientInfo, CommandStat
from valkys.utils.errors import StoreError
from valkys.utils.formatting import format_bytes, format_uptime, hit_rate
from valkys.utils.logging import get_logger

from .context import ViewKind
from .focus import FocusRegion
from .poller import BackgroundPoller
from .views import DashboardView, ViewContext

logger = get_logger(__name__)

REFRESH_RATES: Tuple[float, ...] = (1.0, 2.0, 5.0, 10.0)


@dataclass(frozen=True)
class MonitorSnapshot:
    commands: List[CommandStat]
    clients: List[ClientInfo]
    info: Dict[str, Any]
    cluster_nodes: str = ""
    fetched_at: float = field(default_factory=time.time)


class MonitorView(DashboardView):
    """Poll server statistics while monitoring is active.

    The poller is started the first time the view is shown. Results that
    arrive while another view is active are dropped by the poller's relevance
    check, so the tables only ever show data fetched for this view.
    """

    kind = ViewKind.MONITOR
    title = "Monitor"

    def __init__(self, ctx: ViewContext) -> None:
        super().__init__(ctx)
        ui = ctx.settings.ui
        self.rate = ui.monitor_interval
        self.monitoring = False
        self._started = False
        self.snapshot: Optional[MonitorSnapshot] = None
        self.commands: DataTable = DataTable(id="monitor-commands", cursor_type="row")
        self.clients: DataTable = DataTable(id="monitor-clients", cursor_type="row")
        self.stats = Static(id="monitor-stats")
        self.system = Static(id="monitor-system")
        self.poller: BackgroundPoller[MonitorSnapshot] = BackgroundPoller(
            "monitor",
            self.fetch,
            self.apply,
            ctx.queue,
            timeout=ui.fetch_timeout * 2,
            is_relevant=self.is_active,
            stop_timeout=ui.shutdown_timeout,
        )
        ctx.state.register_poller(self.poller)

    def build(self) -> Widget:
        self.commands.add_columns(
            "Command", "Calls", "Total Duration ↓", "Duration per call", "Rejected", "Failed"
        )
        self.clients.add_columns("Client", "Total duration", "Idle time ↓", "Last command", "DB")
        self._update_titles()
        return Vertical(
            self.commands,
            self.clients,
            Horizontal(self.stats, self.system, id="monitor-bottom"),
            id=self.component_id,
        )

    def focus_regions(self) -> Sequence[FocusRegion]:
        return (FocusRegion("commands", self.commands), FocusRegion("clients", self.clients))

    # lifecycle ---------------------------------------------------------------------

    def activated(self) -> None:
        if self._started:
            return
        self._started = True
        self.monitoring = True
        self._update_titles()
        self.state.spawn(self.state.start_poller(self.poller.name, self.rate), name="monitor:start")

    async def refresh(self) -> None:
        await self.poller.tick()

    async def fetch(self) -> MonitorSnapshot:
        client = self.gateway.client
        commands = await self.gateway.call(client.command_stats)
        clients = await self.gateway.call(client.client_list)
        info = await self.gateway.call(client.server_snapshot)
        nodes = ""
        if str(info.get("cluster_enabled", "0")) == "1":
            try:
                nodes = await self.gateway.call(client.cluster_nodes)
            except StoreError as exc:
                nodes = f"cluster nodes unavailable: {exc}"
        return MonitorSnapshot(commands=commands, clients=clients, info=info, cluster_nodes=nodes)

    # keys --------------------------------------------------------------------------

    def handle_key(self, key: str, region: Optional[FocusRegion]) -> bool:
        if key == "s":
            self.toggle()
            return True
        if key == "d":
            self.cycle_rate()
            return True
        if key == "c":
            self.clear()
            return True
        if key == "r":
            self.state.spawn(self.refresh(), name="refresh:monitor", replace=True)
            return True
        return False

    def toggle(self) -> None:
        self.monitoring = not self.monitoring
        logger.info("monitoring %s", "started" if self.monitoring else "stopped", extra={"poller": self.poller.name})
        if self.monitoring:
            self.state.spawn(self.state.start_poller(self.poller.name, self.rate), name="monitor:start")
            self.ctx.notify(f"Monitoring started ({self.rate:.0f}s)")
        else:
            self.state.spawn(self._stop_monitoring(), name="monitor:stop")
            self.ctx.notify("Monitoring stopped")
        self._update_titles()

    async def _stop_monitoring(self) -> None:
        await self.state.stop_poller(self.poller.name)
        await self.state.stop_task("refresh:monitor")

    def cycle_rate(self) -> None:
        try:
            index = REFRESH_RATES.index(self.rate)
        except ValueError:
            index = 0
        self.rate = REFRESH_RATES[(index + 1) % len(REFRESH_RATES)]
        logger.debug("monitor rate changed", extra={"poller": self.poller.name, "elapsed": self.rate})
        if self.monitoring:
            self.state.spawn(self.state.start_poller(self.poller.name, self.rate), name="monitor:rate")
        self.ctx.notify(f"Refresh rate {self.rate:.0f}s")
        self._update_titles()

    def clear(self) -> None:
        self.commands.clear()
        self.clients.clear()
        self.stats.update("")
        self.system.update(Text("Cleared. Waiting for next refresh…", style="dim"))

    # rendering ---------------------------------------------------------------------

    def status_label(self) -> str:
        return f"{'ACTIVE' if self.monitoring else 'STOPPED'} - {self.rate:.0f}s"

    def _update_titles(self) -> None:
        label = self.status_label()
        self.commands.border_title = f"Command Statistics [{label}]"
        self.clients.border_title = f"Client connections [{label}]"
        self.stats.border_title = f"Server Statistics [{label}]"
        self.system.border_title = f"System Information [{label}]"

    def context(self) -> str:
        return f"Monitor {self.status_label()}"

    def apply(self, snapshot: MonitorSnapshot) -> None:
        self.snapshot = snapshot
        self.commands.clear()
        for stat in sorted(snapshot.commands, key=lambda s: s.total_ms, reverse=True):
            self.commands.add_row(
                stat.command,
                str(stat.calls),
                f"{stat.total_ms:.1f} ms",
                f"{stat.per_call_ms:.3f} ms",
                str(stat.rejected_calls),
                str(stat.failed_calls),
            )
        self.clients.clear()
        for client in sorted(snapshot.clients, key=lambda c: c.idle, reverse=True):
            idle = f"{client.idle} s" if client.idle < 60 else f"{client.idle / 60:.1f} mins"
            label = client.name or client.address or client.id
            self.clients.add_row(
                label, f"{client.total_minutes:.1f} mins", idle, client.last_command or "-", str(client.db)
            )
        self.stats.update(self.server_stats(snapshot.info))
        self.system.update(self.system_info(snapshot))

    @staticmethod
    def server_stats(info: Dict[str, Any]) -> Table:
        hits = int(info.get("keyspace_hits", 0) or 0)
        misses = int(info.get("keyspace_misses", 0) or 0)
        table = Table.grid(padding=(0, 2))
        table.add_column(style="green")
        table.add_column()
        rows = [
            ("Connected Clients", info.get("connected_clients", 0)),
            ("Used Memory", format_bytes(int(info.get("used_memory", 0) or 0))),
            ("Peak Memory", format_bytes(int(info.get("used_memory_peak", 0) or 0))),
            ("Total Commands", info.get("total_commands_processed", 0)),
            ("Ops/sec", info.get("instantaneous_ops_per_sec", 0)),
            ("Keyspace Hits", hits),
            ("Keyspace Misses", misses),
            ("Hit Rate", f"{hit_rate(hits, misses):.2f}%"),
            ("Uptime", format_uptime(int(info.get("uptime_in_seconds", 0) or 0))),
        ]
        for label, value in rows:
            table.add_row(label, str(value))
        return table

    @staticmethod
    def system_info(snapshot: MonitorSnapshot) -> Text:
        info = snapshot.info
        text = Text()
        text.append(f"Last Updated: {time.strftime('%H:%M:%S', time.localtime(snapshot.fetched_at))}\n", style="yellow")
        for label, name in (
            ("Version", "redis_version"),
            ("Mode", "redis_mode"),
            ("OS", "os"),
            ("Role", "role"),
            ("Process", "process_id"),
            ("Port", "tcp_port"),
        ):
            text.append(f"{label}: ", style="green")
            text.append(f"{info.get(name, 'unknown')}\n")
        cluster = str(info.get("cluster_enabled", "0")) == "1"
        text.append("Cluster: ", style="green")
        text.append("enabled\n" if cluster else "disabled\n")
        if snapshot.cluster_nodes:
            text.append("\nCluster nodes:\n", style="cyan")
            for line in snapshot.cluster_nodes.splitlines():
                text.append(f"  {line}\n")
        return text


__all__ = ["MonitorSnapshot", "MonitorView", "REFRESH_RATES"]
