"""Base view class plus the Info, Config and Help views."""
from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from rich.console import Group
from rich.table import Table
from rich.text import Text
from textual.containers import Horizontal, VerticalScroll
from textual.widget import Widget
from textual.widgets import DataTable, Static

from valkys.core.config import ConfigManager, ValkysSettings
from valkys.store.gateway import StoreGateway
from valkys.utils.errors import ConfigurationError, StoreError
from valkys.utils.formatting import format_bytes, format_uptime, hit_rate
from valkys.utils.logging import get_logger

from .context import AppState, ViewKind
from .focus import FocusManager, FocusRegion
from .help import help_renderable
from .mutations import MutationQueue

logger = get_logger(__name__)


def _no_context() -> None:
    return None


@dataclass
class ViewContext:
    """Handles every view receives at construction."""

    state: AppState
    gateway: StoreGateway
    queue: MutationQueue
    settings: ValkysSettings
    focus: FocusManager
    notify: Callable[..., None]
    config_manager: Optional[ConfigManager] = None
    update_context: Callable[[], None] = field(default=_no_context)


class DashboardView:
    """Common behaviour of the dashboard views.

    Subclasses build their widget tree in :meth:`build` and override the hooks
    they need. Results of background work reach widgets only through
    :meth:`submit`, which goes through the mutation queue.
    """

    kind: ViewKind
    title: str = ""

    def __init__(self, ctx: ViewContext) -> None:
        self.ctx = ctx
        self._component: Optional[Widget] = None

    @property
    def state(self) -> AppState:
        return self.ctx.state

    @property
    def gateway(self) -> StoreGateway:
        return self.ctx.gateway

    @property
    def component_id(self) -> str:
        return f"view-{self.kind.value}"

    def component(self) -> Widget:
        if self._component is None:
            self._component = self.build()
        return self._component

    def build(self) -> Widget:
        raise NotImplementedError

    def focus_regions(self) -> Sequence[FocusRegion]:
        return ()

    async def refresh(self) -> None:
        return None

    def handle_key(self, key: str, region: Optional[FocusRegion]) -> bool:
        return False

    def cancel(self) -> bool:
        return False

    def activated(self) -> None:
        return None

    def deactivated(self) -> None:
        return None

    def accept_arguments(self, text: str) -> None:
        return None

    def context(self) -> str:
        return ""

    def is_active(self) -> bool:
        return self.state.active_view is self.kind

    def submit(self, fn: Callable[..., None], *args: Any) -> None:
        self.ctx.queue.submit(functools.partial(fn, *args))

    def notify(self, text: str, *, error: bool = False) -> None:
        self.submit(functools.partial(self.ctx.notify, text, error=error))


INFO_FIELDS = [
    "redis_version",
    "valkey_version",
    "process_id",
    "uptime_in_seconds",
    "uptime_in_days",
    "role",
    "connected_slaves",
    "aof_enabled",
    "tcp_port",
    "config_file",
    "os",
    "arch_bits",
    "multiplexing_api",
    "used_memory",
    "used_memory_human",
    "used_memory_peak",
    "used_memory_peak_human",
    "mem_fragmentation_ratio",
    "rdb_changes_since_last_save",
    "rdb_last_save_time",
    "total_connections_received",
    "total_commands_processed",
    "expired_keys",
    "evicted_keys",
    "keyspace_hits",
    "keyspace_misses",
    "pubsub_channels",
    "pubsub_patterns",
]


class InfoView(DashboardView):
    """Server information table with a performance summary."""

    kind = ViewKind.INFO
    title = "Server Info"

    def __init__(self, ctx: ViewContext) -> None:
        super().__init__(ctx)
        self.table: DataTable = DataTable(id="info-table", cursor_type="row", zebra_stripes=True)
        self.metrics = Static(Text("Loading…", style="italic"), id="info-metrics")
        self.info: Dict[str, Any] = {}
        self.error: Optional[str] = None

    def build(self) -> Widget:
        self.table.add_columns("Property", "Value")
        self.table.border_title = self.title
        self.metrics.border_title = "Performance"
        return Horizontal(self.table, VerticalScroll(self.metrics), id=self.component_id)

    def focus_regions(self) -> Sequence[FocusRegion]:
        return (FocusRegion("table", self.table),)

    async def refresh(self) -> None:
        client = self.gateway.client
        try:
            info = await self.gateway.call(client.server_snapshot)
        except StoreError as exc:
            logger.warning("info refresh failed: %s", exc, extra={"view": self.kind.value})
            self.submit(self._apply_error, str(exc))
            return
        self.submit(self._apply, info)

    def _apply(self, info: Dict[str, Any]) -> None:
        self.info = info
        self.error = None
        self.table.clear()
        for name in INFO_FIELDS:
            if name in info:
                self.table.add_row(Text(name, style="green"), str(info[name]))
        self.metrics.update(self.performance(info))
        self.ctx.notify("Server info refreshed")

    def _apply_error(self, message: str) -> None:
        self.error = message
        self.metrics.update(Text(f"Error loading info: {message}", style="bold red"))
        self.ctx.notify(f"Info refresh failed: {message}", error=True)

    @staticmethod
    def performance(info: Dict[str, Any]) -> Group:
        hits = int(info.get("keyspace_hits", 0) or 0)
        misses = int(info.get("keyspace_misses", 0) or 0)
        sections = [
            (
                "Current Stats",
                [
                    ("Connected Clients", info.get("connected_clients", 0)),
                    ("Used Memory", info.get("used_memory_human", format_bytes(int(info.get("used_memory", 0) or 0)))),
                    ("Used Memory RSS", info.get("used_memory_rss_human", "0B")),
                    ("Total Commands", info.get("total_commands_processed", 0)),
                    ("Ops/sec", info.get("instantaneous_ops_per_sec", 0)),
                    ("Keyspace Hits", hits),
                    ("Keyspace Misses", misses),
                    ("Hit Rate", f"{hit_rate(hits, misses):.2f}%"),
                ],
            ),
            (
                "Persistence",
                [
                    ("RDB Last Save", info.get("rdb_last_save_time", "0")),
                    ("AOF Enabled", info.get("aof_enabled", "0")),
                    ("Changes Since Save", info.get("rdb_changes_since_last_save", "0")),
                ],
            ),
            (
                "Connections",
                [
                    ("Total Connections", info.get("total_connections_received", "0")),
                    ("Rejected Connections", info.get("rejected_connections", "0")),
                ],
            ),
            (
                "Key Events",
                [
                    ("Expired Keys", info.get("expired_keys", "0")),
                    ("Evicted Keys", info.get("evicted_keys", "0")),
                ],
            ),
            (
                "Replication",
                [
                    ("Role", info.get("role", "master")),
                    ("Connected Replicas", info.get("connected_slaves", "0")),
                    ("Uptime", format_uptime(int(info.get("uptime_in_seconds", 0) or 0))),
                ],
            ),
        ]
        tables = []
        for heading, rows in sections:
            table = Table(title=heading, show_header=False, box=None, expand=True, title_style="cyan")
            table.add_column("Metric", style="green")
            table.add_column("Value")
            for label, value in rows:
                table.add_row(label, str(value))
            tables.append(table)
        return Group(*tables)


class ConfigView(DashboardView):
    """Read-only rendering of the active settings with save and reset."""

    kind = ViewKind.CONFIG
    title = "Configuration"

    def __init__(self, ctx: ViewContext) -> None:
        super().__init__(ctx)
        self.settings = ctx.settings
        self.content = Static(id="config-content")
        self.scroll = VerticalScroll(self.content, id=self.component_id)

    def build(self) -> Widget:
        self.scroll.border_title = self.title
        self.content.update(self.render_settings(self.settings))
        return self.scroll

    def focus_regions(self) -> Sequence[FocusRegion]:
        return (FocusRegion("settings", self.scroll),)

    def handle_key(self, key: str, region: Optional[FocusRegion]) -> bool:
        if key == "s":
            self.state.spawn(self.save(), name="config:save", replace=True)
            return True
        if key == "r":
            self.reset()
            return True
        return False

    async def refresh(self) -> None:
        self.submit(self._show, self.settings)

    async def save(self) -> None:
        manager = self.ctx.config_manager
        if manager is None:
            self.notify("No configuration file configured", error=True)
            return
        try:
            path = await manager.save(self.settings)
        except ConfigurationError as exc:
            logger.error("saving configuration failed: %s", exc)
            self.notify(f"Save failed: {exc}", error=True)
            return
        self.notify(f"Configuration saved to {path}")

    def reset(self) -> None:
        manager = self.ctx.config_manager
        self.settings = manager.reset() if manager is not None else ValkysSettings()
        self._show(self.settings)
        self.ctx.notify("Configuration reset to defaults (press s to save, restart to apply)")

    def _show(self, settings: ValkysSettings) -> None:
        self.content.update(self.render_settings(settings))

    @staticmethod
    def render_settings(settings: ValkysSettings) -> Group:
        data = settings.masked()
        tables: List[Table] = []
        for section in ("redis", "ui"):
            table = Table(title=section.upper(), show_header=False, expand=True, title_style="cyan")
            table.add_column("Setting", style="green")
            table.add_column("Value")
            for name, value in data[section].items():
                if isinstance(value, dict):
                    for sub, sub_value in value.items():
                        table.add_row(f"{name}.{sub}", str(sub_value))
                else:
                    table.add_row(name, str(value))
            tables.append(table)
        legend = Text("s save   r reset to defaults", style="dim")
        return Group(*tables, legend)


class HelpView(DashboardView):
    kind = ViewKind.HELP
    title = "Help"

    def __init__(self, ctx: ViewContext) -> None:
        super().__init__(ctx)
        self.scroll = VerticalScroll(Static(help_renderable(), id="help-content"), id=self.component_id)

    def build(self) -> Widget:
        return self.scroll

    def focus_regions(self) -> Sequence[FocusRegion]:
        return (FocusRegion("help", self.scroll),)


__all__ = [
    "ConfigView",
    "DashboardView",
    "HelpView",
    "INFO_FIELDS",
    "InfoView",
    "ViewContext",
]
