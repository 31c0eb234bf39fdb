"""Textual application hosting the Valkys dashboard."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from textual import events, on
from textual.app import App, ComposeResult
from textual.screen import ModalScreen
from textual.widgets import ContentSwitcher, Input

from valkys.core.config import ConfigManager, ValkysSettings
from valkys.store.gateway import StoreGateway
from valkys.utils.logging import get_logger

from .console_view import ConsoleView
from .context import AppState, ViewKind
from .focus import FocusManager
from .hotkeys import QUIT_KEYS
from .keys_view import KeysView
from .monitor_view import MonitorView
from .mutations import MutationQueue
from .panels import CommandBar, HeaderBar, StatusBar
from .poller import BackgroundPoller
from .shell import AppShell
from .status import HeaderMetrics, MetricsAggregator
from .views import ConfigView, DashboardView, HelpView, InfoView, ViewContext

logger = get_logger(__name__)


class ValkysTUI(App[None]):
    """Interactive dashboard for a single Redis/Valkey server.

    The app is the shell's renderer: it owns the widgets, forwards every
    unforwarded key press to :class:`AppShell` first and only lets Textual
    deliver keys the shell did not consume.
    """

    TITLE = "valkys"

    CSS = """
    #views {
        height: 1fr;
    }
    DataTable {
        height: 1fr;
    }
    #view-monitor DataTable {
        border: round $accent;
    }
    #monitor-bottom {
        height: 14;
    }
    #monitor-stats, #monitor-system {
        width: 1fr;
        border: round $accent;
        padding: 0 1;
    }
    #info-metrics {
        width: 1fr;
    }
    """

    def __init__(
        self,
        client: Any,
        settings: ValkysSettings,
        *,
        config_manager: Optional[ConfigManager] = None,
    ) -> None:
        super().__init__()
        self.settings = settings
        ui = settings.ui
        self.state = AppState(stop_timeout=ui.shutdown_timeout)
        self.queue = MutationQueue()
        self.gateway = StoreGateway(client, timeout=max(settings.redis.timeout / 1000.0, ui.fetch_timeout))
        self.focus_manager = FocusManager(self.state, self)
        self.header = HeaderBar(id="header")
        self.status_bar = StatusBar(id="status-bar")
        self.command_bar = CommandBar()
        self.metrics = MetricsAggregator(self.gateway, settings.redis.url, settings.redis.db)
        self.last_metrics: Optional[HeaderMetrics] = None
        ctx = ViewContext(
            state=self.state,
            gateway=self.gateway,
            queue=self.queue,
            settings=settings,
            focus=self.focus_manager,
            notify=self.show_status,
            config_manager=config_manager,
            update_context=self._update_shell_context,
        )
        self.views: Dict[ViewKind, DashboardView] = {
            ViewKind.KEYS: KeysView(ctx),
            ViewKind.INFO: InfoView(ctx),
            ViewKind.MONITOR: MonitorView(ctx),
            ViewKind.CONSOLE: ConsoleView(ctx),
            ViewKind.CONFIG: ConfigView(ctx),
            ViewKind.HELP: HelpView(ctx),
        }
        self.shell = AppShell(self.state, self.views, self, self.focus_manager, gateway=self.gateway)
        self.header_poller: BackgroundPoller[HeaderMetrics] = BackgroundPoller(
            "header",
            self.metrics.gather,
            self._apply_metrics,
            self.queue,
            timeout=ui.fetch_timeout,
            stop_timeout=ui.shutdown_timeout,
        )
        self.state.register_poller(self.header_poller)
        self._quit_task: Optional[asyncio.Task[None]] = None

    def compose(self) -> ComposeResult:
        yield self.header
        with ContentSwitcher(initial=self.views[ViewKind.KEYS].component_id, id="views"):
            for view in self.views.values():
                yield view.component()
        yield self.command_bar
        yield self.status_bar

    async def on_mount(self) -> None:
        self.queue.bind(asyncio.get_running_loop())
        if self.settings.ui.theme in self.available_themes:
            self.theme = self.settings.ui.theme
        self.header.update_metrics(MetricsAggregator.render(None, self.settings.redis.url))
        self.shell.switch_view(self.state.active_view)
        interval = self.settings.ui.refresh_interval / 1000.0
        self.state.spawn(self.state.start_poller(self.header_poller.name, interval), name="header:start")
        self.state.spawn(self.views[ViewKind.KEYS].refresh(), name="refresh:keys", replace=True)
        self.state.spawn(self.views[ViewKind.INFO].refresh(), name="refresh:info", replace=True)
        logger.info("tui mounted", extra={"view": self.state.active_view.value})

    # key routing -------------------------------------------------------------------

    async def on_event(self, event: events.Event) -> None:
        if isinstance(event, events.Key) and not event.is_forwarded and self._route_key(event.key):
            event.prevent_default()
            event.stop()
            return
        await super().on_event(event)

    def _route_key(self, key: str) -> bool:
        if isinstance(self.screen, ModalScreen):
            if key in QUIT_KEYS:
                self.shell.request_quit()
                return True
            return False
        return self.shell.handle_key(key)

    @on(Input.Submitted, "#command-input")
    def _command_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.shell.execute_command(event.value)

    def on_descendant_focus(self, event: events.DescendantFocus) -> None:
        self.shell.sync_focus(event.widget)

    # renderer ----------------------------------------------------------------------

    def show_view(self, kind: ViewKind) -> None:
        self.query_one("#views", ContentSwitcher).current = self.views[kind].component_id

    def get_focus(self) -> Any:
        return self.focused

    def show_prompt(self, visible: bool) -> None:
        if visible:
            self.command_bar.open()
            self.call_after_refresh(self.command_bar.input.focus)
        else:
            self.command_bar.close()

    def show_status(self, text: str, *, error: bool = False) -> None:
        self.status_bar.show(text, error=error)

    def update_context(self, text: str) -> None:
        self.header.update_context(text)

    def request_exit(self) -> None:
        if self._quit_task is not None:
            return
        self._quit_task = asyncio.create_task(self._shutdown_and_exit(), name="quit")

    # internals ---------------------------------------------------------------------

    def _update_shell_context(self) -> None:
        self.shell.update_context()

    def _apply_metrics(self, metrics: HeaderMetrics) -> None:
        self.last_metrics = metrics
        self.header.update_metrics(MetricsAggregator.render(metrics, self.settings.redis.url))

    async def _shutdown_and_exit(self) -> None:
        abandoned = await self.shutdown()
        if abandoned:
            logger.warning("exiting with unfinished tasks", extra={"task": ",".join(abandoned)})
        self.exit()

    async def shutdown(self) -> List[str]:
        if not self.state.running:
            return []
        return await self.shell.shutdown(self.settings.ui.shutdown_timeout)

    async def on_unmount(self) -> None:
        await self.shutdown()


async def launch_tui(
    client: Any,
    settings: ValkysSettings,
    *,
    config_manager: Optional[ConfigManager] = None,
) -> None:
    """Launch the TUI using Textual's asynchronous API."""

    app = ValkysTUI(client, settings, config_manager=config_manager)
    await app.run_async()


__all__ = ["ValkysTUI", "launch_tui"]
