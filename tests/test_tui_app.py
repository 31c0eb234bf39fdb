from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from conftest import FakeStore, ScriptedScanStore

pytest.importorskip("textual")

from textual.widgets import ContentSwitcher

from valkys.core.config import ConfigManager, ValkysSettings, apply_overrides
from valkys.ui_tui.app import ValkysTUI
from valkys.ui_tui.console_view import ConsoleView
from valkys.ui_tui.context import ViewKind
from valkys.ui_tui.keys_view import KeysView
from valkys.ui_tui.monitor_view import MonitorView
from valkys.ui_tui.views import ConfigView


async def _wait_for(pilot, condition: Callable[[], bool], attempts: int = 60) -> None:
    for _ in range(attempts):
        if condition():
            return
        await pilot.pause(0.05)
    raise AssertionError("condition not reached")


def _app(store: FakeStore) -> ValkysTUI:
    return ValkysTUI(store, ValkysSettings())


@pytest.mark.asyncio
async def test_keys_load_and_view_switching_does_not_reload(fake_store: FakeStore) -> None:
    app = _app(fake_store)
    async with app.run_test() as pilot:
        keys = app.views[ViewKind.KEYS]
        assert isinstance(keys, KeysView)
        await _wait_for(pilot, lambda: len(keys.snapshots) == 3)
        assert [snapshot.name for snapshot in keys.snapshots] == ["alpha", "beta", "gamma"]
        scans = fake_store.count("scan")

        await pilot.press("3")
        assert app.state.active_view is ViewKind.MONITOR
        assert app.query_one("#views", ContentSwitcher).current == "view-monitor"
        monitor = app.views[ViewKind.MONITOR]
        assert isinstance(monitor, MonitorView)
        await _wait_for(pilot, lambda: monitor.snapshot is not None)
        assert monitor.monitoring

        await pilot.press("1")
        await pilot.pause()
        assert app.state.active_view is ViewKind.KEYS
        assert fake_store.count("scan") == scans
        assert "Keys(3)" in app.header.context_text


@pytest.mark.asyncio
async def test_repeated_scan_names_render_one_row_each() -> None:
    app = _app(ScriptedScanStore([["a", "b"], ["b", "c"]]))
    async with app.run_test() as pilot:
        keys = app.views[ViewKind.KEYS]
        assert isinstance(keys, KeysView)
        await _wait_for(pilot, lambda: keys.table.row_count == 3)
        assert [snapshot.name for snapshot in keys.snapshots] == ["a", "b", "c"]
        assert "Keys(3)" in app.header.context_text


@pytest.mark.asyncio
async def test_filter_box_captures_digits_and_escape_clears_it(fake_store: FakeStore) -> None:
    app = _app(fake_store)
    async with app.run_test() as pilot:
        keys = app.views[ViewKind.KEYS]
        assert isinstance(keys, KeysView)
        await _wait_for(pilot, lambda: len(keys.snapshots) == 3)

        await pilot.press("slash")
        await pilot.pause()
        assert keys.filter_open
        assert app.focused is keys.filter_input

        await pilot.press("g")
        await pilot.pause()
        assert [snapshot.name for snapshot in keys.visible()] == ["gamma"]

        await pilot.press("2")
        await pilot.pause()
        assert app.state.active_view is ViewKind.KEYS
        assert keys.filter_text == "g2"
        assert keys.visible() == ()

        await pilot.press("escape")
        await pilot.pause()
        assert not keys.filter_open
        assert keys.filter_text == ""
        assert len(keys.visible()) == 3
        assert app.focused is keys.table


@pytest.mark.asyncio
async def test_unknown_prompt_command_reports_inline(fake_store: FakeStore) -> None:
    app = _app(fake_store)
    async with app.run_test() as pilot:
        await pilot.press("2")
        await pilot.press("colon")
        await pilot.pause()
        assert app.state.prompt_open
        app.command_bar.input.value = "frobnicate"
        await pilot.press("enter")
        await pilot.pause()
        assert app.state.active_view is ViewKind.INFO
        assert not app.state.prompt_open
        assert app.status_bar.is_error
        assert app.status_bar.message == "Unknown command: frobnicate"


@pytest.mark.asyncio
async def test_console_runs_commands_and_keeps_digits(fake_store: FakeStore) -> None:
    app = _app(fake_store)
    async with app.run_test() as pilot:
        await pilot.press("4")
        await pilot.pause()
        console = app.views[ViewKind.CONSOLE]
        assert isinstance(console, ConsoleView)
        assert app.focused is console.input

        await pilot.press("1")
        assert app.state.active_view is ViewKind.CONSOLE
        assert console.input.value == "1"

        console.input.value = "PING"
        await pilot.press("enter")
        await _wait_for(pilot, lambda: "PONG" in console.lines)
        assert "redis> PING" in console.lines
        assert len(console.history) == 1

        console.input.value = "FLUB"
        await pilot.press("enter")
        await _wait_for(pilot, lambda: any(line.startswith("(error)") for line in console.lines))

        await pilot.press("up")
        assert console.input.value == "FLUB"


@pytest.mark.asyncio
async def test_monitor_stop_key_stops_polling(fake_store: FakeStore) -> None:
    app = _app(fake_store)
    async with app.run_test() as pilot:
        await pilot.press("3")
        monitor = app.views[ViewKind.MONITOR]
        assert isinstance(monitor, MonitorView)
        await _wait_for(pilot, lambda: monitor.poller.running)

        await pilot.press("s")
        await _wait_for(pilot, lambda: not monitor.poller.running)
        assert not monitor.monitoring
        assert app.state.task("refresh:monitor") is None
        assert app.status_bar.message == "Monitoring stopped"


@pytest.mark.asyncio
async def test_config_reset_goes_through_the_manager(fake_store: FakeStore, tmp_path: Path) -> None:
    manager = ConfigManager(tmp_path / "config.yml")
    settings = apply_overrides(ValkysSettings(), host="db.local")
    app = ValkysTUI(fake_store, settings, config_manager=manager)
    async with app.run_test() as pilot:
        await pilot.press("5")
        config = app.views[ViewKind.CONFIG]
        assert isinstance(config, ConfigView)
        assert config.settings.redis.host == "db.local"

        await pilot.press("r")
        assert config.settings == ValkysSettings()
        assert await manager.get_settings() is config.settings


@pytest.mark.asyncio
async def test_quit_key_stops_background_work(fake_store: FakeStore) -> None:
    app = _app(fake_store)
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("ctrl+q")
        await pilot.pause(0.2)
    assert not app.state.running
    assert app.state.live_tasks() == []
    assert app.gateway.closed
    assert fake_store.closed
