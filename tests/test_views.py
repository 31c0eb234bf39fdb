from __future__ import annotations

import pytest

pytest.importorskip("textual")

from rich.console import Console

from valkys.core.config import ValkysSettings, apply_overrides
from valkys.ui_tui.help import help_renderable
from valkys.ui_tui.hotkeys import legend_line
from valkys.ui_tui.monitor_view import MonitorSnapshot, MonitorView
from valkys.ui_tui.status import MetricsAggregator
from valkys.ui_tui.views import ConfigView, InfoView


def _render(renderable: object) -> str:
    console = Console(width=120, record=True)
    console.print(renderable)
    return console.export_text()


INFO = {
    "redis_version": "7.2.4",
    "connected_clients": 3,
    "used_memory": 1536,
    "used_memory_peak": 4096,
    "keyspace_hits": 3,
    "keyspace_misses": 1,
    "uptime_in_seconds": 3700,
    "cluster_enabled": 1,
    "db0": {"keys": 42, "expires": 1},
}


def test_monitor_server_stats_include_hit_rate() -> None:
    text = _render(MonitorView.server_stats(INFO))
    assert "75.00%" in text
    assert "1.5 KB" in text
    assert "1h 1m" in text


def test_monitor_system_info_lists_cluster_nodes() -> None:
    snapshot = MonitorSnapshot(commands=[], clients=[], info=INFO, cluster_nodes="abc 10.0.0.1:7000 master")
    text = MonitorView.system_info(snapshot).plain
    assert "Cluster: enabled" in text
    assert "abc 10.0.0.1:7000 master" in text
    assert "Version: unknown" not in text


def test_info_performance_sections() -> None:
    text = _render(InfoView.performance(INFO))
    for heading in ("Current Stats", "Persistence", "Connections", "Key Events", "Replication"):
        assert heading in text
    assert "75.00%" in text


def test_config_rendering_masks_password() -> None:
    settings = apply_overrides(ValkysSettings(), password="hunter2")
    text = _render(ConfigView.render_settings(settings))
    assert "hunter2" not in text
    assert "***" in text
    assert "refresh_interval" in text


def test_header_metrics_from_info() -> None:
    aggregator = MetricsAggregator(gateway=None, url="redis://localhost:6379/0")  # type: ignore[arg-type]
    metrics = aggregator.from_info(INFO, 1.25)
    assert metrics.total_keys == 42
    assert metrics.version == "7.2.4"
    text = _render(MetricsAggregator.render(metrics, metrics.url))
    assert "latency 1.2ms" in text or "latency 1.3ms" in text
    assert "connecting" in _render(MetricsAggregator.render(None, "redis://localhost:6379/0"))


def test_help_and_legend() -> None:
    assert "<3>Monitor" in legend_line()
    assert "<4>CLI" in legend_line()
    text = _render(help_renderable())
    assert "Global Hotkeys" in text
    assert "Prompt Commands" in text
