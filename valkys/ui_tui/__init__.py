"""Terminal user interface package for valkys."""

from __future__ import annotations

from .app import ValkysTUI, launch_tui
from .context import AppState, ViewKind
from .shell import AppShell

__all__ = ["AppShell", "AppState", "ValkysTUI", "ViewKind", "launch_tui"]
