"""Central definition of keyboard bindings.

Keys use Textual's key names (``question_mark`` rather than ``?``).
"""
from __future__ import annotations

from .context import ViewKind

VIEW_HOTKEYS = {
    "1": ViewKind.KEYS,
    "2": ViewKind.INFO,
    "3": ViewKind.MONITOR,
    "4": ViewKind.CONSOLE,
    "5": ViewKind.CONFIG,
    "6": ViewKind.HELP,
    "question_mark": ViewKind.HELP,
}

QUIT_KEYS = frozenset({"ctrl+c", "ctrl+q"})
CANCEL_KEY = "escape"
PROMPT_KEY = "colon"
REFRESH_KEY = "ctrl+r"
FOCUS_NEXT_KEY = "tab"
FOCUS_PREVIOUS_KEY = "shift+tab"

# Never produce text, so they are handled even while a text box has focus.
CONTROL_KEYS = frozenset({REFRESH_KEY, FOCUS_NEXT_KEY, FOCUS_PREVIOUS_KEY})

GLOBAL_HOTKEYS = [
    ("1-6", "Switch view (Keys, Info, Monitor, CLI, Config, Help)"),
    (":", "Open the command prompt"),
    ("?", "Help"),
    ("Tab / Shift+Tab", "Move focus inside the view"),
    ("Ctrl+R", "Refresh the current view"),
    ("Esc", "Close prompt / back to Keys"),
    ("Ctrl+C / Ctrl+Q", "Quit"),
]

VIEW_KEY_LEGEND = {
    ViewKind.KEYS: [
        ("/", "Filter keys"),
        ("Enter", "Show key details"),
        ("r", "Reload keys"),
        ("d", "Delete key"),
        ("e", "Edit string value"),
        ("t", "Set TTL"),
    ],
    ViewKind.MONITOR: [
        ("s", "Start/stop monitoring"),
        ("d", "Cycle refresh rate (1/2/5/10s)"),
        ("c", "Clear tables"),
        ("r", "Refresh once"),
    ],
    ViewKind.CONSOLE: [
        ("Enter", "Execute command"),
        ("Up/Down", "Command history"),
        ("Ctrl+L", "Clear output"),
        ("Ctrl+K", "Clear history"),
    ],
    ViewKind.CONFIG: [
        ("s", "Save configuration"),
        ("r", "Reset to defaults"),
    ],
}


def legend_line() -> str:
    """Return the compact hotkey legend shown in the header."""

    views = " ".join(f"<{key}>{kind.label}" for key, kind in VIEW_HOTKEYS.items() if key.isdigit())
    return f"{views}  <:>Cmd <?>Help <Ctrl+C>Quit"


__all__ = [
    "CANCEL_KEY",
    "CONTROL_KEYS",
    "FOCUS_NEXT_KEY",
    "FOCUS_PREVIOUS_KEY",
    "GLOBAL_HOTKEYS",
    "PROMPT_KEY",
    "QUIT_KEYS",
    "REFRESH_KEY",
    "VIEW_HOTKEYS",
    "VIEW_KEY_LEGEND",
    "legend_line",
]
