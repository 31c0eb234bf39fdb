"""Help view renderables."""
from __future__ import annotations

from rich.console import Group
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .context import ViewKind
from .hotkeys import GLOBAL_HOTKEYS, VIEW_KEY_LEGEND

PROMPT_COMMANDS = [
    ("keys", "Key browser"),
    ("info", "Server information"),
    ("monitor", "Live command, client and server statistics"),
    ("cli [command]", "Command console; optional command runs immediately"),
    ("config", "Connection and UI settings"),
    ("help", "This screen"),
    ("refresh | r", "Refresh the current view"),
    ("quit | q", "Exit"),
]


def _table(title: str, first: str, rows: list[tuple[str, str]]) -> Table:
    table = Table(title=title, show_edge=False, expand=True)
    table.add_column(first)
    table.add_column("Action")
    for key, description in rows:
        table.add_row(key, description)
    return table


def help_renderable() -> Panel:
    """Return a combined help renderable with hotkeys and prompt commands."""

    sections = [
        _table("Global Hotkeys", "Key", GLOBAL_HOTKEYS),
        _table("Prompt Commands (:)", "Command", PROMPT_COMMANDS),
    ]
    for kind in (ViewKind.KEYS, ViewKind.MONITOR, ViewKind.CONSOLE, ViewKind.CONFIG):
        sections.append(_table(f"{kind.label} View", "Key", VIEW_KEY_LEGEND[kind]))

    docs = Markdown(
        """
### Examples
```
:cli SET greeting "hello world"
:cli GET greeting
:monitor
```

### Text boxes
While the key filter or the console input has focus, digits and `?` are typed
into the box. Press `Esc` or `Tab` to leave it first.

### Logs
Logs are written to `~/.valkys/logs/valkys.log`. Start with `-v 3 --console`
to mirror debug output on stderr.
        """,
    )

    return Panel(Group(*sections, docs), title="Help & Shortcuts", border_style="cyan")


__all__ = ["PROMPT_COMMANDS", "help_renderable"]
