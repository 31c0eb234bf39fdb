"""Parsing of commands typed into the ``:`` prompt."""
from __future__ import annotations

import enum
import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .context import ViewKind


class CommandKind(str, enum.Enum):
    VIEW_SWITCH = "view_switch"
    REFRESH = "refresh"
    QUIT = "quit"
    UNKNOWN = "unknown"
    EMPTY = "empty"


VIEW_COMMANDS: Dict[str, ViewKind] = {
    "keys": ViewKind.KEYS,
    "info": ViewKind.INFO,
    "monitor": ViewKind.MONITOR,
    "cli": ViewKind.CONSOLE,
    "console": ViewKind.CONSOLE,
    "config": ViewKind.CONFIG,
    "help": ViewKind.HELP,
}
REFRESH_COMMANDS = frozenset({"refresh", "r"})
QUIT_COMMANDS = frozenset({"quit", "q"})


@dataclass
class ShellCommand:
    """Represents a parsed prompt command."""

    raw: str
    kind: CommandKind
    verb: str = ""
    view: Optional[ViewKind] = None
    args: List[str] = field(default_factory=list)
    rest: str = ""
    error: Optional[str] = None


def parse_command(text: str) -> ShellCommand:
    """Parse a prompt line into a :class:`ShellCommand`.

    Matching is case-sensitive after trimming whitespace and one leading
    ``:``. Anything after the verb is kept verbatim in ``rest`` for the
    console; the parser never interprets it. Unrecognised verbs produce an
    ``UNKNOWN`` command carrying a user facing message instead of raising.
    """

    stripped = text.strip()
    if stripped.startswith(":"):
        stripped = stripped[1:].strip()
    if not stripped:
        return ShellCommand(raw=text, kind=CommandKind.EMPTY)
    verb, _, rest = stripped.partition(" ")
    rest = rest.strip()
    try:
        args = shlex.split(rest)
    except ValueError:
        # Unbalanced quotes; the console reports its own parse error.
        args = rest.split()
    if verb in VIEW_COMMANDS:
        return ShellCommand(
            raw=text, kind=CommandKind.VIEW_SWITCH, verb=verb, view=VIEW_COMMANDS[verb], args=args, rest=rest
        )
    if verb in REFRESH_COMMANDS:
        return ShellCommand(raw=text, kind=CommandKind.REFRESH, verb=verb, args=args, rest=rest)
    if verb in QUIT_COMMANDS:
        return ShellCommand(raw=text, kind=CommandKind.QUIT, verb=verb, args=args, rest=rest)
    return ShellCommand(
        raw=text,
        kind=CommandKind.UNKNOWN,
        verb=verb,
        args=args,
        rest=rest,
        error=f"Unknown command: {stripped}",
    )


__all__ = ["CommandKind", "ShellCommand", "VIEW_COMMANDS", "parse_command"]
