"""Command console: run arbitrary commands against the connected server."""
from __future__ import annotations

import asyncio
import shlex
from typing import Any, List, Optional, Sequence

from rich.text import Text
from textual import on
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widget import Widget
from textual.widgets import Input, RichLog

from valkys.utils.errors import StoreError, StoreTimeoutError
from valkys.utils.formatting import format_reply
from valkys.utils.logging import get_logger

from .context import CommandHistory, ViewKind
from .focus import FocusRegion
from .views import DashboardView, ViewContext

logger = get_logger(__name__)

WELCOME = """Type a command and press Enter. Examples:
  SET mykey "hello world"
  GET mykey
  KEYS *
  INFO
  PING

↑/↓ history   Ctrl+L clear output   Ctrl+K clear history   Enter execute"""


class ConsolePanel(Vertical):
    DEFAULT_CSS = """
    ConsolePanel #console-output {
        height: 1fr;
        border: round $accent;
    }
    ConsolePanel #console-input {
        dock: bottom;
    }
    """

    def __init__(self, view: "ConsoleView") -> None:
        super().__init__(id=view.component_id)
        self.view = view

    def compose(self) -> ComposeResult:
        yield self.view.output
        yield self.view.input

    def on_mount(self) -> None:
        self.view.show_welcome()

    @on(Input.Submitted, "#console-input")
    def _submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.view.submit_line(event.value)


class ConsoleView(DashboardView):
    """Interactive console with history.

    Commands run on the store gateway one at a time, in the order they were
    entered; their replies are written to the log through the mutation queue.
    """

    kind = ViewKind.CONSOLE
    title = "CLI"

    def __init__(self, ctx: ViewContext) -> None:
        super().__init__(ctx)
        self.history = CommandHistory()
        self.output = RichLog(id="console-output", wrap=True, markup=False, highlight=False)
        self.input = Input(placeholder="redis> ", id="console-input")
        self.executed = 0
        self.lines: List[str] = []
        self.lock = asyncio.Lock()

    def build(self) -> Widget:
        self.output.border_title = "Console"
        return ConsolePanel(self)

    def focus_regions(self) -> Sequence[FocusRegion]:
        return (
            FocusRegion("input", self.input, free_text=True),
            FocusRegion("output", self.output),
        )

    def accept_arguments(self, text: str) -> None:
        self.submit_line(text)

    def context(self) -> str:
        return f"History: {len(self.history)}"

    # keys --------------------------------------------------------------------------

    def handle_key(self, key: str, region: Optional[FocusRegion]) -> bool:
        if region is None or region.name != "input":
            return False
        if key == "up":
            self._recall(self.history.previous())
            return True
        if key == "down":
            self._recall(self.history.next())
            return True
        if key == "ctrl+l":
            self.clear_output()
            return True
        if key == "ctrl+k":
            self.history.clear()
            self.ctx.notify("Command history cleared")
            self.ctx.update_context()
            return True
        return False

    def _recall(self, entry: Optional[str]) -> None:
        if entry is None:
            return
        self.input.value = entry
        self.input.cursor_position = len(entry)

    # output ------------------------------------------------------------------------

    def show_welcome(self) -> None:
        self._write(Text(WELCOME, style="dim"))

    def clear_output(self) -> None:
        self.output.clear()
        self.lines.clear()
        self.show_welcome()

    def _write(self, text: Text) -> None:
        self.lines.append(text.plain)
        self.output.write(text)

    # execution ---------------------------------------------------------------------

    def submit_line(self, line: str) -> None:
        command = line.strip()
        self.input.value = ""
        if not command:
            return
        self.history.append(command)
        self.ctx.update_context()
        self._write(Text(f"redis> {command}", style="bold cyan"))
        try:
            args = shlex.split(command)
        except ValueError as exc:
            self._write(Text(f"(error) {exc}", style="bold red"))
            return
        if not args:
            return
        self.state.spawn(self.execute(args), name=f"console:{self.executed}")
        self.executed += 1

    async def execute(self, args: List[str]) -> None:
        async with self.lock:
            await self._execute(args)

    async def _execute(self, args: List[str]) -> None:
        verb, rest = args[0], args[1:]
        client = self.gateway.client
        try:
            reply: Any = await self.gateway.call(client.execute, verb, *rest)
        except StoreTimeoutError as exc:
            logger.warning("console command timed out", extra={"command": verb.upper()})
            self.submit(self._show_error, str(exc))
            return
        except StoreError as exc:
            logger.info("console command failed: %s", exc, extra={"command": verb.upper()})
            self.submit(self._show_error, str(exc))
            return
        self.submit(self._show_reply, reply)

    def _show_reply(self, reply: Any) -> None:
        self._write(Text(format_reply(reply)))

    def _show_error(self, message: str) -> None:
        self._write(Text(f"(error) {message}", style="bold red"))


__all__ = ["ConsolePanel", "ConsoleView", "WELCOME"]
