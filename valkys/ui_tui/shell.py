"""View state machine and global key routing.

The shell knows nothing about Textual. It talks to the screen through the
small :class:`Renderer` protocol and to views through :class:`View`, which
keeps the routing rules testable with plain fakes.
"""
from __future__ import annotations

from typing import Any, List, Mapping, Optional, Protocol, Sequence

from valkys.utils.logging import get_logger

from .command_parser import CommandKind, ShellCommand, parse_command
from .context import AppState, ViewKind
from .focus import FocusManager, FocusRegion
from .hotkeys import (
    CANCEL_KEY,
    CONTROL_KEYS,
    FOCUS_NEXT_KEY,
    PROMPT_KEY,
    QUIT_KEYS,
    REFRESH_KEY,
    VIEW_HOTKEYS,
)

logger = get_logger(__name__)


class Renderer(Protocol):
    """Operations the shell needs from the screen owner."""

    def show_view(self, kind: ViewKind) -> None: ...

    def set_focus(self, widget: Any) -> None: ...

    def get_focus(self) -> Any: ...

    def show_prompt(self, visible: bool) -> None: ...

    def show_status(self, text: str, *, error: bool = False) -> None: ...

    def update_context(self, text: str) -> None: ...

    def request_exit(self) -> None: ...


class View(Protocol):
    kind: ViewKind

    def component(self) -> Any: ...

    def focus_regions(self) -> Sequence[FocusRegion]: ...

    async def refresh(self) -> None: ...

    def handle_key(self, key: str, region: Optional[FocusRegion]) -> bool: ...

    def cancel(self) -> bool: ...

    def activated(self) -> None: ...

    def deactivated(self) -> None: ...

    def accept_arguments(self, text: str) -> None: ...

    def context(self) -> str: ...


class AppShell:
    """Own the active view and route keys and prompt commands."""

    def __init__(
        self,
        state: AppState,
        views: Mapping[ViewKind, View],
        renderer: Renderer,
        focus: FocusManager,
        *,
        gateway: Any = None,
    ) -> None:
        missing = set(ViewKind) - set(views)
        if missing:
            raise ValueError(f"missing views: {sorted(kind.value for kind in missing)}")
        self.state = state
        self.views = dict(views)
        self.renderer = renderer
        self.focus = focus
        self.gateway = gateway
        focus.bind(lambda: self.active_view.focus_regions())

    @property
    def active_view(self) -> View:
        return self.views[self.state.active_view]

    # view state machine ----------------------------------------------------------

    def switch_view(self, target: ViewKind) -> None:
        """Make ``target`` the active view.

        Always succeeds. Switching to the view that is already active only
        re-applies focus. Data is never refreshed as a side effect.
        """

        previous = self.state.active_view
        changed = previous is not target
        if changed:
            self.views[previous].deactivated()
        self.state.active_view = target
        self.renderer.show_view(target)
        if changed:
            self.state.focused_widget_index = 0
            logger.info("view switched", extra={"view": target.value, "task": f"from:{previous.value}"})
        if not self.state.prompt_open:
            self.focus.reapply()
        if changed:
            self.views[target].activated()
        self.update_context()

    def update_context(self) -> None:
        self.renderer.update_context(self.context_line())

    def context_line(self) -> str:
        detail = self.active_view.context()
        label = self.state.active_view.label
        return f"{label} | {detail}" if detail else label

    # keys ------------------------------------------------------------------------

    def handle_key(self, key: str) -> bool:
        """Route one key press.

        Returns ``True`` when the shell or the active view consumed the key.
        ``False`` means the key should continue to the focused widget.
        """

        if key in QUIT_KEYS:
            self.request_quit()
            return True
        if key == CANCEL_KEY:
            self.cancel()
            return True
        if key in CONTROL_KEYS:
            if key == REFRESH_KEY:
                self.refresh_active()
            elif not self.state.prompt_open:
                self.focus.cycle_focus(1 if key == FOCUS_NEXT_KEY else -1)
            return True
        if not self.focus.is_free_text():
            if key in VIEW_HOTKEYS:
                self.switch_view(VIEW_HOTKEYS[key])
                return True
            if key == PROMPT_KEY:
                self.open_prompt()
                return True
        if self.state.prompt_open:
            return False
        return self.active_view.handle_key(key, self.focus.current_region())

    def cancel(self) -> None:
        if self.state.prompt_open:
            self.close_prompt()
            return
        if self.state.active_view is not ViewKind.KEYS:
            self.switch_view(ViewKind.KEYS)
            return
        self.active_view.cancel()

    def sync_focus(self, widget: Any) -> None:
        self.focus.sync(widget)

    # prompt ----------------------------------------------------------------------

    def open_prompt(self) -> None:
        self.state.prompt_open = True
        self.renderer.show_prompt(True)

    def close_prompt(self) -> None:
        if not self.state.prompt_open:
            return
        self.state.prompt_open = False
        self.renderer.show_prompt(False)
        self.focus.reapply()

    def execute_command(self, text: str) -> ShellCommand:
        """Run a line entered in the command prompt."""

        self.close_prompt()
        command = parse_command(text)
        logger.debug("command entered", extra={"command": command.verb or text.strip()})
        if command.kind is CommandKind.VIEW_SWITCH and command.view is not None:
            self.switch_view(command.view)
            if command.rest:
                self.active_view.accept_arguments(command.rest)
        elif command.kind is CommandKind.REFRESH:
            self.refresh_active()
        elif command.kind is CommandKind.QUIT:
            self.request_quit()
        elif command.kind is CommandKind.UNKNOWN:
            self.renderer.show_status(command.error or "Unknown command", error=True)
        return command

    # actions ---------------------------------------------------------------------

    def refresh_active(self) -> None:
        kind = self.state.active_view
        self.renderer.show_status(f"Refreshing {kind.label}…")
        self.state.spawn(self.active_view.refresh(), name=f"refresh:{kind.value}", replace=True)

    def request_quit(self) -> None:
        logger.info("quit requested", extra={"view": self.state.active_view.value})
        self.renderer.request_exit()

    async def shutdown(self, timeout: Optional[float] = None) -> List[str]:
        """Stop background work and release the store connection."""

        abandoned = await self.state.shutdown(timeout)
        if self.gateway is not None:
            self.gateway.close()
        return abandoned


__all__ = ["AppShell", "Renderer", "View"]
