"""Widgets shared by the application frame and the views."""
from __future__ import annotations

from typing import Optional

from rich.console import RenderableType
from rich.text import Text
from textual import on
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

from .hotkeys import legend_line


class HeaderBar(Vertical):
    """Connection metrics, the context line and the view legend."""

    DEFAULT_CSS = """
    HeaderBar {
        height: 3;
        background: $boost;
        padding: 0 1;
    }
    HeaderBar #header-context {
        color: $text-muted;
    }
    HeaderBar #header-legend {
        color: $accent;
    }
    """

    def __init__(self, *, id: Optional[str] = None) -> None:
        super().__init__(id=id)
        self.metrics_label = Static(Text("connecting…", style="dim"), id="header-metrics")
        self.context_label = Static("", id="header-context")
        self.legend_label = Static(legend_line(), id="header-legend")
        self.context_text = ""

    def compose(self) -> ComposeResult:
        yield self.metrics_label
        yield self.context_label
        yield self.legend_label

    def update_metrics(self, renderable: RenderableType) -> None:
        self.metrics_label.update(renderable)

    def update_context(self, text: str) -> None:
        self.context_text = text
        self.context_label.update(text)


class StatusBar(Static):
    """Single line for inline notices and operation errors."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    StatusBar.error {
        color: $error;
    }
    """

    def __init__(self, *, id: Optional[str] = None) -> None:
        super().__init__("", id=id)
        self.message = ""
        self.is_error = False

    def show(self, text: str, *, error: bool = False) -> None:
        self.message = text
        self.is_error = error
        self.set_class(error, "error")
        self.update(Text(text, style="bold red") if error else text)


class CommandBar(Container):
    """Bottom command prompt opened with ``:``."""

    DEFAULT_CSS = """
    CommandBar {
        height: 3;
        display: none;
    }
    CommandBar.open {
        display: block;
    }
    """

    def __init__(self) -> None:
        super().__init__(id="command-bar")
        self.input = Input(
            placeholder="keys | info | monitor | cli | config | help | refresh | quit",
            id="command-input",
        )

    def compose(self) -> ComposeResult:
        yield self.input

    def open(self) -> None:
        self.input.value = ""
        self.add_class("open")

    def close(self) -> None:
        self.input.value = ""
        self.remove_class("open")

    @property
    def is_open(self) -> bool:
        return self.has_class("open")


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no confirmation for destructive operations."""

    CSS = """
    #confirm-panel {
        padding: 1 2;
        border: heavy $accent;
        background: $panel;
        width: 60%;
        height: auto;
        margin: 4 8;
    }
    #confirm-actions {
        padding-top: 1;
        height: auto;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel"), ("n", "cancel", "No"), ("y", "confirm", "Yes")]

    def __init__(self, message: str) -> None:
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        with Container(id="confirm-panel"):
            yield Label(self.message)
            with Horizontal(id="confirm-actions"):
                yield Button("Cancel", id="confirm-cancel")
                yield Button("Confirm", id="confirm-ok", variant="error")

    def action_cancel(self) -> None:
        self.dismiss(False)

    def action_confirm(self) -> None:
        self.dismiss(True)

    @on(Button.Pressed, "#confirm-cancel")
    def _cancel(self, _: Button.Pressed) -> None:
        self.dismiss(False)

    @on(Button.Pressed, "#confirm-ok")
    def _confirm(self, _: Button.Pressed) -> None:
        self.dismiss(True)


class PromptScreen(ModalScreen[Optional[str]]):
    """Single line text prompt; dismisses with ``None`` when cancelled."""

    CSS = """
    #prompt-panel {
        padding: 1 2;
        border: heavy $accent;
        background: $panel;
        width: 70%;
        height: auto;
        margin: 4 8;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, title: str, *, value: str = "", placeholder: str = "") -> None:
        super().__init__()
        self.title_text = title
        self.input = Input(value=value, placeholder=placeholder, id="prompt-input")

    def compose(self) -> ComposeResult:
        with Container(id="prompt-panel"):
            yield Label(self.title_text)
            yield self.input

    def on_mount(self) -> None:
        self.input.focus()

    def action_cancel(self) -> None:
        self.dismiss(None)

    @on(Input.Submitted, "#prompt-input")
    def _submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(event.value)


__all__ = [
    "CommandBar",
    "ConfirmScreen",
    "HeaderBar",
    "PromptScreen",
    "StatusBar",
]
