"""Key browser: list, filter, details and per-key operations."""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

from rich.text import Text
from textual import on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widget import Widget
from textual.widgets import DataTable, Input, Label, Static

from valkys.store.client import KeyDetail
from valkys.utils.errors import KeyNotFoundError, StoreError
from valkys.utils.formatting import format_bytes, format_ttl
from valkys.utils.logging import get_logger

from .context import KeySnapshot, ViewKind
from .focus import FocusRegion
from .loader import IncrementalLoader, LoadProgress
from .panels import ConfirmScreen, PromptScreen
from .views import DashboardView, ViewContext

logger = get_logger(__name__)


class KeysPanel(Vertical):
    """Widget tree of the Keys view; forwards widget messages to the view."""

    DEFAULT_CSS = """
    KeysPanel #keys-filter {
        display: none;
    }
    KeysPanel.filtering #keys-filter {
        display: block;
    }
    KeysPanel #keys-table {
        width: 3fr;
    }
    KeysPanel #keys-detail {
        width: 2fr;
        border-left: solid $accent;
        padding: 0 1;
    }
    """

    def __init__(self, view: "KeysView") -> None:
        super().__init__(id=view.component_id)
        self.view = view

    def compose(self) -> ComposeResult:
        yield self.view.title_label
        yield self.view.filter_input
        with Horizontal():
            yield self.view.table
            with VerticalScroll(id="keys-detail"):
                yield self.view.detail

    @on(Input.Changed, "#keys-filter")
    def _filter_changed(self, event: Input.Changed) -> None:
        event.stop()
        self.view.set_filter(event.value)

    @on(Input.Submitted, "#keys-filter")
    def _filter_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.view.ctx.focus.focus_named("table")

    @on(DataTable.RowHighlighted, "#keys-table")
    @on(DataTable.RowSelected, "#keys-table")
    def _row_chosen(self, event: DataTable.RowHighlighted | DataTable.RowSelected) -> None:
        if event.row_key.value is not None:
            self.view.select(event.row_key.value)


class KeysView(DashboardView):
    """Browse the key space loaded by :class:`IncrementalLoader`.

    The list only changes when a loader run finishes (or after a local
    delete/TTL change), so switching views never reloads keys.
    """

    kind = ViewKind.KEYS
    title = "Keys"

    def __init__(self, ctx: ViewContext) -> None:
        super().__init__(ctx)
        ui = ctx.settings.ui
        self.loader = IncrementalLoader(
            ctx.gateway,
            ctx.queue,
            batch_size=ui.batch_size,
            max_keys=ui.max_keys,
            timeout=ui.fetch_timeout,
        )
        self.snapshots: Tuple[KeySnapshot, ...] = ()
        self.partial = False
        self.loading: Optional[int] = None
        self.filter_text = ""
        self.filter_open = False
        self.selected: Optional[str] = None
        self.detail_loaded_for: Optional[str] = None
        self.title_label = Label("Keys", id="keys-title")
        self.filter_input = Input(placeholder="filter keys (case-insensitive)", id="keys-filter")
        self.table: DataTable = DataTable(id="keys-table", cursor_type="row", zebra_stripes=True)
        self.detail = Static(Text("Select a key to see its details", style="dim"), id="keys-detail-content")
        self._panel: Optional[KeysPanel] = None

    def build(self) -> Widget:
        columns = ["Key", "Type"]
        if self.ctx.settings.ui.show_ttl:
            columns.append("TTL")
        if self.ctx.settings.ui.show_memory:
            columns.append("Size")
        self.table.add_columns(*columns)
        self._panel = KeysPanel(self)
        return self._panel

    def focus_regions(self) -> Sequence[FocusRegion]:
        regions = [FocusRegion("table", self.table)]
        if self.filter_open:
            regions.append(FocusRegion("filter", self.filter_input, free_text=True))
        return regions

    # loading -----------------------------------------------------------------------

    async def refresh(self) -> None:
        await self.loader.run(self.apply_progress)

    def reload(self) -> None:
        self.ctx.notify("Reloading keys…")
        self.state.spawn(self.refresh(), name="refresh:keys", replace=True)

    def apply_progress(self, progress: LoadProgress) -> None:
        if progress.generation != self.loader.generation:
            logger.debug("stale key load discarded", extra={"generation": progress.generation})
            return
        if not progress.done:
            self.loading = progress.count
            self._update_title()
            return
        self.loading = None
        if progress.error is not None:
            self._update_title()
            self.ctx.notify(f"Loading keys failed: {progress.error}", error=True)
            return
        self.snapshots = progress.snapshots
        self.partial = progress.partial
        self._render_table()
        suffix = f" (first {len(self.snapshots)} only)" if self.partial else ""
        self.ctx.notify(f"Loaded {len(self.snapshots)} keys{suffix}")
        self.ctx.update_context()

    # filtering ---------------------------------------------------------------------

    def visible(self) -> Tuple[KeySnapshot, ...]:
        if not self.filter_text:
            return self.snapshots
        needle = self.filter_text.lower()
        return tuple(snapshot for snapshot in self.snapshots if needle in snapshot.name.lower())

    def set_filter(self, text: str) -> None:
        self.filter_text = text
        self._render_table()
        self.ctx.update_context()

    def open_filter(self) -> None:
        self.filter_open = True
        if self._panel is not None:
            self._panel.add_class("filtering")
        self.ctx.focus.focus_named("filter")

    def close_filter(self) -> None:
        self.filter_open = False
        if self._panel is not None:
            self._panel.remove_class("filtering")
        self.filter_input.value = ""
        self.set_filter("")
        self.ctx.focus.focus_named("table")

    def cancel(self) -> bool:
        if self.filter_open:
            self.close_filter()
            return True
        return False

    def context(self) -> str:
        total = f"Keys({len(self.snapshots)}{'+' if self.partial else ''})"
        return f"{total} | Filter: {self.filter_text}" if self.filter_text else total

    # keys --------------------------------------------------------------------------

    def handle_key(self, key: str, region: Optional[FocusRegion]) -> bool:
        if region is None or region.free_text:
            return False
        if key == "slash":
            self.open_filter()
            return True
        if key == "r":
            self.reload()
            return True
        if key == "d":
            self.confirm_delete()
            return True
        if key == "e":
            self.edit_selected()
            return True
        if key == "t":
            self.prompt_ttl()
            return True
        return False

    # rendering ---------------------------------------------------------------------

    def _render_table(self) -> None:
        rows = self.visible()
        self.table.clear()
        for snapshot in rows:
            cells: list[object] = [snapshot.name, _kind_text(snapshot.kind)]
            if self.ctx.settings.ui.show_ttl:
                cells.append(format_ttl(snapshot.ttl_seconds))
            if self.ctx.settings.ui.show_memory:
                cells.append(format_bytes(snapshot.size_bytes))
            self.table.add_row(*cells, key=snapshot.name)
        if self.selected is not None and any(snapshot.name == self.selected for snapshot in rows):
            self.table.move_cursor(row=self.table.get_row_index(self.selected))
        self._update_title()

    def _update_title(self) -> None:
        title = f"Keys ({len(self.visible())}/{len(self.snapshots)})"
        if self.filter_text:
            title += f" [filter: {self.filter_text}]"
        if self.partial:
            title += " (partial)"
        if self.loading is not None:
            title += f"  loading… {self.loading}"
        self.title_label.update(title)

    # details -----------------------------------------------------------------------

    def select(self, name: str) -> None:
        if name == self.selected and self.detail_loaded_for == name:
            return
        self.selected = name
        self.detail_loaded_for = None
        self.detail.update(Text(f"Loading {name}…", style="dim"))
        self.state.spawn(self._load_detail(name), name="keys:detail", replace=True)

    async def _load_detail(self, name: str) -> None:
        client = self.gateway.client
        try:
            detail = await self.gateway.call(client.describe_key, name)
            value = await self.gateway.call(client.get_value, name)
        except KeyNotFoundError:
            self.submit(self._apply_detail_error, name, "Key does not exist")
            return
        except StoreError as exc:
            self.submit(self._apply_detail_error, name, str(exc))
            return
        self.submit(self._apply_detail, name, detail, value)

    def _apply_detail(self, name: str, detail: KeyDetail, value: str) -> None:
        if name != self.selected:
            return
        self.detail_loaded_for = name
        text = Text()
        text.append(f"{name}\n\n", style="bold")
        text.append("Type:   ", style="green")
        text.append(f"{detail.kind}\n")
        text.append("TTL:    ", style="green")
        text.append(f"{format_ttl(detail.ttl)}\n")
        text.append("Memory: ", style="green")
        text.append(f"{format_bytes(detail.size)}{'' if detail.exact_size else ' (approx.)'}\n\n")
        text.append("Value:\n", style="green")
        text.append(value)
        self.detail.update(text)

    def _apply_detail_error(self, name: str, message: str) -> None:
        if name != self.selected:
            return
        self.detail.update(Text(f"{name}: {message}", style="bold red"))

    # operations --------------------------------------------------------------------

    def _snapshot(self, name: Optional[str]) -> Optional[KeySnapshot]:
        for snapshot in self.snapshots:
            if snapshot.name == name:
                return snapshot
        return None

    def _require_selection(self) -> Optional[str]:
        if self.selected is None or self._snapshot(self.selected) is None:
            self.ctx.notify("No key selected", error=True)
            return None
        return self.selected

    def confirm_delete(self) -> None:
        name = self._require_selection()
        if name is None:
            return

        def confirmed(result: Optional[bool]) -> None:
            if result:
                self.state.spawn(self._delete(name), name=f"keys:delete:{name}")

        self.component().app.push_screen(ConfirmScreen(f"Delete key '{name}'?"), confirmed)

    async def _delete(self, name: str) -> None:
        try:
            await self.gateway.call(self.gateway.client.delete, name)
        except StoreError as exc:
            logger.warning("delete failed: %s", exc, extra={"key": name})
            self.submit(self._operation_failed, "Delete", name, str(exc))
            return
        self.submit(self._removed, name)

    def _removed(self, name: str) -> None:
        self.snapshots = tuple(snapshot for snapshot in self.snapshots if snapshot.name != name)
        if self.selected == name:
            self.selected = None
            self.detail.update(Text("Select a key to see its details", style="dim"))
        self._render_table()
        self.ctx.notify(f"Deleted key {name}")
        self.ctx.update_context()

    def _operation_failed(self, operation: str, name: str, message: str) -> None:
        if name == self.selected:
            self.detail.update(Text(f"{operation} failed for {name}: {message}", style="bold red"))
        self.ctx.notify(f"{operation} failed: {message}", error=True)

    def edit_selected(self) -> None:
        name = self._require_selection()
        if name is None:
            return
        snapshot = self._snapshot(name)
        if snapshot is not None and snapshot.kind != "string":
            self.ctx.notify(f"Only string values can be edited ({name} is a {snapshot.kind})", error=True)
            return
        self.state.spawn(self._begin_edit(name), name="keys:edit", replace=True)

    async def _begin_edit(self, name: str) -> None:
        try:
            value = await self.gateway.call(self.gateway.client.get_value, name)
        except StoreError as exc:
            self.submit(self._operation_failed, "Edit", name, str(exc))
            return
        self.submit(self._prompt_edit, name, value)

    def _prompt_edit(self, name: str, value: str) -> None:
        def submitted(result: Optional[str]) -> None:
            if result is not None:
                self.state.spawn(self._set_value(name, result), name=f"keys:set:{name}")

        self.component().app.push_screen(PromptScreen(f"New value for {name}", value=value), submitted)

    async def _set_value(self, name: str, value: str) -> None:
        try:
            await self.gateway.call(self.gateway.client.set_value, name, value)
        except StoreError as exc:
            self.submit(self._operation_failed, "Set value", name, str(exc))
            return
        self.submit(self._value_updated, name)

    def _value_updated(self, name: str) -> None:
        self.ctx.notify(f"Updated {name}")
        if name == self.selected:
            self.detail_loaded_for = None
            self.select(name)

    def prompt_ttl(self) -> None:
        name = self._require_selection()
        if name is None:
            return

        def submitted(result: Optional[str]) -> None:
            if result is None:
                return
            try:
                seconds = int(result.strip())
            except ValueError:
                self.ctx.notify(f"Invalid TTL: {result!r}", error=True)
                return
            self.state.spawn(self._set_ttl(name, seconds), name=f"keys:ttl:{name}")

        screen = PromptScreen(f"TTL in seconds for {name} (-1 removes the expiry)", placeholder="3600")
        self.component().app.push_screen(screen, submitted)

    async def _set_ttl(self, name: str, seconds: int) -> None:
        try:
            applied = await self.gateway.call(self.gateway.client.expire, name, seconds)
        except StoreError as exc:
            self.submit(self._operation_failed, "Set TTL", name, str(exc))
            return
        if not applied:
            self.submit(self._operation_failed, "Set TTL", name, "key does not exist or has no expiry")
            return
        self.submit(self._ttl_updated, name, seconds if seconds > 0 else -1)

    def _ttl_updated(self, name: str, ttl: int) -> None:
        self.snapshots = tuple(
            KeySnapshot(s.name, s.kind, ttl, s.size_bytes) if s.name == name else s for s in self.snapshots
        )
        self._render_table()
        self.ctx.notify(f"TTL of {name} set to {format_ttl(ttl)}")
        if name == self.selected:
            self.detail_loaded_for = None
            self.select(name)


def _kind_text(kind: str) -> Text:
    styles = {"string": "green", "list": "cyan", "set": "magenta", "hash": "yellow", "zset": "blue"}
    return Text(kind, style=styles.get(kind, "dim"))


__all__ = ["KeysPanel", "KeysView"]
