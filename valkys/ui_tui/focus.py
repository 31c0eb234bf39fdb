"""Keyboard focus inside the active view."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence

from valkys.utils.logging import get_logger

from .context import AppState

logger = get_logger(__name__)


@dataclass(frozen=True)
class FocusRegion:
    """A focusable widget of a view. ``free_text`` marks text entry widgets."""

    name: str
    widget: Any
    free_text: bool = False


class FocusTarget(Protocol):
    def set_focus(self, widget: Any) -> None: ...


class FocusManager:
    """Map ``AppState.focused_widget_index`` onto the active view's regions.

    Indices are always reduced modulo the number of regions, so any integer
    is a valid argument to :meth:`set_focus`.
    """

    def __init__(self, state: AppState, target: FocusTarget) -> None:
        self._state = state
        self._target = target
        self._regions: Callable[[], Sequence[FocusRegion]] = lambda: ()

    def bind(self, regions: Callable[[], Sequence[FocusRegion]]) -> None:
        self._regions = regions

    def regions(self) -> Sequence[FocusRegion]:
        return self._regions()

    def set_focus(self, index: int) -> Optional[FocusRegion]:
        regions = self.regions()
        if not regions:
            self._state.focused_widget_index = 0
            return None
        index %= len(regions)
        self._state.focused_widget_index = index
        region = regions[index]
        self._target.set_focus(region.widget)
        logger.debug("focus moved", extra={"view": self._state.active_view.value, "task": region.name})
        return region

    def cycle_focus(self, step: int = 1) -> Optional[FocusRegion]:
        return self.set_focus(self._state.focused_widget_index + step)

    def focus_named(self, name: str) -> Optional[FocusRegion]:
        for index, region in enumerate(self.regions()):
            if region.name == name:
                return self.set_focus(index)
        return None

    def reapply(self) -> Optional[FocusRegion]:
        return self.set_focus(self._state.focused_widget_index)

    def current_region(self) -> Optional[FocusRegion]:
        regions = self.regions()
        if not regions:
            return None
        return regions[self._state.focused_widget_index % len(regions)]

    def is_free_text(self) -> bool:
        if self._state.prompt_open:
            return True
        region = self.current_region()
        return bool(region and region.free_text)

    def sync(self, widget: Any) -> bool:
        """Adopt a focus change made outside the manager, such as a mouse click."""

        for index, region in enumerate(self.regions()):
            if region.widget is widget:
                self._state.focused_widget_index = index
                return True
        return False


__all__ = ["FocusManager", "FocusRegion", "FocusTarget"]
