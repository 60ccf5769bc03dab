"""Abstract window-system backend.

A backend supplies everything the coordinator needs from the desktop:
synchronous pointer/display/window queries, window activation, and event
sources that can be started and stopped independently. Queries must never
raise for a vanished window; they return ``None`` or an empty list instead.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from ..models import Display, Point, WindowInfo

logger = logging.getLogger(__name__)

Emit = Callable[[Any], None]


class EventSource(ABC):
    """A subscribable stream of events that can be started and stopped."""

    name = "source"

    def __init__(self, emit: Emit):
        self.emit = emit
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._start()
        self._running = True
        logger.debug(f"Started {self.name} source")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._stop()
        logger.debug(f"Stopped {self.name} source")

    @abstractmethod
    def _start(self) -> None: ...

    @abstractmethod
    def _stop(self) -> None: ...


class Backend(ABC):
    """Window-system capabilities used by the coordinator."""

    name = "backend"

    # Set by the coordinator while it is running
    on_focus_rejected: Optional[Callable[[int], None]] = None

    async def connect(self) -> None:
        """Connect to the window system (no-op by default)."""

    async def close(self) -> None:
        """Release window-system resources (no-op by default)."""

    # Queries

    @abstractmethod
    def pointer_position(self) -> Optional[Point]: ...

    @abstractmethod
    def displays(self) -> List[Display]: ...

    @abstractmethod
    def windows(self) -> List[WindowInfo]:
        """All known windows, topmost first."""

    @abstractmethod
    def focused_window(self) -> Optional[WindowInfo]: ...

    def current_display(self) -> Optional[Display]:
        """Display containing the pointer (None if unknown)."""
        point = self.pointer_position()
        if point is None:
            return None
        for display in self.displays():
            if display.contains_point(point):
                return display
        return None

    def lookup_window(self, window_id: int) -> Optional[WindowInfo]:
        """Fresh snapshot for a window handle, or None if it no longer exists."""
        for window in self.windows():
            if window.id == window_id:
                return window
        return None

    def display_by_id(self, display_id: Optional[str]) -> Optional[Display]:
        if display_id is None:
            return None
        for display in self.displays():
            if display.id == display_id:
                return display
        return None

    def display_for_window(self, window_id: int) -> Optional[Display]:
        window = self.lookup_window(window_id)
        return self.display_by_id(window.display_id) if window else None

    # Actions

    @abstractmethod
    def raise_window(self, window: WindowInfo) -> None: ...

    @abstractmethod
    def focus_window(self, window: WindowInfo) -> None:
        """Request focus. May complete asynchronously; a refusal is reported
        later through ``report_focus_rejected``."""

    def report_focus_rejected(self, window_id: int) -> None:
        if self.on_focus_rejected is not None:
            self.on_focus_rejected(window_id)

    # Event sources

    @abstractmethod
    def pointer_source(self, emit: Emit) -> EventSource:
        """Low-level pointer events (PointerMoved, DragStarted, ButtonPressed, ButtonReleased)."""

    @abstractmethod
    def screen_source(self, emit: Emit) -> EventSource:
        """ScreenConfigChanged on output connect/disconnect/change."""

    @abstractmethod
    def focus_source(self, emit: Emit) -> EventSource:
        """WindowFocusGained whenever any window gains focus."""

    def command_source(self, emit: Emit) -> Optional[EventSource]:
        """ControlRequested from the window system (optional)."""
        return None
