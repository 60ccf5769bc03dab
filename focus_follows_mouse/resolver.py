"""Focus resolver.

Decides which window to activate when the pointer arrives on an output.

Priority chain (first match wins):
1. Window under the cursor, when the cursor is prioritized (after a drag)
2. Window remembered for the output, if still valid and still on that output
3. Window under the cursor
4. First candidate window on the output (topmost first)

A fullscreen window that has focus on the target output is never replaced.
"""

import logging
from typing import List, Optional

from .backends.base import Backend
from .config import CoordinatorConfig
from .models import Display, Point, WindowInfo
from .notifier import Notifier
from .state import CoordinatorState

logger = logging.getLogger(__name__)


class FocusResolver:
    """Pick and activate a window on a given output."""

    def __init__(
        self,
        backend: Backend,
        state: CoordinatorState,
        config: CoordinatorConfig,
        notifier: Optional[Notifier] = None,
    ):
        self.backend = backend
        self.state = state
        self.config = config
        self.notifier = notifier
        self.activations = 0

    def _log(self, message: str) -> None:
        logger.log(logging.INFO if self.config.debug_console else logging.DEBUG, message)

    def _alert(self, message: str) -> None:
        if self.notifier:
            self.notifier.show(message, self.config.alert_seconds)

    # Candidate filtering

    def is_candidate(self, window: Optional[WindowInfo]) -> bool:
        """Visible, not minimized, standard, and not an excluded application."""
        if window is None:
            return False
        if not window.visible or window.minimized or not window.standard:
            return False
        return not self.config.is_excluded(window.app_name)

    def candidates_on(self, display: Display) -> List[WindowInfo]:
        """Candidate windows on an output, topmost first."""
        return [
            w for w in self.backend.windows()
            if w.display_id == display.id and self.is_candidate(w)
        ]

    def window_under_point(self, point: Optional[Point], display: Display) -> Optional[WindowInfo]:
        """Topmost candidate on the output whose frame contains the point."""
        if point is None:
            return None
        for window in self.candidates_on(display):
            if window.frame.contains(point):
                return window
        return None

    # Activation

    def _activate(self, window: WindowInfo) -> bool:
        """Raise then focus a window.

        Focus may be refused later by the window manager; the backend reports
        that through ``report_focus_rejected``.
        """
        try:
            self.backend.raise_window(window)
            self.backend.focus_window(window)
        except Exception as e:
            logger.error(f"Failed to activate window {window.id} {window.describe()}: {e}")
            return False
        self.activations += 1
        return True

    def activate(self, display: Optional[Display], prioritize_cursor: bool = False) -> bool:
        """Focus the most relevant window on an output.

        Args:
            display: Target output
            prioritize_cursor: Prefer the window under the cursor over focus memory

        Returns:
            True if a window was activated
        """
        if display is None:
            self._log("activate: no output")
            return False

        current = self.backend.focused_window()
        if current and current.fullscreen and current.display_id == display.id:
            self._log(f"Skipping focus - fullscreen window is active on {display.id}")
            return False

        point = self.backend.pointer_position()

        if prioritize_cursor:
            window = self.window_under_point(point, display)
            if window:
                self._log(f"Focusing dragged window under cursor: {window.describe()}")
                if not self._activate(window):
                    return False
                self._alert(f"🎯 {window.app_name}")
                self.state.remember(display.id, window.id)
                return True

        remembered_id = self.state.focus_memory.get(display.id)
        if remembered_id is not None:
            window = self.backend.lookup_window(remembered_id)
            if window and self.is_candidate(window) and window.display_id == display.id:
                self._log(f"Restoring last focused window: {window.describe()}")
                if not self._activate(window):
                    return False
                self._alert(f"↻ {window.app_name}")
                return True
            self.state.forget(display.id)
            self._log(f"Cleared stale window reference for output {display.id}")

        window = self.window_under_point(point, display)
        if window:
            self._log(f"Focusing window under cursor: {window.describe()}")
            if not self._activate(window):
                return False
            self._alert(window.app_name)
            self.state.remember(display.id, window.id)
            return True

        candidates = self.candidates_on(display)
        if candidates:
            window = candidates[0]
            self._log(f"Fallback focus: {window.describe()}")
            if not self._activate(window):
                return False
            self._alert(window.app_name)
            self.state.remember(display.id, window.id)
            return True

        logger.info(f"No candidate window found on output {display.id}")
        return False
