"""Screen-change detection and debounced focus scheduling.

The detector compares the pointer's output with the last output it was seen
on. A change schedules a focus request after a short quiet period; newer
requests replace older ones, so rapid back-and-forth motion near an output
edge produces a single activation for the output the pointer settled on.

Changes are ignored shortly after a click (the user is interacting with the
output they are leaving), and deferred during a drag until the button is
released.
"""

import logging
from typing import Any, Callable, Optional

from .config import CoordinatorConfig
from .models import Display, TimerFired, TimerPurpose
from .scheduler import Scheduler
from .state import CoordinatorState, PendingFocus

logger = logging.getLogger(__name__)


class ScreenChangeDetector:
    """Detect output changes and schedule focus requests."""

    def __init__(
        self,
        state: CoordinatorState,
        config: CoordinatorConfig,
        scheduler: Scheduler,
        dispatch: Callable[[Any], None],
    ):
        """
        Args:
            state: Coordinator state
            config: Coordinator configuration
            scheduler: Timer primitive
            dispatch: Dispatcher entry point; timer expirations are delivered as TimerFired events
        """
        self.state = state
        self.config = config
        self.scheduler = scheduler
        self.dispatch = dispatch
        self.changes_detected = 0

    def _log(self, message: str) -> None:
        logger.log(logging.INFO if self.config.debug_console else logging.DEBUG, message)

    def in_click_cooldown(self) -> bool:
        if self.state.last_click_timestamp is None:
            return False
        elapsed = self.scheduler.now() - self.state.last_click_timestamp
        return elapsed < self.config.click_cooldown_seconds

    def handle(self, candidate: Optional[Display], source: str, is_drag: bool = False) -> bool:
        """Process a pointer observation.

        Args:
            candidate: Output the pointer is currently on
            source: Where the observation came from ("event", "poll", ...)
            is_drag: Whether a button is held

        Returns:
            True if an output change was detected
        """
        if self.in_click_cooldown():
            self._log("Skipping FFM - click cooldown active")
            return False

        if candidate is None or candidate.same_as(self.state.last_display):
            return False

        previous = self.state.last_display.id if self.state.last_display else "nil"
        self._log(
            f"Output change detected ({source}{', drag' if is_drag else ''}): "
            f"{previous} -> {candidate.id}"
        )
        self.state.last_display = candidate
        self.changes_detected += 1

        if is_drag:
            # Focus the drop target once the drag completes
            self.state.drag_active = True
            return True

        self.schedule_focus(candidate, prioritize_cursor=False, delay=self.config.debounce_seconds)
        return True

    def schedule_focus(self, display: Display, prioritize_cursor: bool, delay: float) -> None:
        """Schedule a focus request, replacing any pending one."""
        token = self.state.next_focus_token()
        handle = self.scheduler.call_later(
            delay,
            lambda: self.dispatch(TimerFired(TimerPurpose.FOCUS, token)),
        )
        self.state.replace_focus_timer(handle, PendingFocus(display, prioritize_cursor), token)

    def on_drag_end(self, display: Optional[Display]) -> bool:
        """Handle the end of a drag: focus the window under the cursor after it settles.

        Returns:
            True if a focus request was scheduled
        """
        if not self.state.drag_active:
            return False

        self._log("Drag ended, focusing window under cursor")
        self.state.drag_active = False
        if display is None:
            self.state.cancel_focus_timer()
            return False

        self.state.last_display = display
        self.schedule_focus(display, prioritize_cursor=True, delay=self.config.drag_debounce_seconds)
        return True
