"""Input watcher.

Classifies low-level pointer events and feeds the screen-change detector.
Events are only observed; the underlying listener never suppresses input.
"""

import logging
from typing import Any, Callable

from .backends.base import Backend
from .config import CoordinatorConfig
from .detector import ScreenChangeDetector
from .models import (
    ButtonPressed,
    ButtonReleased,
    DragStarted,
    PointerMoved,
    TimerFired,
    TimerPurpose,
)
from .scheduler import Scheduler
from .state import CoordinatorState

logger = logging.getLogger(__name__)


class InputWatcher:
    """Handlers for pointer events delivered through the dispatcher."""

    def __init__(
        self,
        backend: Backend,
        state: CoordinatorState,
        config: CoordinatorConfig,
        scheduler: Scheduler,
        detector: ScreenChangeDetector,
        dispatch: Callable[[Any], None],
    ):
        self.backend = backend
        self.state = state
        self.config = config
        self.scheduler = scheduler
        self.detector = detector
        self.dispatch = dispatch

    def on_button_pressed(self, event: ButtonPressed) -> None:
        """Record the click time for the cooldown."""
        if not self.state.enabled:
            return
        self.state.last_click_timestamp = self.scheduler.now()

    def on_drag(self, event: DragStarted) -> None:
        if not self.state.enabled:
            return
        self.state.drag_active = True
        self.detector.handle(self.backend.current_display(), "event", is_drag=True)

    def on_button_released(self, event: ButtonReleased) -> None:
        """Start (or restart) the short drag-end delay."""
        if not self.state.enabled:
            return
        token = self.state.next_drag_end_token()
        handle = self.scheduler.call_later(
            self.config.drag_end_delay,
            lambda: self.dispatch(TimerFired(TimerPurpose.DRAG_END, token)),
        )
        self.state.replace_drag_end_timer(handle, token)

    def on_drag_end_timer(self, token: int) -> None:
        if not self.state.take_drag_end(token):
            return
        if not self.state.enabled:
            return
        self.detector.on_drag_end(self.backend.current_display())

    def on_pointer_moved(self, event: PointerMoved) -> None:
        if not self.state.enabled:
            return
        self.detector.handle(self.backend.current_display(), "event", is_drag=False)
