"""Poll fallback.

Pointer event delivery is not guaranteed (listeners can miss events across
output boundaries, or be unavailable entirely), so the pointer's output is
also re-read on a fixed interval. Duplicate detections are no-ops because
the detector compares against the last known output.
"""

import logging
from typing import Any, Callable

from .backends.base import Backend
from .config import CoordinatorConfig
from .detector import ScreenChangeDetector
from .models import TimerFired, TimerPurpose
from .scheduler import RepeatingTimer, Scheduler
from .state import CoordinatorState

logger = logging.getLogger(__name__)


class PollFallback:
    """Repeating check of the pointer's current output."""

    name = "poll"

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
        self.detector = detector
        self.polls = 0
        self.timer = RepeatingTimer(
            scheduler,
            config.poll_interval,
            lambda: dispatch(TimerFired(TimerPurpose.POLL)),
            name="poll",
        )

    @property
    def running(self) -> bool:
        return self.timer.running

    def start(self) -> None:
        self.timer.start()

    def stop(self) -> None:
        self.timer.stop()

    def poll(self) -> bool:
        """Run one poll. Returns True if an output change was detected."""
        if not self.state.enabled or self.state.drag_active:
            return False
        self.polls += 1
        return self.detector.handle(self.backend.current_display(), "poll", is_drag=False)
