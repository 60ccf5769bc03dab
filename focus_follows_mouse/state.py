"""Coordinator state.

One instance lives for the lifetime of a coordinator. All mutation goes
through the methods below so the two invariants are enforced in one place:
focus memory stays within capacity, and at most one focus request is pending.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .focus_memory import FocusMemory
from .models import Display
from .scheduler import TimerHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingFocus:
    """A debounced focus request waiting for its timer."""
    display: Display
    prioritize_cursor: bool = False


class CoordinatorState:
    """Runtime state for the focus-follows-mouse coordinator."""

    def __init__(self, memory_capacity: int = 5) -> None:
        self.enabled = True
        self.last_display: Optional[Display] = None
        self.focus_memory = FocusMemory(memory_capacity)
        self.drag_active = False
        self.last_click_timestamp: Optional[float] = None

        self._focus_timer: Optional[TimerHandle] = None
        self.pending_focus: Optional[PendingFocus] = None
        self._drag_end_timer: Optional[TimerHandle] = None

        self._focus_token = 0
        self._pending_focus_token: Optional[int] = None
        self._drag_end_token = 0
        self._pending_drag_end_token: Optional[int] = None

    # Enabled flag

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        if not enabled:
            self.cancel_timers()
            self.drag_active = False

    # Focus memory

    def remember(self, display_id: str, window_id: int) -> Optional[str]:
        return self.focus_memory.remember(display_id, window_id)

    def forget(self, display_id: str) -> bool:
        return self.focus_memory.forget(display_id)

    def forget_window(self, window_id: int) -> List[str]:
        return self.focus_memory.forget_window(window_id)

    # Timers

    @property
    def focus_timer_pending(self) -> bool:
        return self._focus_timer is not None

    @property
    def drag_end_timer_pending(self) -> bool:
        return self._drag_end_timer is not None

    def next_focus_token(self) -> int:
        self._focus_token += 1
        return self._focus_token

    def next_drag_end_token(self) -> int:
        self._drag_end_token += 1
        return self._drag_end_token

    def replace_focus_timer(self, handle: TimerHandle, request: PendingFocus, token: int) -> None:
        """Install a new focus timer, cancelling any pending one."""
        self.cancel_focus_timer()
        self._focus_timer = handle
        self.pending_focus = request
        self._pending_focus_token = token

    def take_pending_focus(self, token: int) -> Optional[PendingFocus]:
        """Consume the pending focus request when its timer fires.

        Returns None if the request was cancelled or superseded.
        """
        if self.pending_focus is None or token != self._pending_focus_token:
            return None
        request = self.pending_focus
        self._focus_timer = None
        self.pending_focus = None
        return request

    def cancel_focus_timer(self) -> None:
        if self._focus_timer is not None:
            self._focus_timer.cancel()
        self._focus_timer = None
        self.pending_focus = None
        self._pending_focus_token = None

    def replace_drag_end_timer(self, handle: TimerHandle, token: int) -> None:
        self.cancel_drag_end_timer()
        self._drag_end_timer = handle
        self._pending_drag_end_token = token

    def take_drag_end(self, token: int) -> bool:
        """Consume the drag-end timer when it fires. False if cancelled or superseded."""
        if self._drag_end_timer is None or token != self._pending_drag_end_token:
            return False
        self._drag_end_timer = None
        self._pending_drag_end_token = None
        return True

    def cancel_drag_end_timer(self) -> None:
        if self._drag_end_timer is not None:
            self._drag_end_timer.cancel()
        self._drag_end_timer = None
        self._pending_drag_end_token = None

    def cancel_timers(self) -> None:
        self.cancel_focus_timer()
        self.cancel_drag_end_timer()

    def reset(self) -> None:
        """Drop all transient state and memory (teardown)."""
        self.cancel_timers()
        self.focus_memory.clear()
        self.drag_active = False
        self.last_click_timestamp = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "last_display": self.last_display.id if self.last_display else None,
            "memory_entries": len(self.focus_memory),
            "drag_active": self.drag_active,
            "focus_pending": self.focus_timer_pending,
            "drag_end_pending": self.drag_end_timer_pending,
        }
