"""Bounded per-output focus memory.

Remembers the most recently focused window for each output so that returning
to an output restores the window the user was last working in.

Eviction: an upsert moves the key to the newest position; when the map grows
past capacity the oldest entry other than the one just written is dropped.
"""

import logging
from typing import Dict, ItemsView, List, Optional

logger = logging.getLogger(__name__)


class FocusMemory:
    """Mapping of display id -> window id with a fixed capacity."""

    def __init__(self, capacity: int = 5):
        """
        Initialize focus memory.

        Args:
            capacity: Maximum number of outputs remembered (>= 1)
        """
        if capacity < 1:
            raise ValueError(f"Focus memory capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._entries: Dict[str, int] = {}

    def remember(self, display_id: str, window_id: int) -> Optional[str]:
        """Record the focused window for an output.

        Args:
            display_id: Output identifier
            window_id: Window container ID

        Returns:
            The display id that was evicted to stay within capacity, if any
        """
        self._entries.pop(display_id, None)
        self._entries[display_id] = window_id

        if len(self._entries) <= self.capacity:
            return None

        for key in self._entries:
            if key != display_id:
                del self._entries[key]
                logger.debug(f"Cleaned up focus memory for old output: {key}")
                return key
        return None

    def get(self, display_id: str) -> Optional[int]:
        return self._entries.get(display_id)

    def forget(self, display_id: str) -> bool:
        """Remove an output's entry. Returns True if an entry was removed."""
        return self._entries.pop(display_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def forget_window(self, window_id: int) -> List[str]:
        """Remove every entry pointing at a window. Returns the affected outputs."""
        stale = [key for key, value in self._entries.items() if value == window_id]
        for key in stale:
            del self._entries[key]
        return stale

    def items(self) -> ItemsView[str, int]:
        return self._entries.items()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, display_id: object) -> bool:
        return display_id in self._entries
