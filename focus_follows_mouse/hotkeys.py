"""Global hotkeys.

Registers the four control hotkeys with pynput and forwards them to the
coordinator on the asyncio loop (pynput calls back on its own thread).
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from .config import HotkeyConfig
from .models import ControlCommand

logger = logging.getLogger(__name__)


class HotkeyService:
    """Registers global shortcuts using pynput and forwards them to the loop."""

    def __init__(
        self,
        config: HotkeyConfig,
        on_command: Callable[[ControlCommand], None],
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self.config = config
        self._on_command = on_command
        self._loop = loop
        self._listener: Optional[Any] = None

    def bindings(self) -> Dict[str, Callable[[], None]]:
        """Map of combo -> callback."""
        return {
            self.config.reload: self._wrap(ControlCommand.RELOAD),
            self.config.toggle: self._wrap(ControlCommand.TOGGLE),
            self.config.debug: self._wrap(ControlCommand.DEBUG),
            self.config.clear: self._wrap(ControlCommand.CLEAR),
        }

    def _wrap(self, command: ControlCommand) -> Callable[[], None]:
        def _runner() -> None:
            self._loop.call_soon_threadsafe(self._on_command, command)

        return _runner

    def start(self) -> bool:
        """Start listening. Returns False if hotkeys are disabled or unavailable."""
        if not self.config.enabled:
            logger.info("Global hotkeys disabled in configuration")
            return False
        if self._listener is not None:
            return True
        try:
            from pynput import keyboard

            self._listener = keyboard.GlobalHotKeys(self.bindings())
            self._listener.start()
        except Exception as e:
            # No X server / uinput access: i3 tick commands still work
            logger.warning(f"Global hotkeys unavailable: {e}")
            self._listener = None
            return False
        logger.info(f"Registered hotkeys: {', '.join(self.bindings())}")
        return True

    def stop(self) -> None:
        if self._listener is None:
            return
        self._listener.stop()
        self._listener = None
