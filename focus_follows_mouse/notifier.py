"""Desktop notification integration.

Transient on-screen alerts are delivered with notify-send. Sending runs as a
background task on the event loop so a slow notification daemon never delays
event handling.
"""

import asyncio
import logging
from typing import Optional, Set

logger = logging.getLogger(__name__)


class Notifier:
    """Show transient alerts for coordinator decisions.

    Decision alerts (focus taken, output change) are only shown when
    ``show_alerts`` is enabled. Control alerts (toggle, debug dump, memory
    cleared) are always shown since the user asked for them.

    Example:
        >>> notifier = Notifier(show_alerts=True)
        >>> notifier.show("firefox")
    """

    def __init__(
        self,
        show_alerts: bool = False,
        default_seconds: float = 0.5,
        app_name: str = "Focus Follows Mouse",
        command: str = "notify-send",
    ):
        """Initialize notifier.

        Args:
            show_alerts: Whether decision alerts are shown
            default_seconds: Alert duration when none is given
            app_name: Application name passed to notify-send
            command: Notification command
        """
        self.show_alerts = show_alerts
        self.default_seconds = default_seconds
        self.app_name = app_name
        self.command = command
        self._tasks: Set[asyncio.Task] = set()
        self._available = True

    def show(self, message: str, seconds: Optional[float] = None, force: bool = False) -> bool:
        """Show an alert.

        Args:
            message: Alert text
            seconds: Duration in seconds (default_seconds if None)
            force: Show even when decision alerts are disabled

        Returns:
            True if an alert was scheduled
        """
        if not (self.show_alerts or force) or not self._available:
            return False

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, alert not shown: {message}")
            return False

        duration_ms = int((seconds if seconds is not None else self.default_seconds) * 1000)
        task = loop.create_task(self._send(message, duration_ms))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _send(self, message: str, duration_ms: int) -> None:
        cmd = [
            self.command,
            "--app-name",
            self.app_name,
            "--expire-time",
            str(duration_ms),
            "--transient",
            message,
        ]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=2.0)
            if process.returncode != 0:
                logger.debug(f"{self.command} exited {process.returncode}: {stderr.decode().strip()}")
        except FileNotFoundError:
            logger.warning(f"{self.command} not found, disabling alerts")
            self._available = False
        except asyncio.TimeoutError:
            logger.debug(f"{self.command} timed out")

    async def drain(self) -> None:
        """Wait for in-flight alerts (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
