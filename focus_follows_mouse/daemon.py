"""Main daemon entry point with systemd integration.

This module provides the main event loop and systemd integration
(sd_notify, watchdog, journald logging).
"""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

try:
    from systemd import journal, daemon as sd_daemon
    SYSTEMD_AVAILABLE = True
except ImportError:
    SYSTEMD_AVAILABLE = False

from .backends import Backend, EventSource, create_backend
from .config import ConfigWatcher, CoordinatorConfig, default_config_path, load_config, reload_config
from .coordinator import FocusCoordinator
from .errors import FfmError
from .hotkeys import HotkeyService
from .models import ControlCommand
from .notifier import Notifier
from .scheduler import AsyncioScheduler

logger = logging.getLogger(__name__)


class DaemonHealthMonitor:
    """Manages systemd health notifications and watchdog pings."""

    def __init__(self) -> None:
        self.watchdog_interval: Optional[float] = None
        self._setup_watchdog()

    def _setup_watchdog(self) -> None:
        """Detect watchdog interval from systemd environment."""
        if not SYSTEMD_AVAILABLE:
            return

        watchdog_usec = os.environ.get("WATCHDOG_USEC")
        if watchdog_usec:
            # Ping at 1/3 of the timeout
            self.watchdog_interval = int(watchdog_usec) / 3_000_000
            logger.info(f"Systemd watchdog enabled: {self.watchdog_interval:.1f}s interval")
        else:
            logger.debug("Systemd watchdog not configured")

    def _notify(self, state: str) -> None:
        if not SYSTEMD_AVAILABLE:
            return
        try:
            sd_daemon.notify(state)
        except Exception as e:
            logger.debug(f"sd_notify({state}) failed: {e}")

    def notify_ready(self) -> None:
        """Send READY=1 signal to systemd."""
        if SYSTEMD_AVAILABLE:
            self._notify("READY=1")
            logger.info("Sent READY=1 to systemd")
        else:
            logger.debug("Systemd not available, skipping READY notification")

    def notify_stopping(self) -> None:
        """Send STOPPING=1 signal to systemd."""
        if SYSTEMD_AVAILABLE:
            self._notify("STOPPING=1")
            logger.info("Sent STOPPING=1 to systemd")

    async def watchdog_loop(self) -> None:
        """Background task that sends watchdog pings."""
        if not self.watchdog_interval:
            return

        while True:
            await asyncio.sleep(self.watchdog_interval)
            self._notify("WATCHDOG=1")


class FfmDaemon:
    """Main daemon class."""

    def __init__(
        self,
        config_file: Optional[Path] = None,
        hotkeys_enabled: bool = True,
        backend: Optional[Backend] = None,
        backend_name: str = "sway",
    ) -> None:
        self.config_file = config_file or default_config_path()
        self.hotkeys_enabled = hotkeys_enabled
        self.backend = backend
        self.backend_name = backend_name

        self.config: Optional[CoordinatorConfig] = None
        self.coordinator: Optional[FocusCoordinator] = None
        self.notifier: Optional[Notifier] = None
        self.hotkeys: Optional[HotkeyService] = None
        self.command_source: Optional[EventSource] = None
        self.config_watcher: Optional[ConfigWatcher] = None
        self.health_monitor = DaemonHealthMonitor()
        self.shutdown_event = asyncio.Event()
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    async def initialize(self) -> None:
        """Load config, connect to the window manager and start the coordinator.

        Raises:
            ConfigLoadError: If the config file is invalid
            BackendUnavailableError: If i3/Sway cannot be reached
        """
        self.loop = asyncio.get_running_loop()
        self.config = load_config(self.config_file)
        logger.info(f"Using config file: {self.config_file}")

        if self.backend is None:
            self.backend = create_backend(self.backend_name)
        await self.backend.connect()

        self.notifier = Notifier(self.config.show_alerts, self.config.alert_seconds)
        self.coordinator = FocusCoordinator(
            self.backend,
            AsyncioScheduler(self.loop),
            self.config,
            self.notifier,
            config_loader=self._reload_config,
        )
        self.coordinator.initialize()

        self.command_source = self.backend.command_source(self.coordinator.dispatch)
        if self.command_source:
            self.command_source.start()

        self._start_hotkeys()

        self.config_watcher = ConfigWatcher(self.config_file, self._on_config_file_changed)
        self.config_watcher.set_event_loop(self.loop)
        try:
            self.config_watcher.start()
        except Exception as e:
            logger.warning(f"Config file watcher unavailable: {e}")
            self.config_watcher = None

    def _start_hotkeys(self) -> None:
        if not self.hotkeys_enabled:
            logger.info("Global hotkeys disabled (--no-hotkeys)")
            return
        self.hotkeys = HotkeyService(self.config.hotkeys, self._on_hotkey, self.loop)
        self.hotkeys.start()

    def _on_hotkey(self, command: ControlCommand) -> None:
        self.coordinator.request(command, source="hotkey")

    def _on_config_file_changed(self) -> None:
        if self.shutdown_event.is_set() or self.coordinator is None:
            return
        logger.info("Config file changed, reloading")
        self.coordinator.request(ControlCommand.RELOAD, source="config")

    def _reload_config(self, previous: CoordinatorConfig) -> CoordinatorConfig:
        """Re-read the config file during a coordinator reload."""
        config = reload_config(self.config_file, previous)
        self.config = config
        if config.hotkeys != previous.hotkeys and self.hotkeys:
            self.hotkeys.stop()
            self.hotkeys = None
            self._start_hotkeys()
        return config

    async def run(self) -> None:
        """Main event loop: wait until shutdown is requested."""
        logger.info("Starting daemon event loop...")
        self.health_monitor.notify_ready()

        watchdog_task = asyncio.create_task(self.health_monitor.watchdog_loop())
        try:
            await self.shutdown_event.wait()
        finally:
            watchdog_task.cancel()
            try:
                await watchdog_task
            except asyncio.CancelledError:
                pass

    async def shutdown(self) -> None:
        """Graceful shutdown. Each step is isolated so one failure does not block the rest."""
        logger.info("Shutting down daemon...")
        self.shutdown_event.set()
        self.health_monitor.notify_stopping()

        if self.config_watcher:
            try:
                self.config_watcher.stop()
            except Exception as e:
                logger.error(f"Error stopping config watcher: {e}")

        if self.hotkeys:
            try:
                self.hotkeys.stop()
            except Exception as e:
                logger.error(f"Error stopping hotkeys: {e}")

        if self.command_source:
            try:
                self.command_source.stop()
            except Exception as e:
                logger.error(f"Error stopping command source: {e}")

        if self.coordinator:
            self.coordinator.teardown()

        if self.notifier:
            try:
                await asyncio.wait_for(self.notifier.drain(), timeout=2.0)
            except asyncio.TimeoutError:
                logger.warning("Pending alerts timed out (continuing)")

        if self.backend:
            try:
                await asyncio.wait_for(self.backend.close(), timeout=5.0)
                logger.info("Window manager connection closed")
            except asyncio.TimeoutError:
                logger.warning("Backend close timed out after 5s (continuing)")
            except Exception as e:
                logger.error(f"Error closing backend: {e}")

        logger.info("Daemon shutdown complete")

    def setup_signal_handlers(self) -> None:
        """SIGTERM/SIGINT shut down, SIGUSR1 dumps state, SIGHUP reloads."""
        loop = self.loop or asyncio.get_running_loop()

        def shutdown_handler(signum, frame):
            logger.info(f"Received signal {signum}, initiating shutdown...")
            loop.call_soon_threadsafe(self.shutdown_event.set)

        def command_handler(command: ControlCommand):
            def handler(signum, frame):
                logger.info(f"Received signal {signum}, requesting {command.value}")
                if self.coordinator:
                    loop.call_soon_threadsafe(self.coordinator.request, command, "signal")

            return handler

        signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)
        signal.signal(signal.SIGUSR1, command_handler(ControlCommand.DEBUG))
        signal.signal(signal.SIGHUP, command_handler(ControlCommand.RELOAD))


def setup_logging(level: Optional[str] = None) -> None:
    """Setup logging to systemd journal or stderr."""
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if SYSTEMD_AVAILABLE and os.environ.get("JOURNAL_STREAM"):
        handler = journal.JournalHandler(SYSLOG_IDENTIFIER="ffm")
    else:
        handler = logging.StreamHandler(sys.stderr)

    formatter = logging.Formatter("%(levelname)s [%(name)s] %(message)s")
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logger.info(f"Logging configured: level={log_level}")


async def main_async(
    config_file: Optional[Path] = None,
    hotkeys_enabled: bool = True,
) -> int:
    """Async main function.

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    daemon = FfmDaemon(config_file, hotkeys_enabled)

    try:
        daemon.loop = asyncio.get_running_loop()
        daemon.setup_signal_handlers()
        await daemon.initialize()
        await daemon.run()
        await daemon.shutdown()
        return 0

    except FfmError as e:
        logger.error(e.message)
        if e.suggestion:
            logger.error(f"Suggestion: {e.suggestion}")
        await daemon.shutdown()
        return 1

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        await daemon.shutdown()
        return 1


def run_daemon(
    config_file: Optional[Path] = None,
    log_level: Optional[str] = None,
    hotkeys_enabled: bool = True,
) -> int:
    """Blocking entry point used by ``ffm run``."""
    setup_logging(log_level)

    logger.info("Focus-follows-mouse daemon starting...")
    logger.info(f"PID: {os.getpid()}")

    try:
        return asyncio.run(main_async(config_file, hotkeys_enabled))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
