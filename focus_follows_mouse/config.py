"""Configuration loader for the focus-follows-mouse daemon.

Handles loading and validating ~/.config/ffm/config.toml and watching it for
changes so the coordinator can reload without restarting the daemon.
"""

import asyncio
import logging
import os
import tomllib
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import ConfigLoadError

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_APPS = [
    "System Preferences",
    "System Settings",
    "Alfred",
    "Raycast",
    "Spotlight",
    "Notification Center",
    "Control Center",
    # Launchers and overlays commonly used under i3/Sway
    "rofi",
    "wofi",
    "walker",
    "ulauncher",
]


def default_config_path() -> Path:
    """Resolve the config file path (FFM_CONFIG, then XDG_CONFIG_HOME, then ~/.config)."""
    override = os.environ.get("FFM_CONFIG")
    if override:
        return Path(override).expanduser()
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / "ffm" / "config.toml"


class HotkeyConfig(BaseModel):
    """Global hotkey bindings in pynput GlobalHotKeys syntax."""

    enabled: bool = Field(True, description="Register global hotkeys via pynput")
    reload: str = "<ctrl>+<alt>+<cmd>+r"
    toggle: str = "<ctrl>+<alt>+<cmd>+t"
    debug: str = "<ctrl>+<alt>+<cmd>+d"
    clear: str = "<ctrl>+<alt>+<cmd>+c"

    @field_validator("reload", "toggle", "debug", "clear")
    @classmethod
    def validate_combo(cls, v: str) -> str:
        """Validate combo is non-empty and has no empty segments."""
        v = v.strip().lower()
        if not v or any(not part for part in v.split("+")):
            raise ValueError(f"Invalid hotkey combo: {v!r}")
        return v


class CoordinatorConfig(BaseModel):
    """Tunables for the focus-follows-mouse coordinator."""

    debounce_seconds: float = Field(0.06, ge=0, description="Quiet period before focusing a new output")
    poll_interval: float = Field(2.0, gt=0, description="Poll fallback interval")
    debug_console: bool = Field(False, description="Log every decision at INFO level")
    show_alerts: bool = Field(False, description="Show desktop notifications for focus decisions")
    alert_seconds: float = Field(0.5, gt=0, description="Default alert duration")
    max_screen_memory: int = Field(5, ge=1, description="Focus memory capacity (outputs)")
    drag_debounce_seconds: float = Field(0.3, ge=0, description="Settle delay after a drag ends")
    drag_end_delay: float = Field(0.1, ge=0, description="Delay after button-up before drag-end handling")
    click_cooldown_seconds: float = Field(0.4, ge=0, description="Ignore output changes this long after a click")
    exclude_apps: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_APPS))
    hotkeys: HotkeyConfig = Field(default_factory=HotkeyConfig)

    @field_validator("exclude_apps")
    @classmethod
    def validate_exclude_apps(cls, v: List[str]) -> List[str]:
        """Strip whitespace and drop empty entries."""
        return [name.strip() for name in v if name and name.strip()]

    def is_excluded(self, app_name: Optional[str]) -> bool:
        """Check if an application is in the exclusion list (exact match)."""
        if not app_name:
            return False
        return app_name in self.exclude_apps


def load_config(config_file: Optional[Path] = None) -> CoordinatorConfig:
    """Load coordinator configuration from a TOML file.

    Args:
        config_file: Path to config.toml (defaults to default_config_path())

    Returns:
        CoordinatorConfig (defaults when the file does not exist)

    Raises:
        ConfigLoadError: If the file cannot be parsed or fails validation
    """
    path = config_file or default_config_path()

    if not path.exists():
        logger.info(f"Config file not found, using defaults: {path}")
        return CoordinatorConfig()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigLoadError(str(path), f"invalid TOML: {e}") from e
    except OSError as e:
        raise ConfigLoadError(str(path), str(e)) from e

    # Accept both a flat file and one nested under [ffm]
    if "ffm" in data and isinstance(data["ffm"], dict):
        data = data["ffm"]

    try:
        config = CoordinatorConfig(**data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigLoadError(str(path), errors) from e

    logger.debug(f"Loaded config from {path}")
    return config


def reload_config(config_file: Path, previous: CoordinatorConfig) -> CoordinatorConfig:
    """Reload configuration, keeping the previous one if the new file is invalid."""
    try:
        config = load_config(config_file)
        logger.info(f"Reloaded configuration from {config_file}")
        return config
    except ConfigLoadError as e:
        logger.error(f"{e.message} (keeping previous configuration)")
        return previous


class DebouncedReloadHandler(FileSystemEventHandler):
    """File system event handler with debounced reload callback.

    Watchdog delivers events on its observer thread; the debounce timer and
    the callback run on the asyncio loop.
    """

    def __init__(self, callback: Callable[[], None], debounce_ms: int = 250, target_filename: Optional[str] = None):
        """Initialize debounced reload handler.

        Args:
            callback: Function to call after debounce period
            debounce_ms: Debounce timeout in milliseconds
            target_filename: Only trigger for this filename (None = any file)
        """
        super().__init__()
        self.callback = callback
        self.debounce_seconds = debounce_ms / 1000
        self.target_filename = target_filename
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._debounce_handle: Optional[asyncio.TimerHandle] = None

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop used for debouncing."""
        self._loop = loop

    def _should_trigger(self, event) -> bool:
        """Check if event should trigger callback based on target filename filter."""
        if event.is_directory:
            return False
        if self.target_filename:
            event_path = getattr(event, "dest_path", None) or event.src_path
            return Path(event_path).name == self.target_filename
        return True

    def _schedule_callback(self) -> None:
        """Restart the debounce timer (runs on the loop thread)."""
        if self._debounce_handle:
            self._debounce_handle.cancel()
        self._debounce_handle = self._loop.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._debounce_handle = None
        self.callback()

    def _on_event(self, event) -> None:
        if not self._should_trigger(event):
            return
        if self._loop is None:
            logger.warning("No event loop set for debounced handler, calling immediately")
            self.callback()
            return
        self._loop.call_soon_threadsafe(self._schedule_callback)

    def on_modified(self, event) -> None:
        self._on_event(event)

    def on_moved(self, event) -> None:
        """Atomic saves use temp file + rename."""
        self._on_event(event)

    def on_created(self, event) -> None:
        self._on_event(event)

    def cancel(self) -> None:
        """Cancel a pending debounced callback."""
        if self._debounce_handle:
            self._debounce_handle.cancel()
            self._debounce_handle = None


class ConfigWatcher:
    """File system watcher for config.toml with auto-reload.

    Watches the parent directory since some editors use atomic save
    (create temp file + rename) which doesn't trigger inotify on the file itself.
    """

    def __init__(self,
                 config_file: Path,
                 reload_callback: Callable[[], None],
                 debounce_ms: int = 250):
        self.config_file = config_file
        self.reload_callback = reload_callback
        self.observer = Observer()
        self.handler = DebouncedReloadHandler(reload_callback, debounce_ms, target_filename=config_file.name)
        self._started = False

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self.handler.set_event_loop(loop)

    def start(self) -> None:
        """Start watching the config file for modifications."""
        if self._started:
            logger.warning("Config watcher already started")
            return

        watch_dir = self.config_file.parent
        watch_dir.mkdir(parents=True, exist_ok=True)

        self.observer.schedule(self.handler, str(watch_dir), recursive=False)
        self.observer.start()
        self._started = True

        logger.info(f"Started watching {self.config_file} for modifications")

    def stop(self) -> None:
        """Stop watching for file modifications."""
        if not self._started:
            return

        self.handler.cancel()
        self.observer.stop()
        self.observer.join(timeout=5.0)
        self._started = False

        logger.info(f"Stopped watching {self.config_file}")
