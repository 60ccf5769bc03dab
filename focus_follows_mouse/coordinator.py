"""Focus-follows-mouse coordinator.

Owns the coordinator state and wires the components together:

    pointer source ─┐
    poll timer ─────┼─> dispatcher ─> detector ─> (debounce) ─> resolver ─> backend
    output changes ─┘                                              │
    window focus ──────> dispatcher ─> focus memory <──────────────┘

Lifecycle: stopped -> running <-> disabled -> stopped. Reload tears everything
down (timers cancelled before anything is released) and initializes again.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .backends.base import Backend, EventSource
from .config import CoordinatorConfig
from .detector import ScreenChangeDetector
from .dispatcher import EventDispatcher
from .input_watcher import InputWatcher
from .models import (
    ButtonPressed,
    ButtonReleased,
    ControlCommand,
    ControlRequested,
    DragStarted,
    FocusRejected,
    PointerMoved,
    ScreenConfigChanged,
    TimerFired,
    TimerPurpose,
    WindowFocusGained,
)
from .notifier import Notifier
from .poll import PollFallback
from .resolver import FocusResolver
from .scheduler import Scheduler
from .state import CoordinatorState

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    DISABLED = "disabled"


class FocusCoordinator:
    """Main coordinator class."""

    def __init__(
        self,
        backend: Backend,
        scheduler: Scheduler,
        config: Optional[CoordinatorConfig] = None,
        notifier: Optional[Notifier] = None,
        config_loader: Optional[Callable[[CoordinatorConfig], CoordinatorConfig]] = None,
    ) -> None:
        """Initialize coordinator (nothing is started until initialize()).

        Args:
            backend: Window-system backend
            scheduler: Timer primitive bound to the event loop
            config: Coordinator configuration (defaults if None)
            notifier: Alert sink (None = no alerts)
            config_loader: Called on reload with the current config, returns the new one
        """
        self.backend = backend
        self.scheduler = scheduler
        self.config = config or CoordinatorConfig()
        self.notifier = notifier
        self.config_loader = config_loader

        self.dispatcher = EventDispatcher()
        self.dispatcher.register(ControlRequested, self._on_control)

        self.lifecycle = LifecycleState.STOPPED
        self.state = CoordinatorState(self.config.max_screen_memory)
        self.detector: Optional[ScreenChangeDetector] = None
        self.resolver: Optional[FocusResolver] = None
        self.input_watcher: Optional[InputWatcher] = None
        self.poll: Optional[PollFallback] = None
        self.pointer_source: Optional[EventSource] = None
        self.screen_source: Optional[EventSource] = None
        self.focus_source: Optional[EventSource] = None
        self._handlers: List[tuple] = []

    def _log(self, message: str) -> None:
        logger.log(logging.INFO if self.config.debug_console else logging.DEBUG, message)

    def _alert(self, message: str, seconds: float = 1.0, force: bool = True) -> None:
        if self.notifier:
            self.notifier.show(message, seconds, force=force)

    @property
    def enabled(self) -> bool:
        return self.state.enabled

    def dispatch(self, event: Any) -> None:
        """Entry point for every event (must be called on the loop thread)."""
        self.dispatcher.dispatch(event)

    def request(self, command: ControlCommand, source: str = "hotkey") -> None:
        """Queue a control command through the dispatcher."""
        self.dispatch(ControlRequested(command, source))

    # Lifecycle

    def initialize(self) -> None:
        """Build and start all watchers."""
        if self.lifecycle != LifecycleState.STOPPED:
            logger.warning("Coordinator already initialized")
            return

        if self.notifier:
            self.notifier.show_alerts = self.config.show_alerts
            self.notifier.default_seconds = self.config.alert_seconds

        self.state = CoordinatorState(self.config.max_screen_memory)
        self.state.last_display = self.backend.current_display()

        self.detector = ScreenChangeDetector(self.state, self.config, self.scheduler, self.dispatch)
        self.resolver = FocusResolver(self.backend, self.state, self.config, self.notifier)
        self.input_watcher = InputWatcher(
            self.backend, self.state, self.config, self.scheduler, self.detector, self.dispatch
        )
        self.poll = PollFallback(
            self.backend, self.state, self.config, self.scheduler, self.detector, self.dispatch
        )

        self._register(PointerMoved, self.input_watcher.on_pointer_moved)
        self._register(DragStarted, self.input_watcher.on_drag)
        self._register(ButtonPressed, self.input_watcher.on_button_pressed)
        self._register(ButtonReleased, self.input_watcher.on_button_released)
        self._register(TimerFired, self._on_timer)
        self._register(ScreenConfigChanged, self._on_screen_config_changed)
        self._register(WindowFocusGained, self._on_window_focus)
        self._register(FocusRejected, self._on_focus_rejected)
        self.backend.on_focus_rejected = lambda window_id: self.dispatch(FocusRejected(window_id))

        self.focus_source = self.backend.focus_source(self.dispatch)
        self.pointer_source = self.backend.pointer_source(self.dispatch)
        self.screen_source = self.backend.screen_source(self.dispatch)

        self.focus_source.start()
        self._start_watchers()

        self.state.enabled = True
        self.lifecycle = LifecycleState.RUNNING

        self._alert("FFM (monitor→focus) loaded")
        last = self.state.last_display.id if self.state.last_display else "nil"
        logger.info(f"FFM initialized; last output = {last}")

    def _register(self, event_type: type, handler: Callable[[Any], None]) -> None:
        self.dispatcher.register(event_type, handler)
        self._handlers.append((event_type, handler))

    def _start_watchers(self) -> None:
        for source in (self.pointer_source, self.poll, self.screen_source):
            if source is None:
                continue
            try:
                source.start()
            except Exception as e:
                # Missing capability (e.g. no pointer listener): poll keeps working
                logger.warning(f"Failed to start {source.name} watcher: {e}")

    def _stop_watchers(self) -> None:
        for source in (self.pointer_source, self.poll, self.screen_source):
            if source is None:
                continue
            try:
                source.stop()
            except Exception as e:
                logger.error(f"Error stopping {source.name} watcher: {e}")

    def set_enabled(self, enabled: bool) -> None:
        """Enable or disable focus-follows-mouse (focus memory is kept)."""
        if self.lifecycle == LifecycleState.STOPPED:
            logger.warning("Cannot change enabled state: coordinator not initialized")
            return

        self.state.set_enabled(enabled)
        if enabled:
            self._start_watchers()
            self.lifecycle = LifecycleState.RUNNING
            self._alert("FFM → ON")
            logger.info("FFM enabled")
        else:
            self._stop_watchers()
            self.lifecycle = LifecycleState.DISABLED
            self._alert("FFM → OFF")
            logger.info("FFM disabled")

    def toggle(self) -> bool:
        self.set_enabled(not self.state.enabled)
        return self.state.enabled

    def teardown(self) -> None:
        """Stop everything, unsubscribe, cancel timers and clear memory."""
        self.state.cancel_timers()
        self._stop_watchers()
        if self.focus_source:
            try:
                self.focus_source.stop()
            except Exception as e:
                logger.error(f"Error stopping focus subscription: {e}")

        for event_type, handler in self._handlers:
            self.dispatcher.unregister(event_type, handler)
        self._handlers.clear()
        self.backend.on_focus_rejected = None

        self.state.reset()
        self.pointer_source = None
        self.screen_source = None
        self.focus_source = None
        self.poll = None
        self.lifecycle = LifecycleState.STOPPED
        self._log("FFM cleanup complete")

    def reload(self) -> None:
        """Tear down and initialize again, re-reading configuration."""
        logger.info("Reloading FFM")
        self.teardown()
        if self.config_loader:
            self.config = self.config_loader(self.config)
        self.initialize()

    # Introspection / control

    def debug_report(self) -> Dict[str, Any]:
        """Read-only snapshot of coordinator state."""
        current = self.backend.current_display()
        report = self.state.snapshot()
        report.update({
            "lifecycle": self.lifecycle.value,
            "current_display": current.id if current else None,
            "activations": self.resolver.activations if self.resolver else 0,
            "changes_detected": self.detector.changes_detected if self.detector else 0,
            "handler_errors": self.dispatcher.errors,
        })
        return report

    def debug_dump(self) -> str:
        report = self.debug_report()
        message = (
            "FFM State:\n"
            f"Enabled: {str(report['enabled']).lower()}\n"
            f"Current Output: {report['current_display'] or 'nil'}\n"
            f"Last Output: {report['last_display'] or 'nil'}\n"
            f"Memory: {report['memory_entries']} outputs\n"
            f"Dragging: {str(report['drag_active']).lower()}"
        )
        self._alert(message, seconds=3.0)
        logger.info(message.replace("\n", " | "))
        return message

    def clear_memory(self) -> None:
        self.state.focus_memory.clear()
        self._alert("Focus memory cleared")
        self._log("Focus memory cleared")

    # Handlers

    def _on_control(self, event: ControlRequested) -> None:
        command = event.command
        logger.info(f"Control command received ({event.source}): {command.value}")

        if command == ControlCommand.RELOAD:
            self.reload()
            return

        if self.lifecycle == LifecycleState.STOPPED:
            logger.warning(f"Ignoring {command.value}: coordinator not initialized")
            return

        if command == ControlCommand.TOGGLE:
            self.toggle()
        elif command == ControlCommand.ENABLE:
            self.set_enabled(True)
        elif command == ControlCommand.DISABLE:
            self.set_enabled(False)
        elif command == ControlCommand.DEBUG:
            self.debug_dump()
        elif command == ControlCommand.CLEAR:
            self.clear_memory()

    def _on_timer(self, event: TimerFired) -> None:
        if event.purpose == TimerPurpose.FOCUS:
            request = self.state.take_pending_focus(event.token)
            if request is None or not self.state.enabled:
                return
            self.resolver.activate(request.display, request.prioritize_cursor)
        elif event.purpose == TimerPurpose.DRAG_END:
            self.input_watcher.on_drag_end_timer(event.token)
        elif event.purpose == TimerPurpose.POLL:
            if self.poll:
                self.poll.poll()

    def _on_screen_config_changed(self, event: ScreenConfigChanged) -> None:
        self._log(f"Output configuration changed ({event.change})")
        if not self.state.enabled:
            return
        self.state.last_display = self.backend.current_display()
        if self.state.last_display:
            self.detector.schedule_focus(
                self.state.last_display, prioritize_cursor=False, delay=self.config.debounce_seconds
            )

    def _on_window_focus(self, event: WindowFocusGained) -> None:
        display_id = event.display_id
        if display_id is None:
            display = self.backend.display_for_window(event.window_id)
            display_id = display.id if display else None
        if display_id is None:
            return
        self.state.remember(display_id, event.window_id)
        self._log(f"Tracked focus: window {event.window_id} on output {display_id}")

    def _on_focus_rejected(self, event: FocusRejected) -> None:
        # The resolver remembered the window before the window manager answered
        for display_id in self.state.forget_window(event.window_id):
            self._log(f"Focus refused for window {event.window_id}, forgetting it on output {display_id}")
