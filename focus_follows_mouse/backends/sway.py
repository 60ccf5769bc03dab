"""i3/Sway backend.

Window and output state comes from i3 IPC (i3ipc.aio). The coordinator reads
it synchronously from a snapshot that is refreshed whenever i3/Sway reports a
window, workspace or output change, much like a live window filter.

Pointer position and pointer events come from pynput, whose listener runs
on its own thread; every event is marshalled onto the asyncio loop before it
reaches the coordinator. pynput reads the pointer through X11, so on Sway it
only sees the pointer over XWayland windows; connect() warns when it detects a
Wayland session.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple

from i3ipc import Event, aio

from ..errors import BackendError, BackendUnavailableError
from ..models import (
    ControlCommand,
    ControlRequested,
    Display,
    Point,
    PointerEventKind,
    Rect,
    ScreenConfigChanged,
    WindowFocusGained,
    WindowInfo,
    pointer_event_for,
)
from .base import Backend, Emit, EventSource

logger = logging.getLogger(__name__)

SCRATCHPAD_OUTPUT = "__i3"
TICK_PREFIX = "ffm:"

# X11 _NET_WM_WINDOW_TYPE values that count as ordinary application windows.
# Native Wayland windows report no type.
STANDARD_WINDOW_TYPES = {None, "normal", "unknown"}

WAYLAND_POINTER_WARNING = (
    "Wayland session detected: pointer tracking goes through XWayland and only "
    "sees the pointer over X11 windows; output crossings over native Wayland "
    "windows are not detected until the pointer passes over an X11 window"
)


def wayland_session() -> bool:
    """True when running under a Wayland compositor.

    pynput's Linux backend talks Xlib, so under Wayland it receives pointer
    motion only while the pointer is over XWayland surfaces.
    """
    return bool(os.environ.get("WAYLAND_DISPLAY") or os.environ.get("SWAYSOCK"))



def get_window_class(container) -> str:
    """Get window class in a Sway/i3-compatible way.

    Sway: app_id for native Wayland windows, window class for XWayland.
    i3: window class from window_properties.
    """
    app_id = getattr(container, "app_id", None)
    if app_id:
        return app_id

    window_class = getattr(container, "window_class", None)
    if window_class:
        return window_class

    properties = getattr(container, "window_properties", None)
    if isinstance(properties, dict):
        return properties.get("class", "unknown")

    return "unknown"


def _rect(con_rect) -> Rect:
    return Rect(
        x=con_rect.x,
        y=con_rect.y,
        width=max(con_rect.width, 0),
        height=max(con_rect.height, 0),
    )


def _ordered_children(con) -> List[Any]:
    """Children of a container, topmost first.

    Floating containers are drawn above tiling ones; within each group the
    container's focus stack (most recently focused first) gives the order.
    """
    focus = list(getattr(con, "focus", None) or [])
    rank = {con_id: index for index, con_id in enumerate(focus)}

    def by_focus(child) -> int:
        return rank.get(child.id, len(rank))

    floating = sorted(getattr(con, "floating_nodes", None) or [], key=by_focus)
    tiling = sorted(getattr(con, "nodes", None) or [], key=by_focus)
    return floating + tiling


def _leaves(con) -> Iterator[Any]:
    """Window leaves under a container, topmost first."""
    for child in _ordered_children(con):
        has_children = bool(getattr(child, "nodes", None)) or bool(getattr(child, "floating_nodes", None))
        if has_children:
            yield from _leaves(child)
        elif child.type in ("con", "floating_con"):
            yield child


def parse_outputs(outputs) -> List[Display]:
    """Convert GET_OUTPUTS replies to displays (active outputs only)."""
    displays = []
    for output in outputs:
        if not getattr(output, "active", False):
            continue
        try:
            displays.append(Display(id=output.name, rect=_rect(output.rect)))
        except Exception as e:
            logger.warning(f"Skipping output {getattr(output, 'name', '?')}: {e}")
    return displays


def window_from_con(con, output_name: Optional[str], workspace_visible: bool) -> WindowInfo:
    """Build a window snapshot from a leaf container."""
    in_scratchpad = output_name == SCRATCHPAD_OUTPUT
    visible = getattr(con, "visible", None)
    if visible is None:
        visible = workspace_visible and not in_scratchpad

    floating = con.type == "floating_con" or getattr(con, "floating", None) in ("user_on", "auto_on")

    return WindowInfo(
        id=con.id,
        title=con.name or "",
        app_name=get_window_class(con),
        frame=_rect(con.rect),
        visible=bool(visible),
        minimized=in_scratchpad,
        standard=getattr(con, "window_type", None) in STANDARD_WINDOW_TYPES,
        fullscreen=(getattr(con, "fullscreen_mode", 0) or 0) != 0,
        floating=floating,
        display_id=None if in_scratchpad else output_name,
    )


def parse_tree(tree, visible_workspaces: Set[str]) -> Tuple[List[WindowInfo], Optional[int]]:
    """Extract windows (topmost first) and the focused window id from GET_TREE.

    Args:
        tree: Root container
        visible_workspaces: Names of workspaces currently shown on an output

    Returns:
        (windows, focused window id or None)
    """
    windows: List[WindowInfo] = []
    focused_id: Optional[int] = None

    for output in _ordered_children(tree):
        if output.type != "output":
            continue
        for workspace in _workspaces(output):
            workspace_visible = workspace.name in visible_workspaces
            for leaf in _leaves(workspace):
                try:
                    window = window_from_con(leaf, output.name, workspace_visible)
                except Exception as e:
                    logger.debug(f"Skipping container {getattr(leaf, 'id', '?')}: {e}")
                    continue
                windows.append(window)
                if getattr(leaf, "focused", False):
                    focused_id = window.id

    return windows, focused_id


def _workspaces(con) -> Iterator[Any]:
    for child in _ordered_children(con):
        if child.type == "workspace":
            yield child
        elif child.type != "dockarea":
            yield from _workspaces(child)


def parse_tick_payload(payload: Optional[str]) -> Optional[ControlCommand]:
    """Parse an ``ffm:<command>`` tick payload. Returns None for other payloads."""
    if not payload or not payload.startswith(TICK_PREFIX):
        return None
    try:
        return ControlCommand.from_str(payload[len(TICK_PREFIX):])
    except ValueError as e:
        logger.warning(f"Ignoring tick: {e}")
        return None


@dataclass
class Snapshot:
    displays: List[Display] = field(default_factory=list)
    windows: List[WindowInfo] = field(default_factory=list)
    focused_id: Optional[int] = None
    by_id: Dict[int, WindowInfo] = field(default_factory=dict)

    @classmethod
    def build(cls, displays: List[Display], windows: List[WindowInfo], focused_id: Optional[int]) -> "Snapshot":
        return cls(displays, windows, focused_id, {w.id: w for w in windows})


class PointerClassifier:
    """Turn pynput move/click callbacks into pointer event kinds.

    A move while a button is held is a drag of that button (left wins when
    both are held). Only left/right buttons are tracked.
    """

    def __init__(self) -> None:
        self.pressed: Set[str] = set()

    def on_move(self) -> PointerEventKind:
        if "left" in self.pressed:
            return PointerEventKind.LEFT_DRAG
        if "right" in self.pressed:
            return PointerEventKind.RIGHT_DRAG
        return PointerEventKind.MOVE

    def on_click(self, button_name: str, pressed: bool) -> Optional[PointerEventKind]:
        if button_name not in ("left", "right"):
            return None
        if pressed:
            self.pressed.add(button_name)
            return PointerEventKind.LEFT_DOWN if button_name == "left" else PointerEventKind.RIGHT_DOWN
        self.pressed.discard(button_name)
        return PointerEventKind.LEFT_UP if button_name == "left" else PointerEventKind.RIGHT_UP


class PynputPointerSource(EventSource):
    """Pointer events from a pynput mouse listener."""

    name = "pointer"

    def __init__(self, emit: Emit, backend: "SwayBackend"):
        super().__init__(emit)
        self.backend = backend
        self.classifier = PointerClassifier()
        self._listener = None

    def _post(self, kind: PointerEventKind, x: float, y: float) -> None:
        point = Point(x=x, y=y)
        self.backend.last_pointer = point
        self.backend.loop.call_soon_threadsafe(self.emit, pointer_event_for(kind, point))

    def _on_move(self, x, y) -> None:
        self._post(self.classifier.on_move(), x, y)

    def _on_click(self, x, y, button, pressed) -> None:
        kind = self.classifier.on_click(getattr(button, "name", str(button)), pressed)
        if kind is not None:
            self._post(kind, x, y)

    def _start(self) -> None:
        # pynput picks its platform backend at import time and fails without a display
        from pynput import mouse

        self.classifier = PointerClassifier()
        self._listener = mouse.Listener(on_move=self._on_move, on_click=self._on_click)
        self._listener.start()

    def _stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None


class I3EventSource(EventSource):
    """Base for sources fed by i3 IPC event subscriptions."""

    event_type: Event = Event.WINDOW

    def __init__(self, emit: Emit, backend: "SwayBackend"):
        super().__init__(emit)
        self.backend = backend

    def _start(self) -> None:
        self.backend.conn.on(self.event_type, self._handle)

    def _stop(self) -> None:
        self.backend.conn.off(self._handle)

    async def _handle(self, conn, event) -> None:
        if not self.running:
            return
        try:
            await self.handle(event)
        except Exception as e:
            logger.error(f"Error handling {self.name} event: {e}", exc_info=True)

    async def handle(self, event) -> None:
        raise NotImplementedError


class OutputChangeSource(I3EventSource):
    """ScreenConfigChanged on output events (connect, disconnect, mode, DPMS)."""

    name = "screen"
    event_type = Event.OUTPUT

    async def handle(self, event) -> None:
        await self.backend.refresh()
        self.emit(ScreenConfigChanged(change=getattr(event, "change", None) or "unspecified"))


class WindowFocusSource(I3EventSource):
    """WindowFocusGained on window::focus."""

    name = "focus"
    event_type = Event.WINDOW_FOCUS

    async def handle(self, event) -> None:
        container = event.container
        await self.backend.refresh()
        window = self.backend.lookup_window(container.id)
        self.emit(WindowFocusGained(container.id, window.display_id if window else None))


class TickCommandSource(I3EventSource):
    """ControlRequested from ``i3-msg -t send_tick ffm:<command>``."""

    name = "command"
    event_type = Event.TICK

    async def handle(self, event) -> None:
        if getattr(event, "first", False):
            return
        command = parse_tick_payload(getattr(event, "payload", None))
        if command is not None:
            self.emit(ControlRequested(command, source="tick"))


class SwayBackend(Backend):
    """Backend for i3 and Sway over i3 IPC."""

    name = "sway"

    def __init__(self, conn: Optional[aio.Connection] = None, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.conn = conn
        self._loop = loop
        self.snapshot = Snapshot()
        self.last_pointer: Optional[Point] = None
        self._controller = None
        self.pointer_limited = False
        self._refresh_task: Optional[asyncio.Task] = None
        self._refresh_again = False
        self._command_tasks: Set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    async def connect(self, max_attempts: int = 10) -> None:
        """Connect to i3/Sway with exponential backoff and load the first snapshot.

        Raises:
            BackendUnavailableError: If connection fails after max attempts
        """
        self._loop = asyncio.get_running_loop()
        if self.conn is None:
            delay = 0.1
            last_error = "unknown"
            for attempt in range(1, max_attempts + 1):
                try:
                    logger.info(f"Attempting to connect to i3/Sway (attempt {attempt}/{max_attempts})")
                    self.conn = await aio.Connection(auto_reconnect=True).connect()
                    version = await self.conn.get_version()
                    logger.info(f"Connected to {version.human_readable}")
                    break
                except Exception as e:
                    last_error = str(e)
                    logger.warning(f"Connection attempt {attempt} failed: {e}")
                    self.conn = None
                    if attempt < max_attempts:
                        await asyncio.sleep(delay)
                        delay = min(delay * 2, 5.0)
            if self.conn is None:
                raise BackendUnavailableError(max_attempts, last_error)

        for event_type in (Event.WINDOW, Event.WORKSPACE):
            self.conn.on(event_type, self._on_change)

        await self.refresh()

        try:
            from pynput import mouse

            self._controller = mouse.Controller()
        except Exception as e:
            logger.warning(f"Pointer position query unavailable, using listener position: {e}")
            self._controller = None

        self.pointer_limited = wayland_session()
        if self.pointer_limited:
            logger.warning(WAYLAND_POINTER_WARNING)

    async def close(self) -> None:
        if self._refresh_task and not self._refresh_task.done():
            self._refresh_task.cancel()
        if self.conn is not None:
            self.conn.off(self._on_change)
            self.conn.main_quit()
            self.conn = None

    # Snapshot maintenance

    async def _on_change(self, conn, event) -> None:
        self.schedule_refresh()

    def schedule_refresh(self) -> None:
        """Coalesce refresh requests: at most one in flight plus one queued."""
        if self._refresh_task and not self._refresh_task.done():
            self._refresh_again = True
            return
        self._refresh_task = self.loop.create_task(self._refresh_loop())

    async def _refresh_loop(self) -> None:
        while True:
            self._refresh_again = False
            await self.refresh()
            if not self._refresh_again:
                return

    async def refresh(self) -> None:
        """Reload outputs and the window tree. Keeps the last snapshot on failure."""
        if self.conn is None:
            return
        try:
            outputs, tree, workspaces = await asyncio.gather(
                self.conn.get_outputs(),
                self.conn.get_tree(),
                self.conn.get_workspaces(),
            )
        except Exception as e:
            logger.warning(f"Failed to refresh window snapshot: {e}")
            return

        visible = {ws.name for ws in workspaces if getattr(ws, "visible", False)}
        windows, focused_id = parse_tree(tree, visible)
        self.snapshot = Snapshot.build(parse_outputs(outputs), windows, focused_id)
        logger.debug(
            f"Snapshot refreshed: {len(self.snapshot.displays)} outputs, {len(windows)} windows"
        )

    # Queries

    def pointer_position(self) -> Optional[Point]:
        if self._controller is not None:
            try:
                x, y = self._controller.position
                return Point(x=x, y=y)
            except Exception as e:
                logger.debug(f"Pointer query failed: {e}")
        return self.last_pointer

    def displays(self) -> List[Display]:
        return list(self.snapshot.displays)

    def windows(self) -> List[WindowInfo]:
        return list(self.snapshot.windows)

    def lookup_window(self, window_id: int) -> Optional[WindowInfo]:
        return self.snapshot.by_id.get(window_id)

    def focused_window(self) -> Optional[WindowInfo]:
        if self.snapshot.focused_id is None:
            return None
        return self.snapshot.by_id.get(self.snapshot.focused_id)

    # Actions

    def raise_window(self, window: WindowInfo) -> None:
        # i3/Sway raise a floating window when it is focused
        logger.debug(f"Raise {window.id} (implicit on focus)")

    def focus_window(self, window: WindowInfo) -> None:
        self._run_command(
            f"[con_id={window.id}] focus",
            on_failure=lambda: self.report_focus_rejected(window.id),
        )

    def _run_command(self, command: str, on_failure: Optional[Callable[[], None]] = None) -> None:
        if self.conn is None:
            logger.warning(f"Not connected, dropping command: {command}")
            if on_failure is not None:
                on_failure()
            return
        task = self.loop.create_task(self._execute(command, on_failure))
        self._command_tasks.add(task)
        task.add_done_callback(self._command_tasks.discard)

    async def _execute(self, command: str, on_failure: Optional[Callable[[], None]]) -> bool:
        try:
            await self._command(command)
        except BackendError as e:
            logger.warning(e.message)
            if on_failure is not None:
                on_failure()
            return False
        return True

    async def _command(self, command: str) -> None:
        """Run an i3 command.

        Raises:
            BackendError: If the IPC call fails or any reply reports failure
        """
        try:
            replies = await self.conn.command(command)
        except Exception as e:
            raise BackendError(command, str(e)) from e
        for reply in replies or []:
            if not reply.success:
                raise BackendError(command, getattr(reply, "error", None) or "rejected")
        logger.debug(f"Command ok: {command}")

    # Sources

    def pointer_source(self, emit: Emit) -> EventSource:
        return PynputPointerSource(emit, self)

    def screen_source(self, emit: Emit) -> EventSource:
        return OutputChangeSource(emit, self)

    def focus_source(self, emit: Emit) -> EventSource:
        return WindowFocusSource(emit, self)

    def command_source(self, emit: Emit) -> Optional[EventSource]:
        return TickCommandSource(emit, self)
