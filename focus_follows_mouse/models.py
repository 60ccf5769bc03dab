"""
Data models for the focus-follows-mouse coordinator.

Geometry, display and window snapshots are frozen Pydantic models. Events
flowing through the dispatcher are plain dataclasses, one class per event kind.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# Geometry

class Point(BaseModel):
    """Absolute pointer coordinate in the global layout."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class Rect(BaseModel):
    """Rectangle in global layout coordinates."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)

    def contains(self, point: Optional[Point]) -> bool:
        """Inclusive point-in-rectangle test (edges count as inside)."""
        if point is None:
            return False
        return (
            self.x <= point.x <= self.x + self.width
            and self.y <= point.y <= self.y + self.height
        )


# Displays and windows

class Display(BaseModel):
    """A physical monitor (i3/Sway output).

    Identity is the output name; geometry may change between snapshots
    without changing identity.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Output identifier (DP-1, eDP-1, ...)")
    rect: Rect

    def same_as(self, other: Optional["Display"]) -> bool:
        """Compare displays by identifier only."""
        return other is not None and self.id == other.id

    def contains_point(self, point: Optional[Point]) -> bool:
        """Output membership: left/top edges inside, right/bottom edges outside.

        Neighbouring outputs share an edge coordinate, so the first pixel
        column of an output belongs to that output and not to the one before it.
        """
        if point is None:
            return False
        rect = self.rect
        return rect.x <= point.x < rect.x + rect.width and rect.y <= point.y < rect.y + rect.height



class WindowInfo(BaseModel):
    """Snapshot of a window as last seen by the backend.

    The ``id`` is the handle; a snapshot may outlive the window it describes,
    so callers re-resolve it through ``Backend.lookup_window`` before use.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Container ID")
    title: str = ""
    app_name: str = Field("unknown", description="app_id (Wayland) or window class (X11)")
    frame: Rect
    visible: bool = True
    minimized: bool = False
    standard: bool = True
    fullscreen: bool = False
    floating: bool = False
    display_id: Optional[str] = Field(None, description="Output the window is on")

    def describe(self) -> str:
        """Short human-readable label for logs."""
        return f"{self.title!r} ({self.app_name})"


# Events

class PointerEventKind(str, Enum):
    """Low-level pointer event kinds observed by the input watcher."""

    MOVE = "move"
    LEFT_DRAG = "left_drag"
    RIGHT_DRAG = "right_drag"
    LEFT_DOWN = "left_down"
    RIGHT_DOWN = "right_down"
    LEFT_UP = "left_up"
    RIGHT_UP = "right_up"

    @property
    def is_drag(self) -> bool:
        return self in (PointerEventKind.LEFT_DRAG, PointerEventKind.RIGHT_DRAG)

    @property
    def is_button_down(self) -> bool:
        return self in (PointerEventKind.LEFT_DOWN, PointerEventKind.RIGHT_DOWN)

    @property
    def is_button_up(self) -> bool:
        return self in (PointerEventKind.LEFT_UP, PointerEventKind.RIGHT_UP)


class TimerPurpose(str, Enum):
    """Why a one-shot timer was scheduled."""

    FOCUS = "focus"
    DRAG_END = "drag_end"
    POLL = "poll"


class ControlCommand(str, Enum):
    """Commands accepted from hotkeys, tick events and signals."""

    RELOAD = "reload"
    TOGGLE = "toggle"
    ENABLE = "enable"
    DISABLE = "disable"
    DEBUG = "debug"
    CLEAR = "clear"

    @classmethod
    def from_str(cls, value: str) -> "ControlCommand":
        """Parse command from string (case-insensitive).

        Raises:
            ValueError: If value is not a known command
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(c.value for c in cls)
            raise ValueError(f"Invalid command '{value}': must be one of {valid}")


@dataclass(frozen=True)
class PointerMoved:
    """Pointer moved with no button held."""
    position: Optional[Point] = None


@dataclass(frozen=True)
class DragStarted:
    """Pointer moved while a button is held (emitted for every drag motion)."""
    kind: PointerEventKind = PointerEventKind.LEFT_DRAG
    position: Optional[Point] = None


@dataclass(frozen=True)
class ButtonPressed:
    kind: PointerEventKind = PointerEventKind.LEFT_DOWN


@dataclass(frozen=True)
class ButtonReleased:
    kind: PointerEventKind = PointerEventKind.LEFT_UP


@dataclass(frozen=True)
class ScreenConfigChanged:
    """Output added/removed/changed, or wake from sleep."""
    change: str = "unspecified"


@dataclass(frozen=True)
class WindowFocusGained:
    """Any window gained focus (by any means, not only through the coordinator)."""
    window_id: int
    display_id: Optional[str] = None


@dataclass(frozen=True)
class TimerFired:
    """A timer expired.

    ``token`` identifies which scheduling of the timer fired, so an expiry
    that was superseded before delivery is ignored.
    """
    purpose: TimerPurpose
    token: int = 0


@dataclass(frozen=True)
class ControlRequested:
    command: ControlCommand
    source: str = "hotkey"


@dataclass(frozen=True)
class FocusRejected:
    """The window manager refused a focus request for a window."""
    window_id: int


def pointer_event_for(kind: PointerEventKind, position: Optional[Point] = None):
    """Build the typed event variant for a raw pointer event kind."""
    if kind.is_drag:
        return DragStarted(kind=kind, position=position)
    if kind.is_button_down:
        return ButtonPressed(kind=kind)
    if kind.is_button_up:
        return ButtonReleased(kind=kind)
    return PointerMoved(position=position)
