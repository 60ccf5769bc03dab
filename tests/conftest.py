"""
Pytest configuration and fixtures for focus-follows-mouse tests.

The coordinator core is synchronous and talks to the window system only
through the Backend interface, so most tests run against FakeBackend with a
manual clock (FakeScheduler) and never touch asyncio or i3/Sway.
"""

import pytest

from focus_follows_mouse.config import CoordinatorConfig
from focus_follows_mouse.coordinator import FocusCoordinator
from focus_follows_mouse.models import Display

from .fakes import FakeBackend, FakeScheduler, RecordingNotifier, make_display


@pytest.fixture
def left_display() -> Display:
    return make_display("DP-1", 0)


@pytest.fixture
def right_display() -> Display:
    return make_display("DP-2", 1920)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def config() -> CoordinatorConfig:
    return CoordinatorConfig()


@pytest.fixture
def backend(left_display, right_display) -> FakeBackend:
    fake = FakeBackend([left_display, right_display])
    fake.move_pointer(100, 100)
    return fake


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier(show_alerts=True)


@pytest.fixture
def coordinator(backend, scheduler, config, notifier) -> FocusCoordinator:
    """Initialized coordinator with the pointer on DP-1."""
    coord = FocusCoordinator(backend, scheduler, config, notifier)
    coord.initialize()
    yield coord
    coord.teardown()
