"""Tests for global hotkey registration."""

import sys
from unittest.mock import Mock, patch

import pytest

from focus_follows_mouse.config import HotkeyConfig
from focus_follows_mouse.hotkeys import HotkeyService
from focus_follows_mouse.models import ControlCommand


@pytest.fixture
def fake_pynput():
    """Stand-in pynput modules so tests never need a display server."""
    keyboard = Mock()
    pynput = Mock(keyboard=keyboard)
    with patch.dict(sys.modules, {"pynput": pynput, "pynput.keyboard": keyboard}):
        yield keyboard


class TestHotkeyService:
    def test_bindings_cover_all_commands(self):
        service = HotkeyService(HotkeyConfig(), Mock(), Mock())
        assert set(service.bindings()) == {
            "<ctrl>+<alt>+<cmd>+r",
            "<ctrl>+<alt>+<cmd>+t",
            "<ctrl>+<alt>+<cmd>+d",
            "<ctrl>+<alt>+<cmd>+c",
        }

    def test_callback_is_marshalled_onto_loop(self):
        loop = Mock()
        on_command = Mock()
        service = HotkeyService(HotkeyConfig(), on_command, loop)

        service.bindings()["<ctrl>+<alt>+<cmd>+t"]()

        loop.call_soon_threadsafe.assert_called_once_with(on_command, ControlCommand.TOGGLE)
        on_command.assert_not_called()

    def test_disabled(self, fake_pynput):
        service = HotkeyService(HotkeyConfig(enabled=False), Mock(), Mock())
        assert service.start() is False
        fake_pynput.GlobalHotKeys.assert_not_called()

    def test_start_and_stop(self, fake_pynput):
        service = HotkeyService(HotkeyConfig(), Mock(), Mock())

        assert service.start() is True
        listener = fake_pynput.GlobalHotKeys.return_value
        listener.start.assert_called_once()
        assert service.start() is True
        fake_pynput.GlobalHotKeys.assert_called_once()

        service.stop()
        listener.stop.assert_called_once()

    def test_unavailable_listener_is_not_fatal(self, fake_pynput):
        fake_pynput.GlobalHotKeys.side_effect = RuntimeError("no X server")
        service = HotkeyService(HotkeyConfig(), Mock(), Mock())
        assert service.start() is False
        service.stop()
