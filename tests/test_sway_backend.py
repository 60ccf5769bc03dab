"""Tests for the i3/Sway backend using mocked i3ipc objects."""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest
from i3ipc import Event
from i3ipc.aio import Connection

from focus_follows_mouse.backends import create_backend
from focus_follows_mouse.backends.sway import (
    WAYLAND_POINTER_WARNING,
    PointerClassifier,
    SwayBackend,
    get_window_class,
    parse_outputs,
    parse_tick_payload,
    parse_tree,
)
from focus_follows_mouse.errors import BackendError, ErrorCode, FfmError
from focus_follows_mouse.models import (
    ControlCommand,
    ControlRequested,
    PointerEventKind,
    ScreenConfigChanged,
    WindowFocusGained,
)


def rect(x, y, width, height):
    return Mock(x=x, y=y, width=width, height=height)


def con(con_id, con_type="con", name="", nodes=None, floating_nodes=None, focus=None, **attrs):
    """Container mock with every attribute the parser reads set explicitly."""
    node = Mock()
    node.configure_mock(
        id=con_id,
        type=con_type,
        name=name,
        nodes=nodes or [],
        floating_nodes=floating_nodes or [],
        focus=focus if focus is not None else [],
        rect=attrs.pop("rect", rect(0, 0, 100, 100)),
        app_id=attrs.pop("app_id", None),
        window_class=attrs.pop("window_class", None),
        window_properties=attrs.pop("window_properties", None),
        visible=attrs.pop("visible", None),
        window_type=attrs.pop("window_type", None),
        fullscreen_mode=attrs.pop("fullscreen_mode", 0),
        floating=attrs.pop("floating", "auto_off"),
        focused=attrs.pop("focused", False),
    )
    return node


def output_reply(name, x, active=True):
    output = Mock(active=active, rect=rect(x, 0, 1920, 1080))
    output.name = name
    return output


def workspace_reply(name, visible):
    workspace = Mock(visible=visible)
    workspace.name = name
    return workspace


@pytest.fixture
def tree():
    """Two outputs plus the scratchpad.

    DP-1 / workspace 1 (visible): tiled 11, 12 (12 most recently focused), floating 13
    DP-1 / workspace 2 (hidden): tiled 21
    DP-2 / workspace 3 (visible): tiled 31 (focused, fullscreen)
    __i3 / __i3_scratch: 41
    """
    ws1 = con(
        101, "workspace", "1",
        nodes=[con(11, app_id="foot", name="shell"), con(12, app_id="firefox")],
        floating_nodes=[con(13, "floating_con", app_id="pavucontrol")],
        focus=[12, 13, 11],
    )
    ws2 = con(102, "workspace", "2", nodes=[con(21, window_class="Code")])
    ws3 = con(
        103, "workspace", "3",
        nodes=[con(31, app_id="mpv", fullscreen_mode=1, focused=True, rect=rect(1920, 0, 1920, 1080))],
    )
    scratch = con(104, "workspace", "__i3_scratch", floating_nodes=[con(41, "floating_con", app_id="scratch")])

    out1 = con(1, "output", "DP-1", nodes=[con(91, "dockarea"), ws1, ws2])
    out2 = con(2, "output", "DP-2", nodes=[ws3])
    i3 = con(3, "output", "__i3", nodes=[con(5, "con", "content", nodes=[scratch])])
    return con(0, "root", "root", nodes=[i3, out1, out2], focus=[2, 1, 3])


class TestParsing:
    def test_parse_outputs_skips_inactive(self):
        displays = parse_outputs([output_reply("DP-1", 0), output_reply("HDMI-A-1", 1920, active=False)])
        assert [d.id for d in displays] == ["DP-1"]
        assert displays[0].rect.width == 1920

    def test_parse_tree_windows_and_focus(self, tree):
        windows, focused_id = parse_tree(tree, {"1", "3"})
        by_id = {w.id: w for w in windows}

        assert set(by_id) == {11, 12, 13, 21, 31, 41}
        assert focused_id == 31
        assert by_id[31].fullscreen
        assert by_id[31].display_id == "DP-2"

    def test_front_to_back_order_within_workspace(self, tree):
        windows, _ = parse_tree(tree, {"1", "3"})
        ws1_order = [w.id for w in windows if w.id in (11, 12, 13)]
        assert ws1_order == [13, 12, 11]

    def test_visibility_from_workspace_when_flag_missing(self, tree):
        windows, _ = parse_tree(tree, {"1", "3"})
        by_id = {w.id: w for w in windows}
        assert by_id[11].visible
        assert not by_id[21].visible

    def test_sway_visible_flag_wins(self):
        leaf = con(7, app_id="foot", visible=False)
        ws = con(100, "workspace", "1", nodes=[leaf])
        root = con(0, "root", nodes=[con(1, "output", "DP-1", nodes=[ws])])
        windows, _ = parse_tree(root, {"1"})
        assert windows[0].visible is False

    def test_scratchpad_windows_are_minimized(self, tree):
        windows, _ = parse_tree(tree, {"1", "3"})
        scratch = next(w for w in windows if w.id == 41)
        assert scratch.minimized
        assert not scratch.visible
        assert scratch.display_id is None

    def test_floating_and_window_type(self):
        dialog = con(8, "floating_con", window_class="Gimp", window_type="dialog")
        ws = con(100, "workspace", "1", floating_nodes=[dialog])
        root = con(0, "root", nodes=[con(1, "output", "DP-1", nodes=[ws])])
        windows, _ = parse_tree(root, {"1"})
        assert windows[0].floating
        assert not windows[0].standard

    def test_get_window_class(self):
        assert get_window_class(con(1, app_id="foot")) == "foot"
        assert get_window_class(con(1, window_class="Code")) == "Code"
        assert get_window_class(con(1, window_properties={"class": "XTerm"})) == "XTerm"
        assert get_window_class(con(1)) == "unknown"


class TestTickPayload:
    def test_valid_command(self):
        assert parse_tick_payload("ffm:toggle") == ControlCommand.TOGGLE

    @pytest.mark.parametrize("payload", [None, "", "project:nixos", "ffm:explode"])
    def test_ignored_payloads(self, payload):
        assert parse_tick_payload(payload) is None


class TestPointerClassifier:
    def test_move_without_buttons(self):
        assert PointerClassifier().on_move() == PointerEventKind.MOVE

    def test_left_drag_and_release(self):
        classifier = PointerClassifier()
        assert classifier.on_click("left", True) == PointerEventKind.LEFT_DOWN
        assert classifier.on_move() == PointerEventKind.LEFT_DRAG
        assert classifier.on_click("left", False) == PointerEventKind.LEFT_UP
        assert classifier.on_move() == PointerEventKind.MOVE

    def test_right_drag(self):
        classifier = PointerClassifier()
        assert classifier.on_click("right", True) == PointerEventKind.RIGHT_DOWN
        assert classifier.on_move() == PointerEventKind.RIGHT_DRAG
        assert classifier.on_click("right", False) == PointerEventKind.RIGHT_UP

    def test_middle_button_ignored(self):
        classifier = PointerClassifier()
        assert classifier.on_click("middle", True) is None
        assert classifier.on_move() == PointerEventKind.MOVE


@pytest.fixture
def mock_conn(tree):
    conn = AsyncMock(spec=Connection)
    conn.get_outputs.return_value = [output_reply("DP-1", 0), output_reply("DP-2", 1920)]
    conn.get_workspaces.return_value = [
        workspace_reply("1", True),
        workspace_reply("2", False),
        workspace_reply("3", True),
    ]
    conn.get_tree.return_value = tree
    conn.command.return_value = [Mock(success=True)]
    return conn


@pytest.fixture
async def sway(mock_conn):
    backend = SwayBackend(conn=mock_conn)
    await backend.refresh()
    return backend


class TestSwayBackend:
    async def test_refresh_builds_snapshot(self, sway):
        assert [d.id for d in sway.displays()] == ["DP-1", "DP-2"]
        assert sway.focused_window().id == 31
        assert sway.lookup_window(12).app_name == "firefox"
        assert sway.lookup_window(999) is None
        assert sway.display_for_window(31).id == "DP-2"

    async def test_refresh_failure_keeps_last_snapshot(self, sway, mock_conn):
        mock_conn.get_tree.side_effect = ConnectionError("socket closed")
        await sway.refresh()
        assert sway.lookup_window(12) is not None

    async def test_current_display_uses_last_listener_position(self, sway):
        from focus_follows_mouse.models import Point

        sway.last_pointer = Point(x=2500, y=10)
        assert sway.current_display().id == "DP-2"

    async def test_focus_window_sends_con_id_command(self, sway, mock_conn):
        sway.focus_window(sway.lookup_window(12))
        await asyncio.gather(*sway._command_tasks)
        mock_conn.command.assert_awaited_once_with("[con_id=12] focus")

    async def test_rejected_command_raises_backend_error(self, sway, mock_conn):
        mock_conn.command.return_value = [Mock(success=False, error="No window matches")]
        with pytest.raises(BackendError) as exc_info:
            await sway._command("[con_id=1] focus")
        assert exc_info.value.code == ErrorCode.BACKEND_COMMAND_FAILED
        assert "No window matches" in exc_info.value.message

    async def test_ipc_failure_raises_backend_error(self, sway, mock_conn):
        mock_conn.command.side_effect = ConnectionError("socket closed")
        with pytest.raises(BackendError):
            await sway._command("[con_id=1] focus")

    async def test_refused_focus_is_reported(self, sway, mock_conn):
        rejected = []
        sway.on_focus_rejected = rejected.append
        mock_conn.command.return_value = [Mock(success=False, error="No window matches")]

        sway.focus_window(sway.lookup_window(12))
        await asyncio.gather(*sway._command_tasks)

        assert rejected == [12]

    async def test_accepted_focus_is_not_reported(self, sway, mock_conn):
        rejected = []
        sway.on_focus_rejected = rejected.append
        sway.focus_window(sway.lookup_window(12))
        await asyncio.gather(*sway._command_tasks)
        assert rejected == []


    async def test_raise_window_sends_nothing(self, sway, mock_conn):
        sway.raise_window(sway.lookup_window(12))
        mock_conn.command.assert_not_awaited()

    async def test_connect_with_existing_connection_subscribes(self, mock_conn):
        backend = SwayBackend(conn=mock_conn)
        await backend.connect()
        subscribed = [call.args[0] for call in mock_conn.on.call_args_list]
        assert Event.WINDOW in subscribed
        assert Event.WORKSPACE in subscribed
        assert len(backend.windows()) == 6

    async def test_connect_warns_about_wayland_pointer_tracking(self, mock_conn, monkeypatch, caplog):
        monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
        monkeypatch.setenv("SWAYSOCK", "/run/user/1000/sway-ipc.sock")
        backend = SwayBackend(conn=mock_conn)

        with caplog.at_level(logging.WARNING, logger="focus_follows_mouse.backends.sway"):
            await backend.connect()

        assert backend.pointer_limited is True
        assert WAYLAND_POINTER_WARNING in caplog.text

    async def test_connect_on_x11_does_not_warn(self, mock_conn, monkeypatch, caplog):
        monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
        monkeypatch.delenv("SWAYSOCK", raising=False)
        backend = SwayBackend(conn=mock_conn)

        with caplog.at_level(logging.WARNING, logger="focus_follows_mouse.backends.sway"):
            await backend.connect()

        assert backend.pointer_limited is False
        assert WAYLAND_POINTER_WARNING not in caplog.text


    async def test_schedule_refresh_coalesces(self, sway, mock_conn):
        mock_conn.get_tree.reset_mock()
        sway.schedule_refresh()
        sway.schedule_refresh()
        sway.schedule_refresh()
        await sway._refresh_task
        assert mock_conn.get_tree.await_count == 1


class TestEventSources:
    async def test_tick_source_emits_control_requests(self, sway, mock_conn):
        events = []
        source = sway.command_source(events.append)
        source.start()
        mock_conn.on.assert_called_with(Event.TICK, source._handle)

        await source._handle(mock_conn, Mock(first=True, payload=""))
        await source._handle(mock_conn, Mock(first=False, payload="ffm:debug"))
        await source._handle(mock_conn, Mock(first=False, payload="project:nixos"))

        assert events == [ControlRequested(ControlCommand.DEBUG, source="tick")]

    async def test_stopped_source_emits_nothing(self, sway, mock_conn):
        events = []
        source = sway.command_source(events.append)
        source.start()
        source.stop()
        mock_conn.off.assert_called_with(source._handle)

        await source._handle(mock_conn, Mock(first=False, payload="ffm:debug"))
        assert events == []

    async def test_focus_source_reports_output(self, sway, mock_conn):
        events = []
        source = sway.focus_source(events.append)
        source.start()

        await source._handle(mock_conn, Mock(container=Mock(id=12)))

        assert events == [WindowFocusGained(12, "DP-1")]

    async def test_screen_source_emits_change(self, sway, mock_conn):
        events = []
        source = sway.screen_source(events.append)
        source.start()

        await source._handle(mock_conn, Mock(change="unspecified"))

        assert events == [ScreenConfigChanged("unspecified")]


class TestRegistry:
    def test_create_sway_backend(self):
        assert isinstance(create_backend("sway"), SwayBackend)
        assert isinstance(create_backend("i3"), SwayBackend)

    def test_unknown_backend(self):
        with pytest.raises(FfmError) as exc_info:
            create_backend("quartz")
        assert exc_info.value.code == ErrorCode.UNKNOWN_BACKEND
