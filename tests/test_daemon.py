"""Tests for daemon startup, reload wiring, signals and shutdown."""

import asyncio
import logging
import signal
from unittest.mock import AsyncMock, patch

import pytest

from focus_follows_mouse import daemon as daemon_module
from focus_follows_mouse.coordinator import LifecycleState
from focus_follows_mouse.daemon import FfmDaemon, setup_logging
from focus_follows_mouse.errors import ConfigLoadError
from focus_follows_mouse.models import ControlCommand

from .fakes import FakeBackend, make_display


@pytest.fixture(autouse=True)
def no_notify_send():
    with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError)):
        yield


@pytest.fixture
def fake_backend():
    backend = FakeBackend([make_display("DP-1", 0), make_display("DP-2", 1920)])
    backend.move_pointer(100, 100)
    return backend


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "ffm" / "config.toml"
    path.parent.mkdir()
    path.write_text("max_screen_memory = 3\n")
    return path


@pytest.fixture
async def ffm_daemon(config_file, fake_backend):
    instance = FfmDaemon(config_file, hotkeys_enabled=False, backend=fake_backend)
    await instance.initialize()
    yield instance
    await instance.shutdown()


class TestFfmDaemon:
    async def test_initialize_starts_coordinator(self, ffm_daemon):
        assert ffm_daemon.coordinator.lifecycle == LifecycleState.RUNNING
        assert ffm_daemon.coordinator.config.max_screen_memory == 3
        assert ffm_daemon.config_watcher is not None
        assert ffm_daemon.hotkeys is None

    async def test_reload_rereads_config_file(self, ffm_daemon, config_file):
        config_file.write_text("max_screen_memory = 2\n")
        ffm_daemon.coordinator.request(ControlCommand.RELOAD, source="test")
        assert ffm_daemon.coordinator.state.focus_memory.capacity == 2
        assert ffm_daemon.config.max_screen_memory == 2

    async def test_reload_with_broken_file_keeps_config(self, ffm_daemon, config_file):
        config_file.write_text("max_screen_memory = [\n")
        ffm_daemon.coordinator.request(ControlCommand.RELOAD, source="test")
        assert ffm_daemon.coordinator.config.max_screen_memory == 3
        assert ffm_daemon.coordinator.lifecycle == LifecycleState.RUNNING

    async def test_invalid_config_at_startup_raises(self, tmp_path, fake_backend):
        path = tmp_path / "config.toml"
        path.write_text("poll_interval = -1\n")
        with pytest.raises(ConfigLoadError):
            await FfmDaemon(path, hotkeys_enabled=False, backend=fake_backend).initialize()

    async def test_shutdown_stops_everything(self, config_file, fake_backend):
        instance = FfmDaemon(config_file, hotkeys_enabled=False, backend=fake_backend)
        await instance.initialize()
        await instance.shutdown()

        assert instance.coordinator.lifecycle == LifecycleState.STOPPED
        assert not fake_backend.sources["focus"].running

    async def test_run_returns_after_shutdown_event(self, ffm_daemon):
        ffm_daemon.shutdown_event.set()
        await asyncio.wait_for(ffm_daemon.run(), timeout=1.0)

    async def test_signal_handlers(self, ffm_daemon):
        previous = {sig: signal.getsignal(sig) for sig in (signal.SIGTERM, signal.SIGINT, signal.SIGUSR1, signal.SIGHUP)}
        try:
            ffm_daemon.setup_signal_handlers()
            with patch.object(ffm_daemon.coordinator, "request") as request:
                signal.getsignal(signal.SIGUSR1)(signal.SIGUSR1, None)
                signal.getsignal(signal.SIGHUP)(signal.SIGHUP, None)
                await asyncio.sleep(0)
            assert [c.args for c in request.call_args_list] == [
                (ControlCommand.DEBUG, "signal"),
                (ControlCommand.RELOAD, "signal"),
            ]

            signal.getsignal(signal.SIGTERM)(signal.SIGTERM, None)
            await asyncio.sleep(0)
            assert ffm_daemon.shutdown_event.is_set()
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)


class TestSetupLogging:
    def test_log_level_from_environment(self, monkeypatch):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        monkeypatch.setenv("LOG_LEVEL", "warning")
        monkeypatch.setattr(daemon_module, "SYSTEMD_AVAILABLE", False)
        try:
            setup_logging()
            assert root.level == logging.WARNING
            setup_logging("debug")
            assert root.level == logging.DEBUG
        finally:
            root.handlers = handlers
            root.setLevel(level)
