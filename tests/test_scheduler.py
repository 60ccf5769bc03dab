"""Tests for timer primitives."""

import asyncio

from focus_follows_mouse.scheduler import AsyncioScheduler, RepeatingTimer

from .fakes import FakeScheduler


class TestRepeatingTimer:
    def test_fires_every_interval(self):
        scheduler = FakeScheduler()
        ticks = []
        timer = RepeatingTimer(scheduler, 2.0, lambda: ticks.append(scheduler.now()), name="poll")

        timer.start()
        scheduler.advance(6.5)

        assert len(ticks) == 3
        assert timer.running

    def test_stop_cancels_pending_tick(self):
        scheduler = FakeScheduler()
        ticks = []
        timer = RepeatingTimer(scheduler, 1.0, lambda: ticks.append(1))

        timer.start()
        timer.stop()
        scheduler.advance(5)

        assert ticks == []
        assert not timer.running

    def test_failing_callback_keeps_timer_running(self):
        scheduler = FakeScheduler()
        calls = []

        def callback():
            calls.append(1)
            raise RuntimeError("boom")

        timer = RepeatingTimer(scheduler, 1.0, callback)
        timer.start()
        scheduler.advance(3)

        assert len(calls) == 3
        assert timer.running

    def test_start_is_idempotent(self):
        scheduler = FakeScheduler()
        timer = RepeatingTimer(scheduler, 1.0, lambda: None)
        timer.start()
        timer.start()
        assert len(scheduler.pending()) == 1


class TestAsyncioScheduler:
    async def test_call_later_runs_on_loop(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()
        scheduler.call_later(0.01, fired.set)
        await asyncio.wait_for(fired.wait(), timeout=1.0)

    async def test_cancelled_timer_never_fires(self):
        scheduler = AsyncioScheduler()
        fired = []
        handle = scheduler.call_later(0.01, lambda: fired.append(1))
        handle.cancel()
        await asyncio.sleep(0.05)
        assert fired == []
        assert handle.cancelled()

    async def test_negative_delay_is_clamped(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()
        scheduler.call_later(-1, fired.set)
        await asyncio.wait_for(fired.wait(), timeout=1.0)

    def test_now_is_monotonic(self):
        loop = asyncio.new_event_loop()
        try:
            scheduler = AsyncioScheduler(loop)
            first = scheduler.now()
            assert scheduler.now() >= first
        finally:
            loop.close()
