"""Tests for the absolute-deadline scheduler."""

import asyncio
from datetime import timedelta

import pytest

from conftest import FakeClock, at
from stay_hard.services.scheduler import DeadlineScheduler


@pytest.fixture
def scheduler(clock):
    return DeadlineScheduler(clock, max_sleep=0.01)


class TestDeadlineScheduler:
    """Tests for DeadlineScheduler."""

    @pytest.mark.asyncio
    async def test_fires_in_deadline_order(self, clock, scheduler):
        fired = []

        async def record(name):
            fired.append(name)

        scheduler.call_at(at(17, 30), lambda: record("second"))
        scheduler.call_at(at(17, 15), lambda: record("first"))
        scheduler.call_at(at(18, 0), lambda: record("later"))

        clock.set(at(17, 45))
        count = await scheduler.run_pending()

        assert count == 2
        assert fired == ["first", "second"]
        assert [h.name for h in scheduler.pending()] == ["<lambda>"]

    @pytest.mark.asyncio
    async def test_past_deadline_fires_immediately(self, clock, scheduler):
        fired = []

        async def callback():
            fired.append(clock.now())

        scheduler.call_at(at(16, 0), callback)
        await scheduler.run_pending()

        assert fired == [at(17, 0)]

    @pytest.mark.asyncio
    async def test_cancelled_timer_never_fires(self, clock, scheduler):
        fired = []

        async def callback():
            fired.append(True)

        handle = scheduler.call_later(timedelta(minutes=5), callback)
        handle.cancel()
        clock.advance(minutes=10)
        await scheduler.run_pending()

        assert fired == []
        assert not handle.active
        assert scheduler.next_deadline() is None

    @pytest.mark.asyncio
    async def test_callback_scheduling_due_timer_runs_same_pass(self, scheduler):
        fired = []

        async def chained():
            fired.append("chained")

        async def first():
            fired.append("first")
            scheduler.call_later(timedelta(0), chained)

        scheduler.call_later(timedelta(0), first)
        await scheduler.run_pending()

        assert fired == ["first", "chained"]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_others(self, scheduler):
        fired = []

        async def boom():
            raise RuntimeError("boom")

        async def ok():
            fired.append("ok")

        scheduler.call_later(timedelta(0), boom)
        scheduler.call_later(timedelta(0), ok)
        await scheduler.run_pending()

        assert fired == ["ok"]

    @pytest.mark.asyncio
    async def test_cancel_own_handle_keeps_running(self, scheduler):
        steps = []
        handles = {}

        async def callback():
            handles["self"].cancel()
            await asyncio.sleep(0)
            steps.append("finished")

        handles["self"] = scheduler.call_later(timedelta(0), callback)
        await scheduler.run_pending()

        assert steps == ["finished"]

    @pytest.mark.asyncio
    async def test_cancel_interrupts_running_callback(self, scheduler):
        started = asyncio.Event()
        steps = []

        async def slow():
            started.set()
            await asyncio.sleep(10)
            steps.append("finished")

        handle = scheduler.call_later(timedelta(0), slow)
        scheduler.fire_due()
        await started.wait()
        handle.cancel()
        await scheduler.drain()

        assert steps == []

    @pytest.mark.asyncio
    async def test_run_forever_catches_up_after_clock_jump(self):
        clock = FakeClock(at(17, 0))
        scheduler = DeadlineScheduler(clock, max_sleep=0.01)
        fired = asyncio.Event()

        async def callback():
            fired.set()

        scheduler.call_at(at(19, 0), callback)
        loop_task = asyncio.create_task(scheduler.run_forever())
        await asyncio.sleep(0.03)
        assert not fired.is_set()

        # Process slept through the deadline
        clock.set(at(21, 0))
        await asyncio.wait_for(fired.wait(), timeout=1)

        scheduler.stop()
        await asyncio.wait_for(loop_task, timeout=1)
        assert not scheduler.is_running
