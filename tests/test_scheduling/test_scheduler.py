"""Tests for the job scheduler."""

import asyncio
import time
from datetime import datetime, timedelta

import pytest

from cronos.jobs.types import DailySchedule, Job, WeeklySchedule
from cronos.scheduling.scheduler import Scheduler


class FakeClock:
    """Wall clock that starts at a fixed instant and advances in real time."""

    def __init__(self, start: datetime) -> None:
        self._start = start
        self._origin = time.monotonic()

    def __call__(self) -> datetime:
        return self._start + timedelta(seconds=time.monotonic() - self._origin)


def _job(id: str = "job-1", enabled: bool = True, schedule=None) -> Job:
    return Job(
        id=id,
        name=id,
        command="true",
        schedule=schedule or DailySchedule(hour=9, minute=0),
        is_enabled=enabled,
    )


class TestReschedule:
    @pytest.mark.asyncio
    async def test_enabled_jobs_get_deadlines(self):
        clock = FakeClock(datetime(2024, 1, 1, 10, 0))
        scheduler = Scheduler(on_trigger=lambda _id: None, clock=clock)
        scheduler.reschedule([_job("a"), _job("b", enabled=False)])

        assert scheduler.scheduled_job_ids() == ["a"]
        assert scheduler.next_fire("a") == datetime(2024, 1, 2, 9, 0)
        assert scheduler.next_fire("b") is None
        scheduler.cancel_all()

    @pytest.mark.asyncio
    async def test_reschedule_replaces_everything(self):
        clock = FakeClock(datetime(2024, 1, 1, 10, 0))
        scheduler = Scheduler(on_trigger=lambda _id: None, clock=clock)
        scheduler.reschedule([_job("a"), _job("b")])
        scheduler.reschedule([_job("b", schedule=WeeklySchedule(weekday=4, hour=12, minute=0))])

        assert scheduler.scheduled_job_ids() == ["b"]
        assert scheduler.next_fire("b") == datetime(2024, 1, 3, 12, 0)
        scheduler.cancel_all()

    @pytest.mark.asyncio
    async def test_cancel_single_job(self):
        clock = FakeClock(datetime(2024, 1, 1, 10, 0))
        scheduler = Scheduler(on_trigger=lambda _id: None, clock=clock)
        scheduler.reschedule([_job("a"), _job("b")])
        scheduler.cancel("a")
        scheduler.cancel("unknown")

        assert scheduler.scheduled_job_ids() == ["b"]
        scheduler.cancel_all()
        assert scheduler.scheduled_job_ids() == []


class TestFiring:
    @pytest.mark.asyncio
    async def test_fires_and_renews(self):
        clock = FakeClock(datetime(2024, 1, 1, 8, 59, 59, 900000))
        fired: list[str] = []
        scheduler = Scheduler(on_trigger=fired.append, clock=clock, max_sleep_s=0.05)
        scheduler.reschedule([_job("a")])

        await asyncio.sleep(0.4)

        assert fired == ["a"]
        assert scheduler.next_fire("a") == datetime(2024, 1, 2, 9, 0)
        scheduler.cancel_all()

    @pytest.mark.asyncio
    async def test_cancelled_job_does_not_fire(self):
        clock = FakeClock(datetime(2024, 1, 1, 8, 59, 59, 900000))
        fired: list[str] = []
        scheduler = Scheduler(on_trigger=fired.append, clock=clock, max_sleep_s=0.05)
        scheduler.reschedule([_job("a")])
        scheduler.cancel("a")

        await asyncio.sleep(0.3)
        assert fired == []

    @pytest.mark.asyncio
    async def test_failing_callback_still_renews(self):
        clock = FakeClock(datetime(2024, 1, 1, 8, 59, 59, 900000))

        def boom(_job_id: str) -> None:
            raise RuntimeError("trigger failed")

        scheduler = Scheduler(on_trigger=boom, clock=clock, max_sleep_s=0.05)
        scheduler.reschedule([_job("a")])

        await asyncio.sleep(0.4)
        assert scheduler.next_fire("a") == datetime(2024, 1, 2, 9, 0)
        scheduler.cancel_all()

    @pytest.mark.asyncio
    async def test_callback_that_cancels_is_respected(self):
        clock = FakeClock(datetime(2024, 1, 1, 8, 59, 59, 900000))
        scheduler: Scheduler

        def cancel_self(job_id: str) -> None:
            scheduler.cancel(job_id)

        scheduler = Scheduler(on_trigger=cancel_self, clock=clock, max_sleep_s=0.05)
        scheduler.reschedule([_job("a")])

        await asyncio.sleep(0.4)
        assert scheduler.next_fire("a") is None

    @pytest.mark.asyncio
    async def test_past_deadline_is_rederived_one_second_ahead(self, monkeypatch):
        start = datetime(2024, 1, 1, 10, 0)
        clock = FakeClock(start)
        calls: list[datetime] = []

        def stuck_next_run(_schedule, after):
            calls.append(after)
            return after

        monkeypatch.setattr("cronos.scheduling.scheduler.next_run", stuck_next_run)
        scheduler = Scheduler(on_trigger=lambda _id: None, clock=clock)
        scheduler.reschedule([_job("a")])

        assert len(calls) == 2
        assert calls[1] - calls[0] == timedelta(seconds=1)
        assert scheduler.next_fire("a") == calls[1]
        assert scheduler.next_fire("a") > clock() - timedelta(seconds=0.5)
        scheduler.cancel_all()
