"""Job scheduler: one self-renewing deadline per enabled job."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from cronos.infrastructure.config import PAST_DEADLINE_OFFSET_S, TIMER_MAX_SLEEP
from cronos.infrastructure.deadline_timer import Clock, DeadlineTimer
from cronos.infrastructure.logger import logger
from cronos.jobs.schedule import display_string, next_run
from cronos.jobs.types import Job

OnTrigger = Callable[[str], None]


class Scheduler:
    """Keeps a pending deadline for every enabled job.

    on_trigger must return quickly: it runs inside the event loop and a slow
    callback delays every other job's fire.
    """

    def __init__(self, on_trigger: OnTrigger, clock: Clock = datetime.now, max_sleep_s: float = TIMER_MAX_SLEEP) -> None:
        self._on_trigger = on_trigger
        self._clock = clock
        self._max_sleep = max_sleep_s
        self._timers: dict[str, DeadlineTimer] = {}

    def reschedule(self, jobs: list[Job]) -> None:
        """Drop every pending deadline and install fresh ones for enabled jobs."""
        self.cancel_all()
        for job in jobs:
            if job.is_enabled:
                self._schedule_next(job)
        logger.debug("Jobs rescheduled", scheduled=len(self._timers), total=len(jobs))

    def cancel(self, job_id: str) -> None:
        timer = self._timers.pop(job_id, None)
        if timer:
            timer.cancel()

    def cancel_all(self) -> None:
        for job_id in list(self._timers):
            self.cancel(job_id)

    def next_fire(self, job_id: str) -> datetime | None:
        timer = self._timers.get(job_id)
        return timer.fire_at if timer else None

    def scheduled_job_ids(self) -> list[str]:
        return list(self._timers)

    def _schedule_next(self, job: Job) -> None:
        now = self._clock()
        fire_at = next_run(job.schedule, now)
        if (fire_at - now).total_seconds() <= 0:
            fire_at = next_run(job.schedule, now + timedelta(seconds=PAST_DEADLINE_OFFSET_S))
            logger.debug("Computed deadline not in the future, re-derived", job_id=job.id, fire_at=fire_at.isoformat())

        self._timers[job.id] = DeadlineTimer(
            lambda: self._fire(job),
            fire_at,
            clock=self._clock,
            max_sleep_s=self._max_sleep,
        )
        logger.debug("Job scheduled", job_id=job.id, schedule=display_string(job.schedule), fire_at=fire_at.isoformat())

    def _fire(self, job: Job) -> None:
        timer = self._timers.get(job.id)
        logger.info("Job triggered", job_id=job.id, name=job.name)
        try:
            self._on_trigger(job.id)
        except Exception:
            logger.exception("Trigger callback failed", job_id=job.id)

        # The callback may have rescheduled or cancelled this job.
        if timer is not None and self._timers.get(job.id) is timer:
            self._schedule_next(job)
