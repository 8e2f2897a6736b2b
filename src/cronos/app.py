"""Orchestrator: composes the store, runners and scheduler behind one operation set."""

from __future__ import annotations

from pathlib import Path

from cronos.execution.coordinator import ExecutionCoordinator
from cronos.execution.process_executor import ProcessExecutor
from cronos.infrastructure.config import CRONOS_DIR, STORE_POLL_INTERVAL
from cronos.infrastructure.logger import logger
from cronos.infrastructure.poll_loop import PollLoop, start_poll_loop
from cronos.jobs.manager import JobManager
from cronos.jobs.types import Job, JobDraft, RunLogContent, RunRecord
from cronos.scheduling.scheduler import Scheduler
from cronos.storage.json_store import JsonFileStore
from cronos.storage.run_log import RunLog


class Orchestrator:
    """Composes the store, executor, coordinator, and scheduler.

    Exposes the operation set used by every client. The scheduler and the
    store watcher only run between start() and shutdown(); a one-shot client
    calls load() instead.
    """

    def __init__(
        self,
        root: Path | None = None,
        executor: ProcessExecutor | None = None,
        store_poll_interval: float = STORE_POLL_INTERVAL,
    ) -> None:
        self.root = root or CRONOS_DIR
        self._store = JsonFileStore(self.root)
        self.jobs = JobManager(self._store, RunLog(self.root))
        self.coordinator = ExecutionCoordinator(self.jobs, executor)
        self.scheduler = Scheduler(on_trigger=self.coordinator.trigger)
        self._store_poll_interval = store_poll_interval
        self._watcher: PollLoop | None = None
        self._unsubscribe = None

    def load(self) -> list[Job]:
        self._store.ensure_directories()
        return self.jobs.reload()

    async def start(self) -> None:
        """Load jobs, install deadlines, and start watching the store. Needs a running loop."""
        logger.info("Starting Cronos...", root=str(self.root))
        self._unsubscribe = self.jobs.subscribe(self.scheduler.reschedule)
        jobs = self.load()
        logger.info("Loaded jobs", count=len(jobs), enabled=sum(1 for job in jobs if job.is_enabled))

        self._watcher = start_poll_loop("Store watcher", self._store_poll_interval, self.jobs.reload_if_changed)

    async def shutdown(self, grace_period_s: float | None = None) -> None:
        """Stop firing new runs, then wait for in-flight runs to finish."""
        if self._watcher:
            self._watcher.stop()
            self._watcher = None
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self.scheduler.cancel_all()

        running = self.coordinator.running_job_ids
        if running:
            logger.info("Waiting for in-flight runs", job_ids=sorted(running))
        if not await self.coordinator.wait_idle(grace_period_s):
            logger.warning("Shutdown grace period elapsed with runs still in flight", job_ids=sorted(self.coordinator.running_job_ids))
        logger.info("Cronos stopped")

    # --- Operations ---

    def list(self) -> list[Job]:
        return self.jobs.list()

    def get(self, job_id: str) -> Job:
        return self.jobs.get(job_id)

    def create(self, draft: JobDraft) -> Job:
        return self.jobs.create(draft)

    def update(self, job: Job) -> Job:
        return self.jobs.update(job)

    def delete(self, job_id: str) -> None:
        self.scheduler.cancel(job_id)
        self.jobs.delete(job_id)

    def toggle(self, job_id: str) -> Job:
        return self.jobs.toggle(job_id)

    async def run_now(self, job_id: str) -> RunRecord:
        return await self.coordinator.run_now(job_id)

    def list_runs(self, job_id: str) -> list[RunRecord]:
        return self.jobs.list_runs(job_id)

    def read_run_log(self, run_id: str) -> RunLogContent:
        return self.jobs.read_run_log(run_id)
