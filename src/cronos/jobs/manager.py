"""Job manager: canonical in-memory job collection backed by the shared store."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable

from cronos.errors import JobNotFoundError
from cronos.infrastructure.logger import logger
from cronos.jobs.types import Job, JobDraft, RunLogContent, RunRecord, utc_now
from cronos.storage.base import Store
from cronos.storage.json_store import JsonFileStore
from cronos.storage.run_log import RunLog

JobsListener = Callable[[list[Job]], None]


class JobManager:
    """Job CRUD, run-index bookkeeping, and change notification.

    Every mutation reloads the document from disk first, applies the change
    and saves the whole document. If loading or saving fails the in-memory
    collection is left untouched and the error propagates to the caller.
    """

    def __init__(self, store: Store | None = None, run_log: RunLog | None = None) -> None:
        self._store = store or JsonFileStore()
        self._run_log = run_log or RunLog()
        self._jobs: list[Job] = []
        self._listeners: list[JobsListener] = []
        self._version = 0

    @property
    def run_log(self) -> RunLog:
        return self._run_log

    # --- Notifications ---

    def subscribe(self, listener: JobsListener) -> Callable[[], None]:
        """Register a listener called with the job list after every change."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = self.list()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Job listener failed")

    # --- Reading ---

    def reload(self) -> list[Job]:
        """Re-read the job document and notify listeners."""
        version = self._store.jobs_version()
        self._jobs = self._store.load_jobs()
        self._version = version
        self._notify()
        return self.list()

    def reload_if_changed(self) -> bool:
        """Reload when another client has rewritten the job document."""
        if self._store.jobs_version() == self._version:
            return False
        logger.info("Job document changed on disk, reloading")
        self.reload()
        return True

    def list(self) -> list[Job]:
        return [job.model_copy() for job in self._jobs]

    def get(self, job_id: str) -> Job:
        for job in self._jobs:
            if job.id == job_id:
                return job.model_copy()
        raise JobNotFoundError(f"Job not found: {job_id}", {"job_id": job_id})

    # --- CRUD ---

    def create(self, draft: JobDraft) -> Job:
        job = Job(id=str(uuid.uuid4()).upper(), **draft.model_dump())

        def apply(jobs: list[Job]) -> None:
            jobs.append(job)

        self._mutate(apply)
        logger.info("Job created", job_id=job.id, name=job.name)
        return job.model_copy()

    def update(self, job: Job) -> Job:
        """Replace a stored job by id with the given one."""

        def apply(jobs: list[Job]) -> None:
            jobs[_index_of(jobs, job.id)] = job.model_copy()

        self._mutate(apply)
        logger.info("Job updated", job_id=job.id)
        return self.get(job.id)

    def toggle(self, job_id: str) -> Job:
        def apply(jobs: list[Job]) -> None:
            target = jobs[_index_of(jobs, job_id)]
            target.is_enabled = not target.is_enabled

        self._mutate(apply)
        job = self.get(job_id)
        logger.info("Job toggled", job_id=job_id, enabled=job.is_enabled)
        return job

    def delete(self, job_id: str) -> None:
        """Remove a job, its run-index entries, and their log files."""

        def apply(jobs: list[Job]) -> None:
            jobs.pop(_index_of(jobs, job_id))

        self._mutate(apply)

        runs = self._store.load_runs()
        doomed = [run for run in runs if run.job_id == job_id]
        if doomed:
            self._store.save_runs([run for run in runs if run.job_id != job_id])
        for run in doomed:
            self._run_log.delete(run.id)
        logger.info("Job deleted", job_id=job_id, runs_removed=len(doomed))

    def record_last_run(self, job_id: str, success: bool, finished_at: datetime | None = None) -> None:
        """Store the latest-run summary. A job deleted meanwhile is skipped."""
        finished_at = finished_at or utc_now()

        def apply(jobs: list[Job]) -> None:
            for job in jobs:
                if job.id == job_id:
                    job.last_run = finished_at
                    job.last_run_successful = success
                    return
            logger.info("Job removed while running, last run not recorded", job_id=job_id)

        self._mutate(apply)

    def _mutate(self, apply: Callable[[list[Job]], None]) -> None:
        jobs = self._store.load_jobs()
        apply(jobs)
        self._store.save_jobs(jobs)
        self._jobs = jobs
        self._version = self._store.jobs_version()
        self._notify()

    # --- Runs ---

    def begin_run(self, job_id: str) -> RunRecord:
        run = RunRecord(id=str(uuid.uuid4()).upper(), job_id=job_id, started_at=utc_now())
        runs = self._store.load_runs()
        runs.append(run)
        self._store.save_runs(runs)
        return run

    def finish_run(self, run_id: str, exit_code: int, success: bool) -> RunRecord | None:
        runs = self._store.load_runs()
        for run in runs:
            if run.id == run_id:
                run.ended_at = utc_now()
                run.exit_code = exit_code
                run.success = success
                self._store.save_runs(runs)
                return run
        logger.warning("Run vanished from index before completion", run_id=run_id)
        return None

    def list_runs(self, job_id: str) -> list[RunRecord]:
        """Runs of one job, newest first."""
        runs = [run for run in self._store.load_runs() if run.job_id == job_id]
        # Index order breaks ties between runs started in the same second.
        return sorted(reversed(runs), key=lambda run: run.started_at, reverse=True)

    def read_run_log(self, run_id: str) -> RunLogContent:
        return self._run_log.read(run_id)


def _index_of(jobs: list[Job], job_id: str) -> int:
    for index, job in enumerate(jobs):
        if job.id == job_id:
            return index
    raise JobNotFoundError(f"Job not found: {job_id}", {"job_id": job_id})
