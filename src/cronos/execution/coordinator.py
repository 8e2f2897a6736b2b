"""Execution coordinator: one run per job at a time, recorded in the store."""

from __future__ import annotations

import asyncio

from cronos.errors import AlreadyRunningError, CronosError, ExecutionStartError, JobNotFoundError, LogStorageError
from cronos.execution.process_executor import ProcessExecutor
from cronos.infrastructure.config import CLAUDE_BIN
from cronos.infrastructure.logger import logger
from cronos.jobs.manager import JobManager
from cronos.jobs.types import Job, RunRecord

START_FAILURE_EXIT_CODE = -1


class ExecutionCoordinator:
    """Runs jobs end to end and guarantees at most one in-flight run per job.

    Different jobs run concurrently. A trigger for a job that is already
    running is reported and dropped, never queued.
    """

    def __init__(
        self,
        job_manager: JobManager,
        executor: ProcessExecutor | None = None,
        assistant_bin: str = CLAUDE_BIN,
    ) -> None:
        self._jobs = job_manager
        self._executor = executor or ProcessExecutor()
        self._assistant_bin = assistant_bin
        self._running: dict[str, asyncio.Task[RunRecord]] = {}

    def is_running(self, job_id: str) -> bool:
        return job_id in self._running

    @property
    def running_job_ids(self) -> set[str]:
        return set(self._running)

    def start(self, job_id: str) -> asyncio.Task[RunRecord]:
        """Claim the job and schedule its run. Must be called from the event loop.

        Raises JobNotFoundError or AlreadyRunningError before anything is spawned.
        """
        if job_id in self._running:
            raise AlreadyRunningError(f"Job already running: {job_id}", {"job_id": job_id})
        job = self._jobs.get(job_id)

        task = asyncio.get_running_loop().create_task(self._run(job))
        self._running[job_id] = task
        task.add_done_callback(lambda t: self._release(job_id, t))
        return task

    def _release(self, job_id: str, task: asyncio.Task[RunRecord]) -> None:
        if self._running.get(job_id) is task:
            del self._running[job_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Run could not be recorded", job_id=job_id, error=str(task.exception()))

    async def run_now(self, job_id: str) -> RunRecord:
        """Run a job immediately and return its finalized run record."""
        return await self.start(job_id)

    def trigger(self, job_id: str) -> None:
        """Scheduler entry point: hand off without waiting, report instead of raising."""
        try:
            self.start(job_id)
        except AlreadyRunningError:
            logger.warning("Job already running, skipping trigger", job_id=job_id)
        except JobNotFoundError:
            logger.warning("Triggered job no longer exists", job_id=job_id)

    async def wait_idle(self, timeout_s: float | None = None) -> bool:
        """Wait for in-flight runs. Returns False if some were still running at timeout."""
        tasks = list(self._running.values())
        if not tasks:
            return True
        _done, pending = await asyncio.wait(tasks, timeout=timeout_s)
        return not pending

    async def _run(self, job: Job) -> RunRecord:
        run = self._jobs.begin_run(job.id)
        command = job.effective_command(self._assistant_bin)
        logger.info("Running job", job_id=job.id, run_id=run.id, name=job.name)

        exit_code = START_FAILURE_EXIT_CODE
        success = False
        note: str | None = None
        try:
            with self._jobs.run_log.open_sinks(run.id) as (stdout_sink, stderr_sink):
                outcome = await self._executor.execute(
                    command,
                    job.working_directory,
                    stdout_sink.write,
                    stderr_sink.write,
                )
            exit_code = outcome.exit_code
            success = outcome.success
            if outcome.timed_out:
                note = "cronos: job exceeded its execution time limit and was killed\n"
        except ExecutionStartError as err:
            logger.error("Job failed to start", job_id=job.id, run_id=run.id, error=str(err))
            note = f"cronos: {err}\n"
        except Exception:
            logger.exception("Job run failed unexpectedly", job_id=job.id, run_id=run.id)
        finally:
            finished = self._finalize(job.id, run, exit_code, success)

        if finished is None:
            # The job was deleted mid-run along with its index entry and logs.
            finished = run
        elif note:
            self._append_stderr(run.id, note)

        log = logger.info if success else logger.warning
        log("Job finished", job_id=job.id, run_id=run.id, exit_code=exit_code, success=success)
        return finished

    def _finalize(self, job_id: str, run: RunRecord, exit_code: int, success: bool) -> RunRecord | None:
        """Close the run record and the job's last-run summary. None if the run left the index."""
        finished: RunRecord | None = run
        try:
            finished = self._jobs.finish_run(run.id, exit_code, success)
        except CronosError as err:
            logger.error("Could not finalize run record", run_id=run.id, error=str(err))
        try:
            self._jobs.record_last_run(job_id, success, finished.ended_at if finished else None)
        except CronosError as err:
            logger.error("Could not record last run", job_id=job_id, error=str(err))
        return finished

    def _append_stderr(self, run_id: str, message: str) -> None:
        try:
            self._jobs.run_log.append(run_id, "stderr", message.encode())
        except LogStorageError as err:
            logger.warning("Could not write failure note to run log", run_id=run_id, error=str(err))
