"""Tests for the orchestrator wiring."""

import asyncio

import pytest

from cronos.app import Orchestrator
from cronos.execution.process_executor import ProcessExecutor
from cronos.infrastructure.config import ExecutionConfig
from cronos.jobs.manager import JobManager
from cronos.storage.json_store import JsonFileStore
from cronos.storage.run_log import RunLog


@pytest.fixture
def orchestrator(store_root) -> Orchestrator:
    return Orchestrator(
        root=store_root,
        executor=ProcessExecutor(ExecutionConfig(shell="/bin/sh", job_timeout=0)),
        store_poll_interval=0.05,
    )


class TestHostLifecycle:
    @pytest.mark.asyncio
    async def test_mutations_reschedule(self, orchestrator, make_draft):
        await orchestrator.start()
        try:
            job = orchestrator.create(make_draft())
            assert orchestrator.scheduler.next_fire(job.id) is not None

            orchestrator.toggle(job.id)
            assert orchestrator.scheduler.next_fire(job.id) is None

            orchestrator.toggle(job.id)
            assert orchestrator.scheduler.next_fire(job.id) is not None

            orchestrator.delete(job.id)
            assert orchestrator.scheduler.scheduled_job_ids() == []
        finally:
            await orchestrator.shutdown()

    @pytest.mark.asyncio
    async def test_picks_up_jobs_created_by_other_client(self, orchestrator, store_root, make_draft):
        await orchestrator.start()
        try:
            other_client = JobManager(JsonFileStore(store_root), RunLog(store_root))
            job = other_client.create(make_draft(name="external"))

            for _ in range(40):
                await asyncio.sleep(0.05)
                if orchestrator.scheduler.next_fire(job.id):
                    break
            assert orchestrator.get(job.id).name == "external"
            assert orchestrator.scheduler.next_fire(job.id) is not None
        finally:
            await orchestrator.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_in_flight_runs(self, orchestrator, make_draft, tmp_path):
        await orchestrator.start()
        job = orchestrator.create(make_draft(command="sleep 0.2; echo done", working_directory=str(tmp_path)))
        orchestrator.coordinator.trigger(job.id)
        await asyncio.sleep(0.05)

        await orchestrator.shutdown()

        [run] = orchestrator.list_runs(job.id)
        assert run.success is True
        assert orchestrator.read_run_log(run.id).stdout == "done\n"
        assert orchestrator.scheduler.scheduled_job_ids() == []


class TestOneShotClient:
    @pytest.mark.asyncio
    async def test_run_now_without_scheduler(self, orchestrator, make_draft, tmp_path):
        orchestrator.load()
        job = orchestrator.create(make_draft(command="echo hello", working_directory=str(tmp_path)))

        run = await orchestrator.run_now(job.id)

        assert run.success is True
        assert orchestrator.read_run_log(run.id).stdout == "hello\n"
        assert orchestrator.scheduler.scheduled_job_ids() == []

    def test_load_creates_store_directories(self, orchestrator, store_root):
        assert orchestrator.load() == []
        assert (store_root / "logs").is_dir()
