from pathlib import Path

import pytest

from cronos.jobs.manager import JobManager
from cronos.jobs.types import DailySchedule, JobDraft, WeeklySchedule
from cronos.storage.json_store import JsonFileStore
from cronos.storage.run_log import RunLog


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    return tmp_path / "cronos"


@pytest.fixture
def store(store_root: Path) -> JsonFileStore:
    return JsonFileStore(store_root)


@pytest.fixture
def run_log(store_root: Path) -> RunLog:
    return RunLog(store_root)


@pytest.fixture
def job_manager(store: JsonFileStore, run_log: RunLog) -> JobManager:
    manager = JobManager(store, run_log)
    manager.reload()
    return manager


def make_draft(
    name: str = "Backup",
    command: str = "echo hello",
    schedule: DailySchedule | WeeklySchedule | None = None,
    working_directory: str = "~",
    enabled: bool = True,
) -> JobDraft:
    return JobDraft(
        name=name,
        command=command,
        working_directory=working_directory,
        schedule=schedule or DailySchedule(hour=9, minute=0),
        is_enabled=enabled,
    )


@pytest.fixture(name="make_draft")
def make_draft_fixture():
    return make_draft
