"""Tests for the process executor."""

import asyncio

import pytest

from cronos.errors import ExecutionStartError
from cronos.execution.process_executor import ProcessExecutor, expand_working_directory
from cronos.infrastructure.config import ExecutionConfig


class Capture:
    def __init__(self) -> None:
        self.chunks: list[bytes] = []

    def __call__(self, data: bytes) -> None:
        self.chunks.append(data)

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)


@pytest.fixture
def executor() -> ProcessExecutor:
    return ProcessExecutor(ExecutionConfig(shell="/bin/sh", job_timeout=0))


class TestExpandWorkingDirectory:
    def test_expands_home(self, monkeypatch):
        monkeypatch.setenv("HOME", "/home/tester")
        assert expand_working_directory("~/work") == "/home/tester/work"

    def test_empty_means_home(self, monkeypatch):
        monkeypatch.setenv("HOME", "/home/tester")
        assert expand_working_directory("") == "/home/tester"

    def test_absolute_unchanged(self):
        assert expand_working_directory("/tmp") == "/tmp"


class TestProcessExecutor:
    @pytest.mark.asyncio
    async def test_success(self, executor, tmp_path):
        out, err = Capture(), Capture()
        outcome = await executor.execute("echo hello", str(tmp_path), out, err)
        assert outcome.exit_code == 0
        assert outcome.success is True
        assert out.data == b"hello\n"
        assert err.data == b""

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, executor, tmp_path):
        out, err = Capture(), Capture()
        outcome = await executor.execute("echo oops >&2; exit 2", str(tmp_path), out, err)
        assert outcome.exit_code == 2
        assert outcome.success is False
        assert err.data == b"oops\n"

    @pytest.mark.asyncio
    async def test_shell_operators_and_cwd(self, executor, tmp_path):
        (tmp_path / "a.txt").write_text("x")
        out, err = Capture(), Capture()
        outcome = await executor.execute("ls | grep a.txt && pwd", str(tmp_path), out, err)
        assert outcome.success
        assert out.data.decode().splitlines() == ["a.txt", str(tmp_path)]

    @pytest.mark.asyncio
    async def test_streams_before_exit(self, executor, tmp_path):
        out, err = Capture(), Capture()
        task = asyncio.create_task(executor.execute("printf first; sleep 1; printf second", str(tmp_path), out, err))
        for _ in range(50):
            await asyncio.sleep(0.02)
            if out.chunks:
                break
        assert out.data == b"first"
        assert not task.done()
        outcome = await task
        assert outcome.success
        assert out.data == b"firstsecond"

    @pytest.mark.asyncio
    async def test_missing_working_directory(self, executor, tmp_path):
        with pytest.raises(ExecutionStartError):
            await executor.execute("true", str(tmp_path / "nope"), Capture(), Capture())

    @pytest.mark.asyncio
    async def test_missing_shell(self, tmp_path):
        executor = ProcessExecutor(ExecutionConfig(shell=str(tmp_path / "no-shell")))
        with pytest.raises(ExecutionStartError):
            await executor.execute("true", str(tmp_path), Capture(), Capture())

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, executor, tmp_path):
        out = Capture()
        outcome = await executor.execute("echo started; sleep 30", str(tmp_path), out, Capture(), timeout_s=0.3)
        assert outcome.timed_out is True
        assert outcome.success is False
        assert out.data == b"started\n"

    @pytest.mark.asyncio
    async def test_default_timeout_from_config(self, tmp_path):
        executor = ProcessExecutor(ExecutionConfig(shell="/bin/sh", job_timeout=0.3))
        outcome = await executor.execute("sleep 30", str(tmp_path), Capture(), Capture())
        assert outcome.timed_out is True
