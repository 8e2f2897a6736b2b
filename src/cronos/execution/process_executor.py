"""ProcessExecutor: runs one shell command via async subprocess."""

from __future__ import annotations

import asyncio
import os
import signal
from dataclasses import dataclass
from typing import Callable

from cronos.errors import ExecutionStartError
from cronos.infrastructure.config import OUTPUT_CHUNK_SIZE, ExecutionConfig
from cronos.infrastructure.logger import logger

OutputSink = Callable[[bytes], None]


@dataclass
class ProcessOutcome:
    exit_code: int
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


def expand_working_directory(path: str) -> str:
    return os.path.expanduser(path) if path else os.path.expanduser("~")


class ProcessExecutor:
    """Runs a command through the shell and streams its output as it arrives."""

    def __init__(self, config: ExecutionConfig | None = None) -> None:
        self._config = config or ExecutionConfig()

    async def execute(
        self,
        command: str,
        working_directory: str,
        on_stdout: OutputSink,
        on_stderr: OutputSink,
        timeout_s: float | None = None,
    ) -> ProcessOutcome:
        """Run command to completion and return its outcome.

        Raises ExecutionStartError when the process cannot be spawned. A
        non-zero exit is an outcome, not an error.
        """
        cwd = expand_working_directory(working_directory)
        if timeout_s is None:
            timeout_s = self._config.get_timeout()

        if not os.path.isdir(cwd):
            raise ExecutionStartError(f"Working directory does not exist: {cwd}", {"cwd": cwd})

        try:
            proc = await asyncio.create_subprocess_exec(
                self._config.shell, "-c", command,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as err:
            raise ExecutionStartError(f"Failed to start process: {err}", {"shell": self._config.shell, "cwd": cwd}) from err

        logger.debug("Process started", pid=proc.pid, cwd=cwd)

        async def pump(stream: asyncio.StreamReader | None, sink: OutputSink) -> None:
            assert stream is not None
            while True:
                chunk = await stream.read(OUTPUT_CHUNK_SIZE)
                if not chunk:
                    break
                sink(chunk)

        timed_out = False
        try:
            await asyncio.wait_for(
                asyncio.gather(pump(proc.stdout, on_stdout), pump(proc.stderr, on_stderr), proc.wait()),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning("Process exceeded execution ceiling, killing", pid=proc.pid, timeout_s=timeout_s)
            _kill_process_group(proc)
            await proc.wait()

        exit_code = proc.returncode if proc.returncode is not None else -1
        return ProcessOutcome(exit_code=exit_code, timed_out=timed_out)


def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        try:
            proc.kill()
        except ProcessLookupError:
            pass
