"""Per-run stdout/stderr capture files under logs/."""

from __future__ import annotations

import contextlib
from pathlib import Path
from typing import BinaryIO, Iterator

from cronos.errors import LogStorageError
from cronos.infrastructure.config import CRONOS_DIR, LOGS_DIRNAME
from cronos.infrastructure.logger import logger
from cronos.jobs.types import RunLogContent


class LogSink:
    """Append target for one output stream of a run.

    Write failures are logged once and further output is dropped; a broken
    log file never aborts the run that produces it.
    """

    def __init__(self, run_id: str, stream: str, handle: BinaryIO | None) -> None:
        self._run_id = run_id
        self._stream = stream
        self._handle = handle
        self.bytes_written = 0

    def write(self, data: bytes) -> None:
        if self._handle is None or not data:
            return
        try:
            self._handle.write(data)
            self._handle.flush()
            self.bytes_written += len(data)
        except OSError as err:
            logger.warning("Run log write failed, dropping further output", run_id=self._run_id, stream=self._stream, error=str(err))
            self._close_quietly()

    def close(self) -> None:
        self._close_quietly()

    def _close_quietly(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            handle.close()
        except OSError as err:
            logger.warning("Run log close failed", run_id=self._run_id, stream=self._stream, error=str(err))


class RunLog:
    """Raw output bytes for each run, keyed by run id."""

    def __init__(self, root: Path | None = None) -> None:
        self.logs_dir = (root or CRONOS_DIR) / LOGS_DIRNAME

    def paths(self, run_id: str) -> tuple[Path, Path]:
        return self.logs_dir / f"{run_id}.stdout", self.logs_dir / f"{run_id}.stderr"

    def _open(self, path: Path) -> BinaryIO:
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            return path.open("ab")
        except OSError as err:
            raise LogStorageError(f"Cannot open run log {path}: {err}", {"path": str(path)}) from err

    @contextlib.contextmanager
    def open_sinks(self, run_id: str) -> Iterator[tuple[LogSink, LogSink]]:
        """Yield (stdout, stderr) sinks for a run, closing them on exit.

        A log file that cannot be opened yields a sink that discards output.
        """
        sinks: list[LogSink] = []
        for stream, path in zip(("stdout", "stderr"), self.paths(run_id)):
            try:
                handle: BinaryIO | None = self._open(path)
            except LogStorageError as err:
                logger.warning("Run log unavailable, output will not be captured", run_id=run_id, stream=stream, error=str(err))
                handle = None
            sinks.append(LogSink(run_id, stream, handle))
        try:
            yield sinks[0], sinks[1]
        finally:
            for sink in sinks:
                sink.close()

    def append(self, run_id: str, stream: str, data: bytes) -> None:
        """Append to one stream of a finished or running run."""
        stdout_path, stderr_path = self.paths(run_id)
        path = stdout_path if stream == "stdout" else stderr_path
        with self._open(path) as fh:
            try:
                fh.write(data)
            except OSError as err:
                raise LogStorageError(f"Cannot write run log {path}: {err}", {"path": str(path)}) from err

    def read(self, run_id: str) -> RunLogContent:
        """Read both streams in full. Missing files read as empty."""
        stdout_path, stderr_path = self.paths(run_id)
        return RunLogContent(stdout=self._read_text(stdout_path), stderr=self._read_text(stderr_path))

    def delete(self, run_id: str) -> None:
        """Remove a run's log files. Missing files are ignored."""
        for path in self.paths(run_id):
            try:
                path.unlink(missing_ok=True)
            except OSError as err:
                logger.warning("Could not delete run log", path=str(path), error=str(err))

    @staticmethod
    def _read_text(path: Path) -> str:
        try:
            return path.read_bytes().decode("utf-8", errors="replace")
        except FileNotFoundError:
            return ""
        except OSError as err:
            logger.warning("Could not read run log", path=str(path), error=str(err))
            return ""
