"""Store abstraction: Protocol for the shared job and run-index documents."""

from __future__ import annotations

from typing import Protocol

from cronos.jobs.types import Job, RunRecord


class Store(Protocol):
    """Interface for job/run-index persistence.

    Implementations load and save whole documents. There is no locking
    between processes: the last writer wins.
    """

    def load_jobs(self) -> list[Job]:
        """Load the job collection. Missing document yields []."""
        ...

    def save_jobs(self, jobs: list[Job]) -> None:
        """Replace the job collection atomically."""
        ...

    def load_runs(self) -> list[RunRecord]:
        """Load the run index. Missing document yields []."""
        ...

    def save_runs(self, runs: list[RunRecord]) -> None:
        """Replace the run index atomically."""
        ...

    def jobs_version(self) -> int:
        """Opaque change marker for the job document, 0 when absent."""
        ...
