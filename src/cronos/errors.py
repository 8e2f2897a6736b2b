"""Exception hierarchy shared by the store, the executor and the coordinator."""

from __future__ import annotations

from typing import Any


class CronosError(Exception):
    """Base class for errors surfaced to clients."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(CronosError):
    """A persisted document exists but cannot be read or parsed."""


class PersistenceError(CronosError):
    """Writing a persisted document failed. The prior in-memory state is kept."""


class JobNotFoundError(CronosError):
    """No job with the requested id exists in the collection."""


class ExecutionStartError(CronosError):
    """The job's process could not be spawned."""


class LogStorageError(CronosError):
    """A run log file could not be opened or written."""


class AlreadyRunningError(CronosError):
    """A run was requested for a job that already has one in flight."""
