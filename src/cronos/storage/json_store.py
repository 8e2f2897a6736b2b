"""JSON file store: jobs.json and logs/index.json under the cronos directory."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from cronos.errors import ConfigurationError, PersistenceError
from cronos.infrastructure.config import CRONOS_DIR, JOBS_FILENAME, LOGS_DIRNAME, RUN_INDEX_FILENAME
from cronos.infrastructure.fs import atomic_write_text, file_mtime_ns
from cronos.infrastructure.logger import logger
from cronos.jobs.types import Job, RunRecord

ModelT = TypeVar("ModelT", bound=BaseModel)

_jobs_adapter = TypeAdapter(list[Job])
_runs_adapter = TypeAdapter(list[RunRecord])


class JsonFileStore:
    """Whole-document JSON persistence shared by every client."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root or CRONOS_DIR
        self.jobs_file = self.root / JOBS_FILENAME
        self.logs_dir = self.root / LOGS_DIRNAME
        self.run_index_file = self.logs_dir / RUN_INDEX_FILENAME

    def ensure_directories(self) -> None:
        """Create the store root and logs directory. Safe to call repeatedly."""
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    # --- Jobs ---

    def load_jobs(self) -> list[Job]:
        return self._load(self.jobs_file, _jobs_adapter)

    def save_jobs(self, jobs: list[Job]) -> None:
        self._save(self.jobs_file, _jobs_adapter, jobs)

    def jobs_version(self) -> int:
        return file_mtime_ns(self.jobs_file)

    # --- Run index ---

    def load_runs(self) -> list[RunRecord]:
        return self._load(self.run_index_file, _runs_adapter)

    def save_runs(self, runs: list[RunRecord]) -> None:
        self._save(self.run_index_file, _runs_adapter, runs)

    # --- Internal ---

    def _load(self, path: Path, adapter: TypeAdapter[list[ModelT]]) -> list[ModelT]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as err:
            raise ConfigurationError(f"Cannot read {path}: {err}", {"path": str(path)}) from err
        except UnicodeDecodeError as err:
            raise ConfigurationError(f"Corrupt document {path}: not valid UTF-8", {"path": str(path)}) from err

        if not raw.strip():
            return []

        try:
            return adapter.validate_json(raw)
        except ValidationError as err:
            raise ConfigurationError(f"Corrupt document {path}: {err.error_count()} invalid field(s)", {"path": str(path)}) from err

    def _save(self, path: Path, adapter: TypeAdapter[list[ModelT]], items: list[ModelT]) -> None:
        data = adapter.dump_python(items, mode="json", by_alias=True, exclude_none=True)
        try:
            self.ensure_directories()
            atomic_write_text(path, json.dumps(data, indent=2, sort_keys=True) + "\n")
        except OSError as err:
            logger.error("Failed to save document", path=str(path), error=str(err))
            raise PersistenceError(f"Cannot write {path}: {err}", {"path": str(path)}) from err
