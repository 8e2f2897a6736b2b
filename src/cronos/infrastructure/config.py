"""Configuration constants, .env parsing, and execution settings."""

from __future__ import annotations

import os
from pathlib import Path


def read_env_file(keys: list[str]) -> dict[str, str]:
    """Parse .env file and return values for requested keys.

    Does NOT load into os.environ; callers decide what to do with values.
    Jobs inherit the process environment, so nothing read here leaks into
    the commands they run.
    """
    env_file = Path.cwd() / ".env"
    try:
        content = env_file.read_text()
    except OSError:
        return {}

    result: dict[str, str] = {}
    wanted = set(keys)

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        eq_idx = trimmed.find("=")
        if eq_idx == -1:
            continue
        key = trimmed[:eq_idx].strip()
        if key not in wanted:
            continue
        value = trimmed[eq_idx + 1 :].strip()
        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]
        if value:
            result[key] = value

    return result


_ENV_KEYS = [
    "CRONOS_HOME",
    "CRONOS_SHELL",
    "CLAUDE_BIN",
    "CRONOS_JOB_TIMEOUT",
    "STORE_POLL_INTERVAL",
    "TIMER_MAX_SLEEP",
]

# Read config values from .env (os.environ wins).
_env_config = read_env_file(_ENV_KEYS)


def _setting(key: str, default: str) -> str:
    return os.environ.get(key) or _env_config.get(key, default)


def _float_setting(key: str, default: float, minimum: float = 0.0) -> float:
    raw = _setting(key, str(default))
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(minimum, value)


HOME_DIR: Path = Path.home()

# Shared store root: jobs.json and logs/ live here for every client.
CRONOS_DIR: Path = Path(_setting("CRONOS_HOME", str(HOME_DIR / ".cronos"))).expanduser()
JOBS_FILENAME: str = "jobs.json"
LOGS_DIRNAME: str = "logs"
RUN_INDEX_FILENAME: str = "index.json"

SHELL: str = _setting("CRONOS_SHELL", "/bin/bash")
CLAUDE_BIN: str = _setting("CLAUDE_BIN", "claude")

JOB_TIMEOUT: float = _float_setting("CRONOS_JOB_TIMEOUT", 0.0)  # seconds, 0 = no ceiling
STORE_POLL_INTERVAL: float = _float_setting("STORE_POLL_INTERVAL", 2.0, minimum=0.1)
TIMER_MAX_SLEEP: float = _float_setting("TIMER_MAX_SLEEP", 30.0, minimum=0.05)
PAST_DEADLINE_OFFSET_S: float = 1.0
OUTPUT_CHUNK_SIZE: int = 4096


class ExecutionConfig:
    """Execution settings for the process executor."""

    def __init__(self, shell: str = SHELL, job_timeout: float = JOB_TIMEOUT) -> None:
        self.shell = shell
        self.job_timeout = job_timeout

    def get_timeout(self) -> float | None:
        """Execution ceiling in seconds, or None when jobs may run unbounded."""
        return self.job_timeout if self.job_timeout > 0 else None
