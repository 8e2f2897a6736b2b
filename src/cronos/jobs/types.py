"""Job, schedule, and run-history domain types.

Field names serialize to camelCase so jobs.json and logs/index.json stay
readable by every client sharing the store.
"""

from __future__ import annotations

import os
import shlex
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

JobType = Literal["claude", "customCommand"]

WEEKDAY_NAMES = ["", "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


class DailySchedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["daily"] = Field(default="daily", exclude=True)
    hour: int = Field(ge=0, le=23)
    minute: int = Field(ge=0, le=59)


class WeeklySchedule(BaseModel):
    """Weekly recurrence. weekday uses 1=Sunday through 7=Saturday."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["weekly"] = Field(default="weekly", exclude=True)
    weekday: int = Field(ge=1, le=7)
    hour: int = Field(ge=0, le=23)
    minute: int = Field(ge=0, le=59)


Schedule = Annotated[Union[DailySchedule, WeeklySchedule], Field(discriminator="kind")]


def _unwrap_schedule(value: Any) -> Any:
    """Accept the wire form {"daily": {...}} / {"weekly": {...}} as well as flat dicts."""
    if isinstance(value, dict) and "kind" not in value and len(value) == 1:
        kind, fields = next(iter(value.items()))
        if kind in ("daily", "weekly") and isinstance(fields, dict):
            return {"kind": kind, **fields}
    return value


def _wrap_schedule(schedule: DailySchedule | WeeklySchedule) -> dict[str, dict[str, int]]:
    return {schedule.kind: schedule.model_dump()}


def _normalize_timestamp(value: datetime | None) -> datetime | None:
    """Store timestamps as whole-second UTC; naive values are read as local time."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc).replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class _JobFields(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, validate_assignment=True)

    name: str
    command: str = ""
    working_directory: str = "~"
    schedule: Schedule
    is_enabled: bool = False
    job_type: JobType = "customCommand"
    claude_prompt: str | None = None
    context_directory: str | None = None

    @field_validator("schedule", mode="before")
    @classmethod
    def _parse_schedule(cls, value: Any) -> Any:
        return _unwrap_schedule(value)

    @field_serializer("schedule")
    def _serialize_schedule(self, schedule: DailySchedule | WeeklySchedule) -> dict[str, dict[str, int]]:
        return _wrap_schedule(schedule)


class JobDraft(_JobFields):
    """Fields a client supplies when creating a job."""

    is_enabled: bool = True

    @model_validator(mode="after")
    def _check_payload(self) -> JobDraft:
        if not self.name.strip():
            raise ValueError("Name is required")
        if self.job_type == "customCommand" and not self.command.strip():
            raise ValueError("Command is required for custom jobs")
        if self.job_type == "claude" and not (self.claude_prompt or "").strip():
            raise ValueError("Prompt is required for Claude jobs")
        return self


class Job(_JobFields):
    id: str = Field(frozen=True)
    last_run: datetime | None = None
    last_run_successful: bool | None = None

    @field_validator("last_run")
    @classmethod
    def _normalize_last_run(cls, value: datetime | None) -> datetime | None:
        return _normalize_timestamp(value)

    @field_serializer("last_run")
    def _serialize_last_run(self, value: datetime | None) -> str | None:
        return format_timestamp(value) if value else None

    def effective_command(self, assistant_bin: str = "claude") -> str:
        """The shell command this job runs."""
        if self.job_type == "customCommand":
            return self.command
        cmd = f"{assistant_bin} -p {shlex.quote(self.claude_prompt or '')}"
        if self.context_directory:
            cmd += f" {shlex.quote(os.path.expanduser(self.context_directory))}"
        return cmd


class RunRecord(BaseModel):
    """One execution attempt of a job. No ended_at means the run is in flight."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, validate_assignment=True)

    id: str = Field(frozen=True)
    job_id: str
    started_at: datetime
    ended_at: datetime | None = None
    exit_code: int | None = None
    success: bool | None = None

    @field_validator("started_at", "ended_at")
    @classmethod
    def _normalize(cls, value: datetime | None) -> datetime | None:
        return _normalize_timestamp(value)

    @field_serializer("started_at", "ended_at")
    def _serialize_timestamps(self, value: datetime | None) -> str | None:
        return format_timestamp(value) if value else None

    @property
    def in_flight(self) -> bool:
        return self.ended_at is None

    @property
    def duration(self) -> timedelta | None:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at


class RunLogContent(BaseModel):
    stdout: str = ""
    stderr: str = ""


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return "<1s"
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m {int(seconds % 60)}s"
    return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60)}m"
