"""Barrel re-export of all domain types."""

from cronos.execution.process_executor import ProcessOutcome
from cronos.jobs.types import (
    DailySchedule,
    Job,
    JobDraft,
    JobType,
    RunLogContent,
    RunRecord,
    Schedule,
    WeeklySchedule,
)

__all__ = [
    "DailySchedule",
    "Job",
    "JobDraft",
    "JobType",
    "ProcessOutcome",
    "RunLogContent",
    "RunRecord",
    "Schedule",
    "WeeklySchedule",
]
