"""Next-run computation and labels for daily and weekly schedules."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo

from croniter import croniter

from cronos.infrastructure.logger import logger
from cronos.jobs.types import WEEKDAY_NAMES, DailySchedule, WeeklySchedule

# Enough to step past a repeated or skipped wall-clock hour.
_MAX_CANDIDATES = 3


def cron_expression(schedule: DailySchedule | WeeklySchedule) -> str:
    """Render a schedule as a five-field cron expression.

    Cron counts weekdays from 0=Sunday, one below the stored 1=Sunday numbering.
    """
    if isinstance(schedule, WeeklySchedule):
        return f"{schedule.minute} {schedule.hour} * * {schedule.weekday - 1}"
    return f"{schedule.minute} {schedule.hour} * * *"


def next_run(schedule: DailySchedule | WeeklySchedule, after: datetime | None = None) -> datetime:
    """Return the first matching wall-clock instant strictly after `after`.

    Naive datetimes are treated as local wall time. Aware datetimes keep their
    zone: matching is done on wall time, a repeated hour fires on its first
    occurrence only and a skipped hour moves forward past the gap. Never
    raises: if no match can be computed, `after` is returned and callers treat
    the job as already due.
    """
    if after is None:
        after = datetime.now()
    zone = after.tzinfo

    try:
        candidates = croniter(cron_expression(schedule), after.replace(tzinfo=None))
        for _ in range(_MAX_CANDIDATES):
            candidate = _localize(candidates.get_next(datetime), zone)
            if _instant(candidate) > _instant(after):
                return candidate
    except (ValueError, KeyError, OverflowError) as err:
        logger.warning("Could not compute next run", schedule=display_string(schedule), error=str(err))
        return after

    logger.warning("No future run found", schedule=display_string(schedule), after=after.isoformat())
    return after


def _localize(wall: datetime, zone: tzinfo | None) -> datetime:
    if zone is None:
        return wall
    # Round-trip through UTC so times inside a DST gap become real instants.
    return wall.replace(tzinfo=zone, fold=0).astimezone(timezone.utc).astimezone(zone)


def _instant(value: datetime) -> datetime:
    # Aware values sharing a tzinfo compare by wall time, so compare in UTC.
    return value.astimezone(timezone.utc) if value.tzinfo else value


def display_string(schedule: DailySchedule | WeeklySchedule) -> str:
    time_string = f"{schedule.hour}:{schedule.minute:02d}"
    if isinstance(schedule, WeeklySchedule):
        day_name = WEEKDAY_NAMES[schedule.weekday] if 1 <= schedule.weekday <= 7 else "Unknown"
        return f"{day_name} at {time_string}"
    return f"Daily at {time_string}"
