"""Schedule expansion: turn a treatment plan into concrete dose reminders."""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from core.errors import InvalidInputError
from core.models import DoseReminder, Schedule


def parse_start_time(start_time: str) -> Tuple[int, int]:
    """
    Parse a daily start time.

    Args:
        start_time: Time of the first dose as "HH:MM"

    Returns:
        (hour, minute)

    Raises:
        InvalidInputError: If the value is not a valid 24h clock time
    """
    parts = start_time.strip().split(":") if start_time else []
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise InvalidInputError(
            f"Start time must be in HH:MM format, got {start_time!r}",
            start_time=start_time
        )

    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise InvalidInputError(
            f"Start time {start_time!r} is not a valid clock time",
            start_time=start_time
        )
    return hour, minute


def check_horizon(anchor: datetime, duration_days: int) -> None:
    """
    Ensure every dose of a plan starting on anchor is a representable datetime.

    Raises:
        InvalidInputError: If the treatment would end past datetime.max
    """
    try:
        anchor + timedelta(days=duration_days + 1)
    except OverflowError:
        raise InvalidInputError(
            "Treatment duration is too long",
            duration_days=duration_days
        ) from None


def dose_times(
    schedule: Schedule,
    anchor: Optional[datetime] = None
) -> List[datetime]:
    """
    Compute every dose instant implied by a schedule.

    Day d, dose k lands at midnight of (anchor date + d days) plus
    start_hour + k * interval_hours hours and start_minute minutes.
    Hours past 23 roll over into the following calendar day.

    Args:
        schedule: Treatment plan
        anchor: Day the plan starts on (defaults to schedule.created_at)

    Returns:
        Instants ordered day-major, then by dose index
    """
    anchor = anchor if anchor is not None else schedule.created_at
    check_horizon(anchor, schedule.duration_days)
    hour, minute = parse_start_time(schedule.start_time)
    first_midnight = anchor.replace(hour=0, minute=0, second=0, microsecond=0)

    times = []
    for day in range(schedule.duration_days):
        midnight = first_midnight + timedelta(days=day)
        for dose in range(schedule.daily_dose_count()):
            times.append(
                midnight + timedelta(
                    hours=hour + dose * schedule.interval_hours,
                    minutes=minute
                )
            )
    return times


def expand_schedule(
    schedule: Schedule,
    anchor: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> List[DoseReminder]:
    """
    Expand a persisted schedule into its unpersisted dose reminders.

    Produces exactly duration_days * (24 // interval_hours) reminders.

    Args:
        schedule: Schedule with an assigned id
        anchor: Day the plan starts on (defaults to schedule.created_at)
        now: Creation timestamp stamped on every reminder

    Raises:
        InvalidInputError: If the schedule has no id or a malformed start time
    """
    if schedule.id is None:
        raise InvalidInputError("Schedule must be persisted before expansion")

    return [
        DoseReminder.create(
            schedule_id=schedule.id,
            medicine_id=schedule.medicine_id,
            scheduled_time=scheduled_time,
            now=now
        )
        for scheduled_time in dose_times(schedule, anchor)
    ]
