"""Timezone helpers for schedules, quiet hours and daily caps."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from news_digest.config.schemas import Schedule
from news_digest.store.models import Edition


def local_now(timezone: str, now: datetime) -> datetime:
    """Convert a UTC instant to wall-clock time in a timezone.

    Args:
        timezone: IANA timezone name.
        now: Instant to convert.

    Returns:
        Timezone-aware local datetime.
    """
    return now.astimezone(ZoneInfo(timezone))


def local_midnight(timezone: str, now: datetime) -> datetime:
    """Start of the local day containing ``now``, as a UTC instant.

    Args:
        timezone: IANA timezone name.
        now: Reference instant.

    Returns:
        Local midnight converted to UTC.
    """
    local = local_now(timezone, now)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(UTC)


def current_edition(schedule: Schedule, now: datetime) -> Edition:
    """Pick the edition whose scheduled hour is closest to the local hour.

    Distances are plain hour differences (no wrap at midnight); ties go to
    the evening edition.

    Args:
        schedule: The user's schedule.
        now: Reference instant.

    Returns:
        MORNING or EVENING.
    """
    hour = local_now(schedule.timezone, now).hour
    morning_dist = abs(hour - schedule.morning)
    evening_dist = abs(hour - schedule.evening)
    return Edition.MORNING if morning_dist < evening_dist else Edition.EVENING


def is_due(schedule: Schedule, now: datetime) -> bool:
    """Check whether the local hour matches a scheduled edition hour."""
    hour = local_now(schedule.timezone, now).hour
    return hour in (schedule.morning, schedule.evening)
