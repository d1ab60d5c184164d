"""Recurrence math for recurring billing definitions.

The next generation date is always re-derived from "now" rather than from the
previously scheduled date: a scheduler that was down for several periods
produces one catch-up invoice, not one per missed period.

Example:
    >>> from datetime import datetime, timezone
    >>> next_occurrence("monthly", 1, datetime(2025, 3, 15, tzinfo=timezone.utc))
    datetime.datetime(2025, 4, 1, 0, 0, tzinfo=datetime.timezone.utc)
"""

import calendar
from datetime import datetime

from estatebill.errors import ValidationError
from estatebill.models.recurring_billing import Periodicity

MIN_GENERATION_DAY = 1
MAX_GENERATION_DAY = 31


def validate_generation_day(generation_day: int) -> int:
    """Return the generation day if it lies in 1-31.

    Raises:
        ValidationError: If the day is not an integer in range
    """
    if isinstance(generation_day, bool) or not isinstance(generation_day, int):
        raise ValidationError(f"Generation day must be an integer, got {generation_day!r}")
    if not MIN_GENERATION_DAY <= generation_day <= MAX_GENERATION_DAY:
        raise ValidationError(
            f"Generation day must be between {MIN_GENERATION_DAY} and {MAX_GENERATION_DAY}, "
            f"got {generation_day}"
        )
    return generation_day


def months_for(periodicity: Periodicity | str) -> int:
    """Number of months between two occurrences.

    Raises:
        ValidationError: If the periodicity is not recognized
    """
    try:
        return Periodicity.parse(periodicity).months
    except ValueError as e:
        raise ValidationError(f"Unknown periodicity: {periodicity!r}") from e


def clamp_day(year: int, month: int, day: int) -> int:
    """Clamp a day of month to the last valid day of that month."""
    return min(day, calendar.monthrange(year, month)[1])


def add_months(year: int, month: int, count: int) -> tuple[int, int]:
    """Shift a (year, month) pair by count months, rolling over years."""
    index = year * 12 + (month - 1) + count
    return index // 12, index % 12 + 1


def next_occurrence(
    periodicity: Periodicity | str,
    generation_day: int,
    now: datetime,
) -> datetime:
    """Compute the next generation date strictly after now.

    The candidate is generation_day in now's month (clamped to the month
    length, at midnight in now's timezone). When the candidate is not after
    now, the month is advanced by the periodicity from now's month and the
    day is clamped again for the target month.

    Args:
        periodicity: monthly, bimonthly or quarterly
        generation_day: Day of month 1-31
        now: Reference time

    Returns:
        Next occurrence at midnight, carrying now's tzinfo

    Raises:
        ValidationError: If periodicity or generation_day is invalid
    """
    step = months_for(periodicity)
    validate_generation_day(generation_day)

    candidate = now.replace(
        day=clamp_day(now.year, now.month, generation_day),
        hour=0,
        minute=0,
        second=0,
        microsecond=0,
    )
    if candidate > now:
        return candidate

    year, month = add_months(now.year, now.month, step)
    return candidate.replace(year=year, month=month, day=clamp_day(year, month, generation_day))


__all__ = [
    "MIN_GENERATION_DAY",
    "MAX_GENERATION_DAY",
    "add_months",
    "clamp_day",
    "months_for",
    "next_occurrence",
    "validate_generation_day",
]
