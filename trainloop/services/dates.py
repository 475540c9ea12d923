"""Workout-date arithmetic.

A workout date is the calendar date an instant belongs to once the profile's
day transition hour is applied: with a transition hour of 3, a set logged at
01:30 on the 16th still counts towards the 15th. All instants are naive
local datetimes.
"""

from datetime import date, datetime, timedelta


def workout_date(instant: datetime, transition_hour: int) -> date:
    """Return the workout date ``instant`` belongs to."""
    if instant.hour < transition_hour:
        return (instant - timedelta(days=1)).date()
    return instant.date()


def today_workout_date(transition_hour: int, now: datetime | None = None) -> date:
    return workout_date(now or datetime.now(), transition_hour)


def is_same_workout_day(a: datetime, b: datetime, transition_hour: int) -> bool:
    return workout_date(a, transition_hour) == workout_date(b, transition_hour)


def days_between(start: date, end: date) -> int:
    """Signed number of days from ``start`` to ``end``."""
    return (end - start).days


def wrap_day_index(index: int, day_count: int) -> int:
    """Wrap an arbitrary (possibly negative) 1-based index into 1..day_count."""
    return (index - 1) % day_count + 1
