"""
Timezone utilities for the ServiceSpot bookings core.

Every date and time in the system lives in one implicit local zone
(``settings.timezone``). Values are stored naive; these helpers produce
"now" and "today" in that zone so comparisons stay consistent.
"""

from datetime import date, datetime, time

import pytz

from .config import settings


def get_local_timezone() -> pytz.BaseTzInfo:
    """Return the configured local timezone as a pytz timezone object."""
    return pytz.timezone(settings.timezone)


def get_local_now() -> datetime:
    """
    Get the current local datetime as a naive value.

    Returns:
        Current wall-clock datetime in the configured zone, without tzinfo
    """
    return datetime.now(get_local_timezone()).replace(tzinfo=None)


def get_local_today() -> date:
    """Get 'today' in the configured zone."""
    return get_local_now().date()


def combine_local(day: date, at: time) -> datetime:
    """Combine a date and a time into a naive local datetime."""
    return datetime.combine(day, at.replace(tzinfo=None))


def is_in_future(day: date, at: time, *, now: datetime | None = None) -> bool:
    """True when ``day`` at ``at`` is strictly after the current local time."""
    return combine_local(day, at) > (now or get_local_now())
