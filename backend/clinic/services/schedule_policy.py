"""
Open-day policy for in-person sessions.

IN_CLINIC sessions may only be booked on the clinic's open weekdays.
ONLINE sessions are not restricted.
"""

from typing import FrozenSet, List, Optional

from clinic.core import config
from clinic.core.exceptions import ScheduleViolation
from clinic.domain.calendar import DateLike, to_calendar_date, weekday_name
from clinic.domain.entities import SessionType, coerce_enum


def open_day_names(open_days: Optional[FrozenSet[int]] = None) -> List[str]:
    """Open weekdays as capitalized names, Monday first."""
    days = config.CLINIC_OPEN_DAYS if open_days is None else open_days
    return [config.WEEKDAY_NAMES[d].capitalize() for d in sorted(days)]


def is_open_day(day: DateLike, open_days: Optional[FrozenSet[int]] = None) -> bool:
    days = config.CLINIC_OPEN_DAYS if open_days is None else open_days
    return to_calendar_date(day).weekday() in days


def is_allowed(
    session_type, start_at: DateLike, open_days: Optional[FrozenSet[int]] = None
) -> bool:
    session_type = coerce_enum(SessionType, session_type, "session_type")
    if session_type == SessionType.ONLINE:
        return True
    return is_open_day(start_at, open_days)


def ensure_allowed(
    session_type, start_at: DateLike, open_days: Optional[FrozenSet[int]] = None
) -> None:
    """Raise ScheduleViolation for an IN_CLINIC session on a closed day."""
    if is_allowed(session_type, start_at, open_days):
        return
    day = weekday_name(start_at)
    names = open_day_names(open_days)
    raise ScheduleViolation(
        f"Clinic is closed on {day}. In-clinic sessions are only available on "
        f"{', '.join(names)}.",
        {"day": day, "open_days": names},
    )
