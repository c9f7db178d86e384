"""Clock abstraction used for "today" in eligibility checks."""

from datetime import date, datetime
from typing import Protocol

from clinic.core import config


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    """Wall clock in the application timezone, returned as naive local time."""

    def now(self) -> datetime:
        return datetime.now(config.APP_TZ).replace(tzinfo=None)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock pinned to one instant."""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def today(self) -> date:
        return self.instant.date()
