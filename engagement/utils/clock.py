"""
Injectable time source

Streak periods are calendar days in the user's timezone, so every "today"
and every activity date goes through a Clock:

- now() is always timezone-aware UTC
- today() is the calendar date in the clock's timezone
- local_date() converts an aware timestamp to that calendar date

Never mix naive and aware datetimes: naive input is assumed to be UTC.
"""

import logging
from datetime import datetime, date, timedelta, timezone
from typing import Optional, Protocol

import pytz

from engagement.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"


class Clock(Protocol):
    """Source of "now" and "today" for the engagement core"""

    def now(self) -> datetime:
        ...

    def today(self) -> date:
        ...

    def local_date(self, moment: datetime) -> date:
        ...


def ensure_utc(moment: datetime) -> datetime:
    """Return moment as an aware UTC datetime (naive input is treated as UTC)"""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _load_zone(tz_name: str):
    try:
        return pytz.timezone(tz_name)
    except pytz.exceptions.UnknownTimeZoneError as e:
        raise ConfigurationError(
            message=f"Unknown timezone '{tz_name}'",
            config_key="ENGAGEMENT_TIMEZONE",
            cause=e
        )


class SystemClock:
    """Wall clock in a fixed IANA timezone"""

    def __init__(self, tz_name: str = DEFAULT_TIMEZONE):
        self.tz_name = tz_name
        self.zone = _load_zone(tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return datetime.now(self.zone).date()

    def local_date(self, moment: datetime) -> date:
        return ensure_utc(moment).astimezone(self.zone).date()


class FixedClock:
    """
    Manually driven clock for deterministic tests and replays

    Example:
        clock = FixedClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))
        clock.advance(days=1)
    """

    def __init__(self, moment: datetime, tz_name: str = DEFAULT_TIMEZONE):
        self.zone = _load_zone(tz_name)
        self._moment = ensure_utc(moment)

    def now(self) -> datetime:
        return self._moment

    def today(self) -> date:
        return self._moment.astimezone(self.zone).date()

    def local_date(self, moment: datetime) -> date:
        return ensure_utc(moment).astimezone(self.zone).date()

    def set(self, moment: datetime) -> None:
        self._moment = ensure_utc(moment)

    def advance(
        self,
        days: int = 0,
        hours: int = 0,
        minutes: int = 0,
        seconds: int = 0
    ) -> datetime:
        self._moment += timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)
        logger.debug(f"FixedClock advanced to {self._moment.isoformat()}")
        return self._moment


def days_between(earlier: date, later: date) -> int:
    """Calendar days from earlier to later (negative if later is before earlier)"""
    return (later - earlier).days


def resolve_clock(clock: Optional[Clock], tz_name: str = DEFAULT_TIMEZONE) -> Clock:
    return clock if clock is not None else SystemClock(tz_name)
