"""
Station clock.

Rows store UTC timestamps; "today" for day passes and exit passes is the
calendar date in the station's own time zone.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


class StationClock:
    def __init__(self, tz_name: str):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().astimezone(self.tz).date()

    def local_end_of_day(self, day: date) -> datetime:
        """Last instant of ``day`` in station time, returned in UTC."""
        end = datetime(day.year, day.month, day.day, 23, 59, 59, tzinfo=self.tz)
        return end.astimezone(timezone.utc)
