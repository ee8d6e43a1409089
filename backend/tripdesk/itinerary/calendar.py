"""Day calendar - ordered day buckets derived from a trip's start and end date."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from backend.tripdesk.config import get_settings
from backend.tripdesk.models.itinerary import DayBucket

logger = logging.getLogger(__name__)


def parse_calendar_date(value: date | datetime | str | None) -> date | None:
    """Reduce a date, timestamp or ISO string to its calendar date.

    Timestamps keep the wall-clock date they were written in; they are not
    converted to UTC first, so a 23:30 local departure stays on its own day.

    Returns:
        Calendar date, or None when the value is missing or unparseable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = value.strip()
    if not text:
        return None
    try:
        if len(text) > 10:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        return None


def days_between(start: date, end: date) -> int:
    """Whole calendar days from start to end (negative when end is earlier)."""
    return (end - start).days


@dataclass(frozen=True)
class DayCalendar:
    """Calendar of a trip's days.

    An uninitialized calendar (missing dates, inverted range, or longer than
    the configured ceiling) has zero days; placement against it is refused.
    """

    start_date: date | None
    end_date: date | None
    day_count: int

    @property
    def initialized(self) -> bool:
        return self.day_count > 0

    @property
    def last_index(self) -> int:
        return self.day_count - 1

    def contains(self, day_index: int) -> bool:
        return 0 <= day_index < self.day_count

    def label_for(self, day_index: int) -> str:
        return f"Day {day_index + 1}"

    def date_for(self, day_index: int) -> date | None:
        if self.start_date is None or not self.contains(day_index):
            return None
        return self.start_date + timedelta(days=day_index)

    def raw_index_for(self, value: date | datetime | str) -> int | None:
        """Unclamped day offset of a date or timestamp from the trip start."""
        when = parse_calendar_date(value)
        if when is None or self.start_date is None:
            return None
        return days_between(self.start_date, when)

    def buckets(self) -> list[DayBucket]:
        """Empty day buckets, one per calendar day."""
        return [
            DayBucket(index=i, label=self.label_for(i), calendar_date=self.date_for(i))
            for i in range(self.day_count)
        ]


def build_day_calendar(
    start: date | datetime | str | None,
    end: date | datetime | str | None,
    max_days: int | None = None,
) -> DayCalendar:
    """Derive the day calendar for a trip window.

    Args:
        start: Trip start date (date or ISO string)
        end: Trip end date (date or ISO string)
        max_days: Sanity ceiling on trip length; defaults to settings.max_trip_days

    Returns:
        DayCalendar; uninitialized (zero days) when the window is unusable
    """
    if max_days is None:
        max_days = get_settings().max_trip_days

    start_date = parse_calendar_date(start)
    end_date = parse_calendar_date(end)

    if start_date is None or end_date is None:
        logger.info(f"[calendar] missing trip dates start={start!r} end={end!r}")
        return DayCalendar(start_date=start_date, end_date=end_date, day_count=0)

    day_count = days_between(start_date, end_date) + 1
    if day_count <= 0 or day_count > max_days:
        logger.warning(
            f"[calendar] rejected trip window {start_date}..{end_date} "
            f"(day_count={day_count}, max_days={max_days})"
        )
        return DayCalendar(start_date=start_date, end_date=end_date, day_count=0)

    return DayCalendar(start_date=start_date, end_date=end_date, day_count=day_count)
