"""
Date helpers for the NBA calendar.

Times are stored in UTC. Game dates follow the league's Eastern Time
calendar, so "today" and "yesterday" are computed in Eastern Time.

Eastern Time Zones:
- EST (Eastern Standard Time): UTC-5, November - March
- EDT (Eastern Daylight Time): UTC-4, March - November
"""
from datetime import date as DateType, datetime, timezone, timedelta
from typing import Optional, Tuple

# Active season range, (month, day) inclusive; NBA 2024-25 runs Oct 2024 - Jun 2025
SEASON_START = (10, 1)
SEASON_END = (6, 30)


def is_in_season(date: Optional[datetime] = None) -> bool:
    """
    Check if a date falls within the NBA season (regular season + playoffs).

    Examples:
        >>> is_in_season(datetime(2025, 1, 15))
        True
        >>> is_in_season(datetime(2025, 8, 15))
        False
    """
    if date is None:
        date = datetime.now(timezone.utc)

    if isinstance(date, DateType) and not isinstance(date, datetime):
        date = datetime.combine(date, datetime.min.time())

    if date.tzinfo is not None:
        date = date.replace(tzinfo=None)

    season_start = datetime(date.year, *SEASON_START)
    season_end = datetime(date.year, *SEASON_END, 23, 59, 59)

    # Season spans two calendar years
    return date >= season_start or date <= season_end


def utc_to_eastern(utc_datetime: Optional[datetime]) -> Optional[datetime]:
    """
    Convert a UTC datetime (naive or aware) to naive Eastern Time.

    Example:
        >>> utc_to_eastern(datetime(2026, 2, 1, 0, 30))
        datetime(2026, 1, 31, 19, 30)
    """
    if utc_datetime is None:
        return None

    if utc_datetime.tzinfo is None:
        utc_datetime = utc_datetime.replace(tzinfo=timezone.utc)

    dst_start, dst_end = _get_dst_transitions_eastern(utc_datetime.year)
    offset = -4 if dst_start <= utc_datetime <= dst_end else -5
    return (utc_datetime + timedelta(hours=offset)).replace(tzinfo=None)


def eastern_today(now: Optional[datetime] = None) -> DateType:
    """Today's date on the league calendar."""
    return utc_to_eastern(now or datetime.now(timezone.utc)).date()


def _get_dst_transitions_eastern(year: int) -> Tuple[datetime, datetime]:
    """
    DST transitions for ``year`` as UTC datetimes.

    DST starts the second Sunday in March and ends the first Sunday in
    November, both at 2:00 AM local time.
    """
    def find_nth_sunday(month: int, n: int) -> datetime:
        first = datetime(year, month, 1)
        days_until_sunday = (6 - first.weekday()) % 7
        return first + timedelta(days=days_until_sunday + 7 * (n - 1))

    # 2:00 AM EST = 7:00 AM UTC
    dst_start = (find_nth_sunday(3, 2) + timedelta(hours=7)).replace(tzinfo=timezone.utc)
    # 2:00 AM EDT = 6:00 AM UTC
    dst_end = (find_nth_sunday(11, 1) + timedelta(hours=6)).replace(tzinfo=timezone.utc)
    return dst_start, dst_end
