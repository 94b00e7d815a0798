import datetime
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

WEEK = datetime.timedelta(days=7)


def utcnow() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def parse_timestamp(ts: str) -> datetime.datetime:
    """Return ``ts`` as timezone-aware datetime, reading naive values as UTC."""
    dt = datetime.datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


def _localize(moment: datetime.datetime, tz: Optional[str]) -> datetime.datetime:
    if tz is None:
        return moment
    zone = ZoneInfo(tz)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=zone)
    return moment.astimezone(zone)


def _midnight(moment: datetime.datetime) -> datetime.datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def week_start(
    moment: datetime.datetime, tz: Optional[str] = None
) -> datetime.datetime:
    """Return Monday 00:00 of the week containing ``moment``.

    Weeks always start on Monday, independent of platform locale.
    """
    local = _localize(moment, tz)
    return _midnight(local) - datetime.timedelta(days=local.weekday())


def week_end(moment: datetime.datetime, tz: Optional[str] = None) -> datetime.datetime:
    """Return the exclusive end of the week containing ``moment``."""
    return week_start(moment, tz) + WEEK


def month_start(
    moment: datetime.datetime, tz: Optional[str] = None
) -> datetime.datetime:
    local = _localize(moment, tz)
    return _midnight(local).replace(day=1)


def next_month_start(
    moment: datetime.datetime, tz: Optional[str] = None
) -> datetime.datetime:
    start = month_start(moment, tz)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def day_key(moment: datetime.datetime, tz: Optional[str] = None) -> str:
    """Return the ``YYYY-MM-DD`` calendar day of ``moment``."""
    return _localize(moment, tz).date().isoformat()


def in_range(
    moment: datetime.datetime,
    start: datetime.datetime,
    end: datetime.datetime,
) -> bool:
    """Return ``True`` when ``start <= moment < end``."""
    return start <= moment < end


def week_windows(
    now: datetime.datetime, count: int, tz: Optional[str] = None
) -> List[Tuple[datetime.datetime, datetime.datetime]]:
    """Return ``count`` week windows ending with the current one, oldest first."""
    if count < 0:
        raise ValueError("count must be non-negative")
    current = week_start(now, tz)
    windows = []
    for i in range(count - 1, -1, -1):
        start = current - WEEK * i
        windows.append((start, start + WEEK))
    return windows
