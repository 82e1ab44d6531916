# studylog/calendar_keys.py
"""
Calendar bucketing keys.

All keys are computed on the local calendar of a single configured zone
(``STUDYLOG["TIME_ZONE"]``). The same zone decides which ``study_date`` a
session lands on, how migration re-buckets raw sessions and which day counts
as "today" for streaks.
"""
from __future__ import annotations

import datetime as dt
from typing import Iterator, Union

import pytz

from .conf import app_setting

Stamp = Union[dt.datetime, dt.date]


def get_tz(tz: str | dt.tzinfo | None = None) -> dt.tzinfo:
    """Resolve a zone name (or None for the configured zone) into a tzinfo."""
    if tz is None:
        tz = app_setting("TIME_ZONE")
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz


def local_date(ts: Stamp, tz: str | dt.tzinfo | None = None) -> dt.date:
    """Calendar date of a timestamp in the local zone (naive datetimes are UTC)."""
    if isinstance(ts, dt.datetime):
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=dt.timezone.utc)
        return ts.astimezone(get_tz(tz)).date()
    if isinstance(ts, dt.date):
        return ts
    raise TypeError("timestamp must be a datetime or a date")


def day_key(ts: Stamp, tz: str | dt.tzinfo | None = None) -> str:
    return local_date(ts, tz).isoformat()


def iso_week_key(ts: Stamp, tz: str | dt.tzinfo | None = None) -> str:
    """ISO-8601 week key; late December / early January may belong to the neighbouring year."""
    year, week, _ = local_date(ts, tz).isocalendar()
    return f"{year:04d}-W{week:02d}"


def month_key(ts: Stamp, tz: str | dt.tzinfo | None = None) -> str:
    d = local_date(ts, tz)
    return f"{d.year:04d}-{d.month:02d}"


def parse_day(value: str) -> dt.date:
    """Parse a "YYYY-MM-DD" day key."""
    try:
        return dt.date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError("dates must be YYYY-MM-DD") from None


def iter_days(start: dt.date, end: dt.date) -> Iterator[dt.date]:
    """Days of the closed range [start, end]; nothing when start > end."""
    cur = start
    while cur <= end:
        yield cur
        if cur == end:
            break
        cur += dt.timedelta(days=1)


KEY_FUNCS = {
    "day": day_key,
    "week": iso_week_key,
    "month": month_key,
}
