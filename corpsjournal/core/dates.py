"""
Date helpers shared by the services.

Instants are stored as ISO-8601 strings that keep the offset they were
written with. Naive values are read in the service timezone. Calendar-day
comparisons convert to the service timezone first, so an entry stamped
2024-01-31T23:30Z belongs to 1 February in Lagos.
"""
from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Optional

from corpsjournal.core.config import settings


def service_tz() -> tzinfo:
    return settings.service_timezone


def now_local() -> datetime:
    return datetime.now(tz=service_tz())


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse a stored date-like value; None when missing or unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=service_tz())
    return parsed


def to_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=service_tz())
    return moment.isoformat(timespec="milliseconds")


def normalize_instant(value: Any, fallback: datetime) -> str:
    """ISO string for `value`, or for `fallback` when `value` is unusable."""
    parsed = parse_instant(value)
    return to_iso(parsed if parsed is not None else fallback)


def to_local(moment: datetime) -> datetime:
    """The same instant on the service timezone's wall clock."""
    return moment.astimezone(service_tz())


def calendar_day(value: Any) -> Optional[date]:
    """Service-timezone calendar date of a stored instant."""
    parsed = parse_instant(value)
    return to_local(parsed).date() if parsed is not None else None


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def add_years(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        # 29 February in a non-leap target year
        return moment.replace(year=moment.year + years, day=28)


def add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = moment.day
    while True:
        try:
            return moment.replace(year=year, month=month, day=day)
        except ValueError:
            day -= 1


def days_until(later: datetime, earlier: datetime) -> int:
    """Whole days from `earlier` to `later`, rounded up."""
    return math.ceil((later - earlier) / timedelta(days=1))
