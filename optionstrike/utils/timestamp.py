"""
Timestamp normalization utilities.

Standard Format:
- Internal instants are timezone-aware UTC datetimes
- Calendar dates from vendors ("YYYY-MM-DD") are interpreted as 00:00:00 UTC,
  matching how the vendors publish expiration and earnings dates
- Dates written to cache payloads and API responses are ISO strings
"""

from __future__ import annotations
from datetime import date, datetime, timezone
from typing import Optional, Union

DateLike = Union[str, date, datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(value: DateLike) -> date:
    """
    Parse a vendor date into a date.

    Accepts "YYYY-MM-DD", full ISO timestamps, date or datetime objects.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value:
        raise ValueError(f"Cannot parse date from {value!r}")
    return date.fromisoformat(value[:10])


def to_utc_datetime(value: DateLike) -> datetime:
    """
    Normalize a date-like value to a timezone-aware UTC datetime.

    Naive datetimes are assumed to already be UTC; bare dates map to midnight UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str) and len(value) > 10:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return to_utc_datetime(parsed)
    d = parse_date(value)
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
