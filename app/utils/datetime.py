"""Timezone helpers shared by the store, the scans and the API.

Domain objects carry aware datetimes in the application timezone. Columns
store naive UTC so SQL range filters (``created_at >= since``) and ordering
stay monotonic across daylight-saving transitions of ``APP_TIMEZONE``.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Final

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import get_settings

_FALLBACK_TIMEZONE: Final[str] = "UTC"
_UTC_OFFSET: Final[re.Pattern[str]] = re.compile(
    r"^(?:UTC|GMT)(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$",
    re.IGNORECASE,
)


@lru_cache(maxsize=1)
def get_app_timezone() -> tzinfo:
    """Return the zone named by ``APP_TIMEZONE`` (IANA name or ``UTC±HH:MM``).

    Unknown names fall back to UTC. Day boundaries of the daily summary and
    the cron triggers of the scheduler are evaluated in this zone.
    """

    name = (get_settings().app_timezone or "").strip() or _FALLBACK_TIMEZONE
    return _parse_timezone(name)


def now_in_app_timezone() -> datetime:
    """Return the current aware time in the application timezone."""

    return datetime.now(tz=get_app_timezone())


def utc_now_naive() -> datetime:
    """Column default: the current UTC time without offset."""

    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


def ensure_app_timezone(value: datetime | None) -> datetime | None:
    """Attach (naive input) or convert to the application timezone."""

    if value is None:
        return None
    zone = get_app_timezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def to_storage_datetime(value: datetime | None) -> datetime | None:
    """Return ``value`` as naive UTC for a column.

    Naive input is read as application wall-clock time.
    """

    localized = ensure_app_timezone(value)
    if localized is None:
        return None
    return localized.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage_datetime(value: datetime | None) -> datetime | None:
    """Return a stored naive UTC value as an aware application-zone datetime."""

    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(get_app_timezone())


def app_local_date(value: datetime) -> date:
    """Return the calendar day ``value`` falls on in the application timezone."""

    localized = ensure_app_timezone(value)
    assert localized is not None
    return localized.date()


def _parse_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        pass
    match = _UTC_OFFSET.match(name)
    if match is None:
        return timezone.utc
    offset = timedelta(
        hours=int(match.group("hours")), minutes=int(match.group("minutes") or 0)
    )
    return timezone(-offset if match.group("sign") == "-" else offset)
