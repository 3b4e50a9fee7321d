"""Utility helpers for reusable functionality."""

from .datetime import (
    app_local_date,
    ensure_app_timezone,
    from_storage_datetime,
    get_app_timezone,
    now_in_app_timezone,
    to_storage_datetime,
    utc_now_naive,
)

__all__ = [
    "app_local_date",
    "ensure_app_timezone",
    "from_storage_datetime",
    "get_app_timezone",
    "now_in_app_timezone",
    "to_storage_datetime",
    "utc_now_naive",
]
