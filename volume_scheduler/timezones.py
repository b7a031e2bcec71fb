"""Time zone helpers shared by validation and the rule matcher."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@lru_cache(maxsize=64)
def get_zone_info(name: str) -> ZoneInfo:
    """Return a cached ZoneInfo; raises ZoneInfoNotFoundError for unknown names."""
    return ZoneInfo(name)


def is_valid_time_zone(name: str) -> bool:
    if not name or not name.strip():
        return False
    try:
        get_zone_info(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def to_local(now_utc: datetime, time_zone: str) -> datetime:
    """
    Convert an instant to wall-clock time in ``time_zone``. Naive datetimes
    are taken to be UTC.
    """
    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(get_zone_info(time_zone))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
