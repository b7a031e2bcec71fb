"""
Selection of the volume rule that applies at a given local time.

Used by the polling loop, the one-shot check command and the status preview.
"""

from __future__ import annotations

from datetime import datetime, time
from typing import Optional, Sequence, Tuple, Union

from ..schemas import Schedule, VolumeRule
from ..timezones import to_local

MINUTES_PER_DAY = 24 * 60


def time_to_minutes(value: str) -> int:
    """
    Convert ``H:MM``/``HH:MM`` to minutes since midnight.
    Raises ValueError for anything else.
    """
    parts = value.split(":") if isinstance(value, str) else []
    if (
        len(parts) != 2
        or not all(part.isdigit() for part in parts)
        or len(parts[0]) not in (1, 2)
        or len(parts[1]) != 2
    ):
        raise ValueError(f"expected HH:MM, got {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"time out of range: {value!r}")
    return hour * 60 + minute


def rule_matches(rule: VolumeRule, minutes_now: int) -> bool:
    start = time_to_minutes(rule.start)
    end = time_to_minutes(rule.end)
    if start == end:
        # Identical bounds cover the whole day.
        return True
    if start < end:
        return start <= minutes_now < end
    # Window spans midnight.
    return minutes_now >= start or minutes_now < end


def select_active_rule(
    rules: Sequence[VolumeRule], now_local: Union[datetime, time]
) -> Optional[VolumeRule]:
    """
    Return the first rule whose window contains ``now_local`` (minute
    granularity), or None when the baseline volume should apply.
    """
    minutes_now = now_local.hour * 60 + now_local.minute
    for rule in rules:
        if rule_matches(rule, minutes_now):
            return rule
    return None


def resolve_target(
    schedule: Schedule, now_utc: datetime
) -> Tuple[int, Optional[VolumeRule], datetime]:
    """
    Work out the volume ``schedule`` wants at ``now_utc``.
    Returns (target volume, matched rule or None, local wall-clock time).
    """
    local_now = to_local(now_utc, schedule.time_zone)
    rule = select_active_rule(schedule.rules, local_now)
    target = rule.volume if rule is not None else schedule.baseline_volume
    return target, rule, local_now
