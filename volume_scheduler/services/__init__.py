"""
Service layer exports.
"""

from .poller import PollerState, PollingScheduler
from .reconciler import ReconciliationService, run_tick
from .rule_matcher import resolve_target, select_active_rule, time_to_minutes
from .schedule_source import DatabaseScheduleSource, FileScheduleSource, ScheduleSource
from .zone_state import ZoneStateTracker

__all__ = [
    "DatabaseScheduleSource",
    "FileScheduleSource",
    "PollerState",
    "PollingScheduler",
    "ReconciliationService",
    "ScheduleSource",
    "ZoneStateTracker",
    "resolve_target",
    "run_tick",
    "select_active_rule",
    "time_to_minutes",
]
