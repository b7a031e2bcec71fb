"""
Where each tick's schedule snapshot comes from.

Sources never cache between ticks; every call re-reads the backing store so
edits made by the administration side are picked up on the next tick.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List
import json
import logging

from .. import repositories
from ..exceptions import ScheduleSourceError, ScheduleValidationError
from ..schemas import Schedule, parse_schedule

logger = logging.getLogger(__name__)


class ScheduleSource(ABC):
    """
    Base interface implemented by concrete schedule sources.
    """

    @abstractmethod
    def fetch_active(self) -> List[Schedule]:
        """
        Return the validated, active schedules for this tick.
        Raises ScheduleSourceError when no snapshot can be produced.
        """

    def close(self) -> None:
        """Release any resources held by the source."""


def parse_schedule_document(raw: Any) -> List[Schedule]:
    """
    Accept a single schedule object, a list of them, or ``{"schedules": [...]}``.
    Raises ScheduleValidationError on the first invalid entry.
    """
    if isinstance(raw, dict) and "schedules" in raw:
        raw = raw["schedules"]
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list):
        raise ScheduleValidationError(
            "schedule document must be an object, a list, or {\"schedules\": [...]}"
        )
    schedules = [parse_schedule(item) for item in raw]
    seen = set()
    for schedule in schedules:
        if schedule.zone_id in seen:
            raise ScheduleValidationError(
                f"zone {schedule.zone_id} has more than one schedule"
            )
        seen.add(schedule.zone_id)
    return schedules


class FileScheduleSource(ScheduleSource):
    """Reads schedules from a JSON file such as schedule.json."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> List[Schedule]:
        """Return every schedule in the file, active or not."""
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise ScheduleSourceError(f"cannot read {self.path}: {exc}") from exc
        try:
            return parse_schedule_document(raw)
        except ScheduleValidationError as exc:
            raise ScheduleSourceError(f"{self.path}: {exc}") from exc

    def fetch_active(self) -> List[Schedule]:
        return [schedule for schedule in self.load() if schedule.active]


class DatabaseScheduleSource(ScheduleSource):
    """
    Reads active schedules from the schedules table. A row that fails
    validation is skipped so the remaining zones still reconcile.
    """

    def fetch_active(self) -> List[Schedule]:
        try:
            rows = repositories.list_schedules(active_only=True)
        except Exception as exc:
            raise ScheduleSourceError(f"failed to load schedules from database: {exc}") from exc

        schedules: List[Schedule] = []
        for row in rows:
            try:
                schedules.append(parse_schedule(repositories.row_to_payload(row)))
            except ScheduleValidationError as exc:
                logger.error("schedules.invalid_row id=%s error=%s", row.get("id"), exc)
        return schedules
