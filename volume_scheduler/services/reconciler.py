"""
Reconciliation of zone volumes against their schedules.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, List, Optional
import logging
import time

from ..audio import BaseVolumeController
from ..exceptions import ScheduleSourceError
from ..schemas import Schedule, SchedulePreviewModel, TickReport, ZoneOutcome
from ..timezones import utc_now
from .rule_matcher import resolve_target
from .schedule_source import ScheduleSource
from .zone_state import ZoneStateTracker

logger = logging.getLogger(__name__)

# apply(zone_id, volume) -> volume acknowledged by the remote side; raises on failure.
ApplyFn = Callable[[str, int], Optional[int]]


def _stamp(moment: datetime) -> str:
    return moment.isoformat(timespec="seconds")


def run_tick(
    schedules: Iterable[Schedule],
    now_utc: datetime,
    zone_state: ZoneStateTracker,
    apply: ApplyFn,
    clock: Callable[[], datetime] = utc_now,
) -> TickReport:
    """
    Bring every active schedule's zone to its target volume.

    A zone is only touched when its last acknowledged volume is unknown or
    differs from the target. A failed apply leaves the tracker alone so the
    same change is attempted again on the next tick, and never stops the
    remaining zones from being processed.
    """
    report = TickReport(started_at=_stamp(now_utc))

    for schedule in schedules:
        if not schedule.active:
            continue

        target, rule, local_now = resolve_target(schedule, now_utc)
        current = zone_state.get(schedule.zone_id)
        outcome = ZoneOutcome(
            zone_id=schedule.zone_id,
            zone_name=schedule.zone_name,
            local_time=local_now.strftime("%H:%M"),
            rule=rule.describe() if rule else None,
            target_volume=target,
            previous_volume=current,
            status="unchanged",
        )

        if current is not None and current == target:
            logger.debug("tick.zone zone=%s volume=%s unchanged", schedule.label, current)
            report.outcomes.append(outcome)
            continue

        logger.info(
            "tick.apply zone=%s id=%s local=%s tz=%s current=%s target=%s rule=%s",
            schedule.label,
            schedule.zone_id,
            outcome.local_time,
            schedule.time_zone,
            "unknown" if current is None else current,
            target,
            outcome.rule or "baseline",
        )
        try:
            acknowledged = apply(schedule.zone_id, target)
        except Exception as exc:  # log and carry on with the other zones
            logger.error(
                "tick.apply_failed zone=%s id=%s target=%s error=%s",
                schedule.label,
                schedule.zone_id,
                target,
                exc,
            )
            outcome.status = "failed"
            outcome.error = str(exc)
            report.outcomes.append(outcome)
            continue

        if acknowledged is None:
            acknowledged = target
        elif acknowledged != target:
            logger.warning(
                "tick.apply zone=%s requested=%s acknowledged=%s",
                schedule.label,
                target,
                acknowledged,
            )
        zone_state.set(schedule.zone_id, acknowledged)
        outcome.status = "applied"
        outcome.applied_volume = acknowledged
        report.outcomes.append(outcome)

    report.finished_at = _stamp(clock())
    return report


class ReconciliationService:
    """
    Owns everything one tick needs: where schedules come from, how volumes
    are pushed, and the per-zone state that survives between ticks.
    """

    def __init__(
        self,
        source: ScheduleSource,
        controller: BaseVolumeController,
        zone_state: Optional[ZoneStateTracker] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.source = source
        self.controller = controller
        self.zone_state = zone_state or ZoneStateTracker()
        self._clock = clock
        self.last_report: Optional[TickReport] = None

    def run_once(self) -> TickReport:
        """
        Fetch a fresh schedule snapshot and reconcile it. Never raises: a
        failed fetch produces an aborted report and is retried next tick.
        """
        now = self._clock()
        start_time = time.perf_counter()
        try:
            schedules = self.source.fetch_active()
        except ScheduleSourceError as exc:
            logger.error("tick.aborted reason=schedule_fetch error=%s", exc)
            report = self._aborted(now, str(exc))
        except Exception as exc:  # log and keep the loop alive
            logger.exception("tick.aborted reason=unexpected error=%s", exc)
            report = self._aborted(now, str(exc))
        else:
            if not schedules:
                logger.info("tick.empty no active schedules")
            report = run_tick(
                schedules, now, self.zone_state, self.controller.set_volume, clock=self._clock
            )
            logger.info(
                "tick.done zones=%s applied=%s failed=%s unchanged=%s duration=%.3fs",
                len(report.outcomes),
                report.count("applied"),
                report.count("failed"),
                report.count("unchanged"),
                time.perf_counter() - start_time,
            )
        self.last_report = report
        return report

    def _aborted(self, now: datetime, reason: str) -> TickReport:
        return TickReport(
            started_at=_stamp(now),
            finished_at=_stamp(self._clock()),
            aborted=reason,
        )

    def preview(self, now_utc: Optional[datetime] = None) -> List[SchedulePreviewModel]:
        """
        Resolve every active schedule without applying anything.
        Fetch errors propagate to the caller.
        """
        now = now_utc or self._clock()
        previews: List[SchedulePreviewModel] = []
        for schedule in self.source.fetch_active():
            if not schedule.active:
                continue
            target, rule, local_now = resolve_target(schedule, now)
            previews.append(
                SchedulePreviewModel(
                    zone_id=schedule.zone_id,
                    zone_name=schedule.zone_name,
                    time_zone=schedule.time_zone,
                    local_time=local_now.strftime("%H:%M"),
                    rule=rule.describe() if rule else None,
                    target_volume=target,
                    last_applied_volume=self.zone_state.get(schedule.zone_id),
                )
            )
        return previews

    def close(self) -> None:
        """Release the controller's HTTP session and the schedule source."""
        for name, resource in (("controller", self.controller), ("source", self.source)):
            try:
                resource.close()
            except Exception as exc:  # shutdown continues regardless
                logger.warning("shutdown.close_failed resource=%s error=%s", name, exc)
