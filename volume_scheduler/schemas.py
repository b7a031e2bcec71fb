"""
Pydantic models for schedule data, remote zones and API payloads.
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ScheduleValidationError
from .timezones import is_valid_time_zone

MIN_VOLUME = 0
MAX_VOLUME = 16
DEFAULT_BASELINE_VOLUME = 8

# H:MM or HH:MM, 24-hour clock.
TIME_OF_DAY_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


class VolumeRule(BaseModel):
    """
    A half-open window ``[from, to)`` in the schedule's local time with the
    volume that should be active inside it. ``from > to`` wraps midnight.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    start: str = Field(..., alias="from", pattern=TIME_OF_DAY_PATTERN)
    end: str = Field(..., alias="to", pattern=TIME_OF_DAY_PATTERN)
    volume: int = Field(..., ge=MIN_VOLUME, le=MAX_VOLUME, strict=True)

    def describe(self) -> str:
        return f"{self.start}-{self.end}"


class Schedule(BaseModel):
    """
    Ordered volume rules plus baseline for one sound zone. The JSON keys
    match the schedule.json files and the database API payloads.
    """
    model_config = ConfigDict(populate_by_name=True)

    zone_id: str = Field(..., alias="soundZoneId", min_length=1)
    zone_name: Optional[str] = Field(None, alias="zoneName")
    rules: List[VolumeRule] = Field(default_factory=list)
    time_zone: str = Field(..., alias="timeZone")
    baseline_volume: int = Field(
        DEFAULT_BASELINE_VOLUME,
        alias="baselineVolume",
        ge=MIN_VOLUME,
        le=MAX_VOLUME,
        strict=True,
    )
    active: bool = Field(True, alias="isActive")

    @field_validator("time_zone")
    @classmethod
    def _known_time_zone(cls, value: str) -> str:
        if not is_valid_time_zone(value):
            raise ValueError(f"unknown time zone {value!r}")
        return value

    @property
    def label(self) -> str:
        """Human-readable zone name for logs."""
        return self.zone_name or self.zone_id


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def parse_schedule(data: Any) -> Schedule:
    """
    Validate raw schedule data (a dict decoded from JSON or a database row).
    Raises ScheduleValidationError with every problem found.
    """
    try:
        return Schedule.model_validate(data)
    except ValidationError as exc:
        zone = data.get("soundZoneId") if isinstance(data, dict) else None
        prefix = f"schedule for zone {zone}" if zone else "schedule"
        raise ScheduleValidationError(
            f"{prefix} is invalid: {_format_validation_error(exc)}"
        ) from exc


class SoundZone(BaseModel):
    """A sound zone as listed by the remote API."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    is_paired: bool = Field(False, alias="isPaired")
    device_id: Optional[str] = Field(None, alias="deviceId")


class AccountInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    business_name: Optional[str] = Field(None, alias="businessName")


class ZoneOutcome(BaseModel):
    """What happened to one zone during a tick."""
    model_config = ConfigDict(populate_by_name=True)

    zone_id: str = Field(..., alias="zoneId")
    zone_name: Optional[str] = Field(None, alias="zoneName")
    local_time: str = Field(..., alias="localTime")
    rule: Optional[str] = None
    target_volume: int = Field(..., alias="targetVolume")
    previous_volume: Optional[int] = Field(None, alias="previousVolume")
    applied_volume: Optional[int] = Field(None, alias="appliedVolume")
    status: Literal["applied", "unchanged", "failed"]
    error: Optional[str] = None


class TickReport(BaseModel):
    """Summary of one reconciliation tick."""
    model_config = ConfigDict(populate_by_name=True)

    started_at: str = Field(..., alias="startedAt")
    finished_at: Optional[str] = Field(None, alias="finishedAt")
    aborted: Optional[str] = None
    outcomes: List[ZoneOutcome] = Field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)


class HealthModel(BaseModel):
    """Response model for the health endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    state: str
    interval_seconds: float = Field(..., alias="intervalSeconds")
    last_tick_at: Optional[str] = Field(None, alias="lastTickAt")
    tracked_zones: int = Field(..., alias="trackedZones")


class SchedulePreviewModel(BaseModel):
    """The volume a schedule resolves to at a given moment."""
    model_config = ConfigDict(populate_by_name=True)

    zone_id: str = Field(..., alias="zoneId")
    zone_name: Optional[str] = Field(None, alias="zoneName")
    time_zone: str = Field(..., alias="timeZone")
    local_time: str = Field(..., alias="localTime")
    rule: Optional[str] = None
    target_volume: int = Field(..., alias="targetVolume")
    last_applied_volume: Optional[int] = Field(None, alias="lastAppliedVolume")
