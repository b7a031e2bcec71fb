"""
Error types raised across the scheduler.
"""

from __future__ import annotations

from typing import Iterable, List


class VolumeSchedulerError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(VolumeSchedulerError):
    """Required configuration is missing or invalid; fatal at startup."""

    def __init__(self, problems: Iterable[str]) -> None:
        self.problems: List[str] = list(problems)
        super().__init__("; ".join(self.problems) or "invalid configuration")


class ScheduleValidationError(VolumeSchedulerError):
    """Schedule data failed validation where it was loaded."""


class ScheduleSourceError(VolumeSchedulerError):
    """The schedule snapshot for a tick could not be fetched."""


class VolumeApplyError(VolumeSchedulerError):
    """
    The remote side refused or failed a volume change. ``details`` holds the
    individual messages returned by the API, if any.
    """

    def __init__(self, message: str, details: Iterable[str] = ()) -> None:
        self.details: List[str] = list(details)
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if not self.details:
            return base
        return f"{base}: {'; '.join(self.details)}"
