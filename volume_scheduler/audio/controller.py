"""
Abstraction over whatever actually changes a zone's volume.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict

from ..exceptions import VolumeApplyError
from ..schemas import MAX_VOLUME, MIN_VOLUME


def check_volume(volume: int) -> int:
    """Reject anything that is not an integer in the supported range."""
    if isinstance(volume, bool) or not isinstance(volume, int):
        raise ValueError(f"volume must be an integer, got {volume!r}")
    if not MIN_VOLUME <= volume <= MAX_VOLUME:
        raise ValueError(f"volume must be between {MIN_VOLUME} and {MAX_VOLUME}, got {volume}")
    return volume


class BaseVolumeController(ABC):
    """
    Base interface implemented by concrete volume controllers.
    """

    @abstractmethod
    def set_volume(self, zone_id: str, volume: int) -> int:
        """
        Change the volume of a zone and return the volume the remote side
        acknowledged. Raises VolumeApplyError on failure.
        """

    def close(self) -> None:
        """Release network sessions or other resources."""


class MockVolumeController(BaseVolumeController):
    """
    In-memory stand-in used for development and automated tests. Requests
    above ``max_volume`` are clamped the way some players limit volume.
    """

    def __init__(self, max_volume: int = MAX_VOLUME):
        self._failing: Dict[str, str] = {}
        self.max_volume = max_volume
        self.calls: list = []
        self.closed = False

    def fail_zone(self, zone_id: str, message: str = "simulated failure") -> None:
        self._failing[zone_id] = message

    def recover_zone(self, zone_id: str) -> None:
        self._failing.pop(zone_id, None)

    def set_volume(self, zone_id: str, volume: int) -> int:
        check_volume(volume)
        self.calls.append((zone_id, volume))
        if zone_id in self._failing:
            raise VolumeApplyError(
                f"setVolume failed for zone {zone_id}", [self._failing[zone_id]]
            )
        return min(volume, self.max_volume)

    def close(self) -> None:
        self.closed = True
