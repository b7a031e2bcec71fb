"""
In-memory record of the last volume acknowledged for each zone.
"""

from __future__ import annotations

from threading import Lock
from typing import Dict, Optional


class ZoneStateTracker:
    """
    Maps zone id to the last volume the remote side acknowledged. Nothing is
    persisted: after a restart every zone is unknown again, which forces one
    apply per zone on the first tick.
    """

    def __init__(self) -> None:
        self._volumes: Dict[str, int] = {}
        self._lock = Lock()

    def get(self, zone_id: str) -> Optional[int]:
        with self._lock:
            return self._volumes.get(zone_id)

    def set(self, zone_id: str, volume: int) -> None:
        with self._lock:
            self._volumes[zone_id] = volume

    def snapshot(self) -> Dict[str, int]:
        # Return a copy so callers cannot mutate our internal dict.
        with self._lock:
            return dict(self._volumes)

    def __len__(self) -> int:
        with self._lock:
            return len(self._volumes)
