import os
import sys

import pytest

# Ensure project root is on sys.path for `import volume_scheduler`
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(PROJECT_ROOT)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from volume_scheduler.config import settings  # noqa: E402
from volume_scheduler.database import init_db  # noqa: E402
from volume_scheduler.schemas import Schedule  # noqa: E402


@pytest.fixture
def sqlite_db(tmp_path, monkeypatch):
    """Point the shared settings at a throwaway SQLite file."""
    db_path = tmp_path / "schedules.sqlite3"
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{db_path}")
    monkeypatch.setattr(settings, "database_type", "sqlite")
    monkeypatch.setattr(settings, "database_path", db_path)
    init_db()
    return db_path


@pytest.fixture
def make_schedule():
    def _make(zone_id="zone-a", rules=(), baseline=8, time_zone="UTC", active=True, name=None):
        return Schedule.model_validate(
            {
                "soundZoneId": zone_id,
                "zoneName": name,
                "rules": [
                    {"from": start, "to": end, "volume": volume}
                    for start, end, volume in rules
                ],
                "timeZone": time_zone,
                "baselineVolume": baseline,
                "isActive": active,
            }
        )

    return _make
