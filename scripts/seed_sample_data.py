"""
Populate the configured database with sample schedules.
"""

from __future__ import annotations

from random import Random

from volume_scheduler.config import settings
from volume_scheduler.database import init_db
from volume_scheduler.schemas import Schedule
from volume_scheduler import repositories

SAMPLE_ZONES = (
    ("U291bmRab25lLDEvbG9iYnk", "Lobby", "Asia/Bangkok"),
    ("U291bmRab25lLDEvcG9vbA", "Pool Bar", "Asia/Bangkok"),
    ("U291bmRab25lLDEvc3Bh", "Spa", "Europe/Stockholm"),
    ("U291bmRab25lLDEvcm9vZnRvcA", "Rooftop", "America/New_York"),
)


def sample_schedule(randomizer: Random, zone_id: str, name: str, time_zone: str) -> Schedule:
    """
    Quiet mornings, a louder afternoon, an evening peak and a wrapped
    overnight window so every matching path shows up in the data.
    """
    baseline = randomizer.randint(5, 8)
    return Schedule.model_validate(
        {
            "soundZoneId": zone_id,
            "zoneName": name,
            "timeZone": time_zone,
            "baselineVolume": baseline,
            "rules": [
                {"from": "07:00", "to": "11:00", "volume": max(baseline - 2, 0)},
                {"from": "14:00", "to": "18:00", "volume": baseline + 2},
                {"from": "18:00", "to": "22:00", "volume": min(baseline + randomizer.randint(3, 6), 16)},
                {"from": "22:00", "to": "02:00", "volume": randomizer.randint(2, 4)},
            ],
        }
    )


def main() -> None:
    # Deterministic seed so repeated runs produce the same data.
    randomizer = Random(42)
    problems = settings.database_problems()
    if problems:
        raise SystemExit("; ".join(problems))
    init_db()

    for zone_id, name, time_zone in SAMPLE_ZONES:
        repositories.save_schedule(sample_schedule(randomizer, zone_id, name, time_zone))
    # The last zone starts disabled so the active filter has something to skip.
    repositories.set_schedule_active(SAMPLE_ZONES[-1][0], False)
    print(f"Sample schedules inserted into {settings.redacted_database_url}.")


if __name__ == "__main__":
    main()
