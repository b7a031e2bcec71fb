import pytest

from volume_scheduler import repositories
from volume_scheduler.config import settings
from volume_scheduler.database import get_connection
from volume_scheduler.exceptions import ConfigurationError, ScheduleSourceError
from volume_scheduler.services import DatabaseScheduleSource


def test_schedule_insert_and_fetch(sqlite_db, make_schedule):
    schedule = make_schedule(
        zone_id="U291bmRab25l",
        name="Lobby",
        rules=[("09:00", "10:00", 10), ("22:00", "02:00", 4)],
        baseline=6,
        time_zone="Asia/Bangkok",
    )

    row = repositories.save_schedule(schedule)

    assert row["sound_zone_id"] == "U291bmRab25l"
    assert row["zone_name"] == "Lobby"
    assert row["baseline_volume"] == 6
    assert row["is_active"] == 1
    payload = repositories.row_to_payload(row)
    assert payload["rules"] == [
        {"from": "09:00", "to": "10:00", "volume": 10},
        {"from": "22:00", "to": "02:00", "volume": 4},
    ]
    assert payload["timeZone"] == "Asia/Bangkok"


def test_save_replaces_existing_schedule(sqlite_db, make_schedule):
    repositories.save_schedule(make_schedule(rules=[("09:00", "10:00", 10)]))
    repositories.save_schedule(make_schedule(rules=[], baseline=3))

    rows = repositories.list_schedules()
    assert len(rows) == 1
    assert rows[0]["baseline_volume"] == 3
    assert rows[0]["rules"] == "[]"


def test_active_filter_and_toggle(sqlite_db, make_schedule):
    repositories.save_schedule(make_schedule(zone_id="a", name="Bar"))
    repositories.save_schedule(make_schedule(zone_id="b", name="Lobby", active=False))

    assert [r["sound_zone_id"] for r in repositories.list_schedules()] == ["a", "b"]
    assert [r["sound_zone_id"] for r in repositories.list_schedules(active_only=True)] == ["a"]

    assert repositories.set_schedule_active("b", True)
    assert not repositories.set_schedule_active("missing", True)
    assert len(repositories.list_schedules(active_only=True)) == 2


def test_delete_schedule(sqlite_db, make_schedule):
    repositories.save_schedule(make_schedule(zone_id="a"))
    assert repositories.delete_schedule("a")
    assert not repositories.delete_schedule("a")
    assert repositories.get_schedule("a") is None


def test_database_source_returns_validated_schedules(sqlite_db, make_schedule):
    repositories.save_schedule(make_schedule(zone_id="a", rules=[("09:00", "10:00", 10)]))
    repositories.save_schedule(make_schedule(zone_id="b", active=False))

    schedules = DatabaseScheduleSource().fetch_active()

    assert [s.zone_id for s in schedules] == ["a"]
    assert schedules[0].rules[0].volume == 10


def test_database_source_skips_invalid_rows(sqlite_db, make_schedule):
    repositories.save_schedule(make_schedule(zone_id="good"))
    with get_connection() as conn:
        conn.execute(
            "INSERT INTO schedules (sound_zone_id, rules, time_zone) VALUES (?, ?, ?)",
            ("bad-json", "{not json", "UTC"),
        )
        conn.execute(
            "INSERT INTO schedules (sound_zone_id, rules, time_zone) VALUES (?, ?, ?)",
            ("bad-rule", '[{"from": "25:00", "to": "10:00", "volume": 4}]', "UTC"),
        )
        conn.execute(
            "INSERT INTO schedules (sound_zone_id, rules, time_zone) VALUES (?, ?, ?)",
            ("bad-tz", "[]", "Nowhere/Special"),
        )
        conn.commit()

    schedules = DatabaseScheduleSource().fetch_active()

    assert [s.zone_id for s in schedules] == ["good"]


def test_database_source_wraps_connection_problems(monkeypatch):
    monkeypatch.setattr(settings, "database_url", "")
    monkeypatch.setattr(settings, "database_type", "")

    with pytest.raises(ScheduleSourceError):
        DatabaseScheduleSource().fetch_active()
    with pytest.raises(ConfigurationError):
        repositories.list_schedules()
