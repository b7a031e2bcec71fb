"""
Data access layer for schedule definitions.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import json

from .database import get_connection, sql
from .schemas import Schedule

_SCHEDULE_COLUMNS = """
    id,
    sound_zone_id,
    zone_name,
    rules,
    time_zone,
    baseline_volume,
    is_active,
    created_at,
    updated_at
"""


def row_to_payload(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Turn a schedules row into the camelCase shape the Schedule model reads.
    Undecodable rule JSON is passed through as None so validation rejects it.
    """
    raw_rules = row.get("rules")
    try:
        rules = json.loads(raw_rules) if isinstance(raw_rules, str) else raw_rules
    except json.JSONDecodeError:
        rules = None
    return {
        "soundZoneId": row.get("sound_zone_id"),
        "zoneName": row.get("zone_name"),
        "rules": rules,
        "timeZone": row.get("time_zone"),
        "baselineVolume": row.get("baseline_volume"),
        "isActive": bool(row.get("is_active", 1)),
    }


def list_schedules(active_only: bool = False) -> List[Dict[str, Any]]:
    """
    Return schedule rows ordered by zone name (then id).
    """
    where_clause = "WHERE is_active = 1" if active_only else ""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(
            f"""
            SELECT {_SCHEDULE_COLUMNS}
            FROM schedules
            {where_clause}
            ORDER BY COALESCE(zone_name, sound_zone_id) ASC, id ASC;
            """
        )
        rows = cursor.fetchall()
        cursor.close()
    return [dict(row) for row in rows]


def get_schedule(zone_id: str) -> Optional[Dict[str, Any]]:
    """
    Fetch the schedule row for a single sound zone.
    """
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(
            sql(f"SELECT {_SCHEDULE_COLUMNS} FROM schedules WHERE sound_zone_id = ?;"),
            (zone_id,),
        )
        row = cursor.fetchone()
        cursor.close()
    return dict(row) if row else None


def save_schedule(schedule: Schedule) -> Dict[str, Any]:
    """
    Insert or replace the schedule for ``schedule.zone_id``. The model has
    already been validated, so whatever reaches the table is well-formed.
    """
    rules_json = json.dumps(
        [rule.model_dump(by_alias=True) for rule in schedule.rules]
    )
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(
            sql(
                """
                INSERT INTO schedules (
                    sound_zone_id,
                    zone_name,
                    rules,
                    time_zone,
                    baseline_volume,
                    is_active
                )
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (sound_zone_id) DO UPDATE SET
                    zone_name = excluded.zone_name,
                    rules = excluded.rules,
                    time_zone = excluded.time_zone,
                    baseline_volume = excluded.baseline_volume,
                    is_active = excluded.is_active,
                    updated_at = CURRENT_TIMESTAMP;
                """
            ),
            (
                schedule.zone_id,
                schedule.zone_name,
                rules_json,
                schedule.time_zone,
                schedule.baseline_volume,
                1 if schedule.active else 0,
            ),
        )
        conn.commit()
        cursor.close()

    saved = get_schedule(schedule.zone_id)
    if not saved:
        raise RuntimeError(f"Failed to fetch saved schedule for zone {schedule.zone_id}")
    return saved


def set_schedule_active(zone_id: str, active: bool) -> bool:
    """
    Enable or disable a schedule without touching its rules.
    Returns False when the zone has no schedule.
    """
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(
            sql(
                "UPDATE schedules SET is_active = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE sound_zone_id = ?;"
            ),
            (1 if active else 0, zone_id),
        )
        changed = cursor.rowcount > 0
        conn.commit()
        cursor.close()
    return changed


def delete_schedule(zone_id: str) -> bool:
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute(sql("DELETE FROM schedules WHERE sound_zone_id = ?;"), (zone_id,))
        deleted = cursor.rowcount > 0
        conn.commit()
        cursor.close()
    return deleted
