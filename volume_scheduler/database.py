"""
Database helpers and schema initialization for both SQLite and PostgreSQL.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterable, Tuple, Union
import logging
import sqlite3

from .config import settings
from .exceptions import ConfigurationError

# Import psycopg2 if available (for PostgreSQL)
try:
    import psycopg2
    import psycopg2.extras
    PSYCOPG2_AVAILABLE = True
except ImportError:
    PSYCOPG2_AVAILABLE = False

logger = logging.getLogger(__name__)


def dict_factory(cursor: sqlite3.Cursor, row: Tuple[Any, ...]) -> Dict[str, Any]:
    """
    Convert sqlite rows into dictionaries keyed by column name.
    """
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def sql(statement: str) -> str:
    """
    Statements are written with SQLite's ``?`` placeholders; PostgreSQL
    (psycopg2) expects ``%s``.
    """
    if settings.database_type == "postgresql":
        return statement.replace("?", "%s")
    return statement


@contextmanager
def get_connection() -> Generator[Union[sqlite3.Connection, Any], None, None]:
    """
    Context manager that yields a database connection and guarantees it is closed.
    Returns either SQLite or PostgreSQL connection based on settings.database_type.
    """
    problems = settings.database_problems()
    if problems:
        raise ConfigurationError(problems)

    if settings.database_type == "postgresql":
        if not PSYCOPG2_AVAILABLE:
            raise RuntimeError("psycopg2 is required for PostgreSQL but not installed")

        conn = psycopg2.connect(
            settings.database_url,
            cursor_factory=psycopg2.extras.RealDictCursor
        )
        try:
            yield conn
        finally:
            conn.close()
    else:
        settings.ensure_database_dir()
        conn = sqlite3.connect(settings.database_path, timeout=5.0)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA busy_timeout = 5000;")
        try:
            yield conn
        finally:
            conn.close()


def _get_schema_statements() -> Iterable[str]:
    """
    Returns schema SQL statements compatible with the current database type.
    PostgreSQL uses SERIAL instead of AUTOINCREMENT, and different timestamp handling.
    """
    if settings.database_type == "postgresql":
        return _POSTGRES_SCHEMA_STATEMENTS
    return _SQLITE_SCHEMA_STATEMENTS


# Column names are lowercase so SQLite and PostgreSQL rows use the same keys.
_SQLITE_SCHEMA_STATEMENTS: Iterable[str] = (
    """
    CREATE TABLE IF NOT EXISTS schedules (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        sound_zone_id TEXT NOT NULL UNIQUE,
        zone_name TEXT,
        rules TEXT NOT NULL DEFAULT '[]',
        time_zone TEXT NOT NULL,
        baseline_volume INTEGER NOT NULL DEFAULT 8
            CHECK (baseline_volume BETWEEN 0 AND 16),
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_schedules_active ON schedules (is_active);",
)


_POSTGRES_SCHEMA_STATEMENTS: Iterable[str] = (
    """
    CREATE TABLE IF NOT EXISTS schedules (
        id SERIAL PRIMARY KEY,
        sound_zone_id TEXT NOT NULL UNIQUE,
        zone_name TEXT,
        rules TEXT NOT NULL DEFAULT '[]',
        time_zone TEXT NOT NULL,
        baseline_volume INTEGER NOT NULL DEFAULT 8
            CHECK (baseline_volume BETWEEN 0 AND 16),
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_schedules_active ON schedules (is_active);",
)


def init_db() -> None:
    """
    Create schema (if needed).
    """
    with get_connection() as conn:
        cursor = conn.cursor()
        for statement in _get_schema_statements():
            cursor.execute(statement)
        conn.commit()
        cursor.close()
    logger.info(
        "database.ready type=%s url=%s",
        settings.database_type,
        settings.redacted_database_url,
    )
