"""
Table definitions for the LifeOS database.

``users`` holds one JSON AppData document per user id, written wholesale.
``llm_usage`` counts generative calls per user and day for budget checks.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from lifeos.observability.logging import get_logger

logger = get_logger(__name__)

REQUIRED_TABLES = ("users", "llm_usage")

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        data TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS llm_usage (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        call_type TEXT NOT NULL,
        call_date DATE NOT NULL,
        call_count INTEGER DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(user_id, call_type, call_date)
    );

    CREATE INDEX IF NOT EXISTS idx_users_updated_at ON users(updated_at);
    CREATE INDEX IF NOT EXISTS idx_llm_usage_date ON llm_usage(call_date);
    CREATE INDEX IF NOT EXISTS idx_llm_usage_user_date ON llm_usage(user_id, call_date);
"""


def init_database(db_path: Path) -> None:
    """
    Create the schema at ``db_path`` (idempotent).

    Side Effects:
        - Creates parent directory and database file if missing
        - Executes CREATE TABLE/INDEX IF NOT EXISTS statements
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    finally:
        conn.close()

    logger.info("Database schema ready at %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Raises:
        ValueError: If any table in REQUIRED_TABLES is missing
    """
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    existing = {row[0] for row in rows}
    missing = [table for table in REQUIRED_TABLES if table not in existing]
    if missing:
        raise ValueError(f"Missing tables: {', '.join(missing)}")
    return True
