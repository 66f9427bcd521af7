"""SQLite storage for local, per-user state: settings and favorites."""

import json
import sqlite3
from typing import Any, Optional, Set


def init_db(db_path: str) -> sqlite3.Connection:
    """
    Initialize the database and create tables if they don't exist.

    Args:
        db_path: Path to the SQLite database file (":memory:" for tests).

    Returns:
        A connection to the database. Pollers and the notification center
        run on their own threads, so the connection is not bound to the
        creating thread; writes are short and committed immediately.
    """
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS favorites (
            kind TEXT NOT NULL,
            item_id TEXT NOT NULL,
            PRIMARY KEY (kind, item_id)
        )
    """)
    conn.commit()
    return conn


def get_meta(conn: sqlite3.Connection, key: str) -> Optional[str]:
    """
    Get a metadata value from the database.

    Args:
        conn: Database connection.
        key: Metadata key.

    Returns:
        The metadata value, or None if not found.
    """
    cursor = conn.execute("SELECT value FROM meta WHERE key = ?", (key,))
    row = cursor.fetchone()
    return row[0] if row else None


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Set a metadata value in the database."""
    conn.execute(
        "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
        (key, value)
    )
    conn.commit()


def get_json(conn: sqlite3.Connection, key: str) -> Optional[Any]:
    """Read a JSON document stored under ``key``; unreadable values count as missing."""
    raw = get_meta(conn, key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def set_json(conn: sqlite3.Connection, key: str, value: Any) -> None:
    set_meta(conn, key, json.dumps(value))


def get_favorites(conn: sqlite3.Connection, kind: str) -> Set[str]:
    """
    Retrieve the favorite item identifiers for one dataset.

    Identifiers are stored as text so integer and string keys compare equal
    after a round trip.
    """
    cursor = conn.execute("SELECT item_id FROM favorites WHERE kind = ?", (kind,))
    return {row[0] for row in cursor.fetchall()}


def toggle_favorite(conn: sqlite3.Connection, kind: str, item_id: Any) -> bool:
    """
    Add the item to the favorites of ``kind``, or remove it if already there.

    Returns:
        True if the item is a favorite after the call.
    """
    item_id = str(item_id)
    cursor = conn.execute(
        "DELETE FROM favorites WHERE kind = ? AND item_id = ?", (kind, item_id)
    )
    if cursor.rowcount:
        conn.commit()
        return False
    conn.execute(
        "INSERT INTO favorites (kind, item_id) VALUES (?, ?)", (kind, item_id)
    )
    conn.commit()
    return True
