"""SQLite-backed key-value storage.

Plays the role of the browser's local storage: string values under string
keys, each write replacing the previous value atomically.
"""
import logging
import sqlite3
from typing import Optional

from config import settings

logger = logging.getLogger(__name__)


def get_db_connection(db_file: str) -> sqlite3.Connection:
    """Open a connection to the SQLite database file."""
    conn = sqlite3.connect(db_file)
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(db_file: str) -> None:
    """Create the key-value table if it does not exist yet."""
    conn = get_db_connection(db_file)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS local_storage (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.commit()
    finally:
        conn.close()


class KeyValueStore:
    """Minimal get/set/remove interface over one SQLite file."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or settings.data_file
        create_tables(self.db_file)

    def get_item(self, key: str) -> Optional[str]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute("SELECT value FROM local_storage WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def set_item(self, key: str, value: str) -> None:
        conn = get_db_connection(self.db_file)
        try:
            conn.execute(
                "INSERT INTO local_storage (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                (key, value),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug(f"Stored {len(value)} characters under key '{key}'")

    def remove_item(self, key: str) -> bool:
        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute("DELETE FROM local_storage WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def close(self) -> None:
        """Connections are opened per call, so there is nothing to release."""
        return None
