import json
import os
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from roundtable.config import settings

CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT
)
"""


class SnapshotStore:
    """Local key-value store holding one JSON record per key."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path or settings.snapshot_db_path

    def _get_conn(self) -> sqlite3.Connection:
        os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.execute(CREATE_TABLE)
        conn.commit()
        return conn

    def get(self, key: str) -> Optional[dict]:
        """Return the stored record, or None when nothing was saved under ``key``."""
        conn = self._get_conn()
        row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        conn.close()
        if row is None:
            return None
        return json.loads(row[0])

    def put(self, key: str, value: dict) -> None:
        conn = self._get_conn()
        conn.execute(
            "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
            (key, json.dumps(value, ensure_ascii=False), datetime.now(timezone.utc).isoformat()),
        )
        conn.commit()
        conn.close()

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        conn.commit()
        conn.close()
