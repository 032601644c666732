from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class SqliteKV:
    """Durable JSON key-value store in a single SQLite file."""

    def __init__(self, db_path: Path | str, *, busy_timeout_ms: int = 5000):
        self.db_path = Path(db_path)
        self.busy_timeout_ms = max(0, int(busy_timeout_ms))
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[Any]:
        raw = self._get_raw(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv (key, value_json, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value_json=excluded.value_json,
                    updated_at=excluded.updated_at
                """,
                (key, _dumps(value), now),
            )

    def remove(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def remove_if(self, key: str, expected: Any) -> bool:
        """Delete `key` only while it still holds `expected`."""
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM kv WHERE key = ? AND value_json = ?",
                (key, _dumps(expected)),
            )
            return cur.rowcount > 0

    def _get_raw(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value_json FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def _connect(self) -> sqlite3.Connection:
        timeout_s = max(0.1, self.busy_timeout_ms / 1000.0)
        return sqlite3.connect(self.db_path, timeout=timeout_s)


def _dumps(value: Any) -> str:
    # Deterministic text so remove_if can compare stored values byte for byte.
    return json.dumps(value, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
