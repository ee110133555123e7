# src/cache/sqlite_store.py - v1
"""SQLite-based fingerprint store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. One row per key; a new
connection per call keeps the store usable from worker threads.
Key-scoped locking still uses lock files next to the database.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path

from pydantic import ValidationError

from schemagen.cache.base_fingerprint_store import BaseFingerprintStore
from schemagen.cache.models import FingerprintRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS fingerprints (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    target_package TEXT,
    output_directory TEXT,
    recorded_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


class SqliteFingerprintStore(BaseFingerprintStore):
    """SQLite-backed fingerprint store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)

    @property
    def lock_dir(self) -> Path:
        return self._db_path.parent / "locks"

    async def get(self, key: str) -> FingerprintRecord | None:
        """Retrieve record by key."""
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT data FROM fingerprints WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        try:
            return FingerprintRecord(**json.loads(row[0]))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Failed to deserialize fingerprint record %s: %s", key, e)
            return None

    async def put(self, key: str, record: FingerprintRecord) -> None:
        """Store a record (upsert)."""
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """INSERT OR REPLACE INTO fingerprints
                   (key, data, target_package, output_directory, recorded_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    key,
                    record.model_dump_json(),
                    record.target_package,
                    record.output_directory,
                    record.recorded_at.isoformat(),
                ),
            )

    async def delete(self, key: str) -> None:
        """Remove a record."""
        with closing(self._connect()) as conn, conn:
            conn.execute("DELETE FROM fingerprints WHERE key = ?", (key,))

    async def list_records(self) -> list[FingerprintRecord]:
        """List all persisted records."""
        with closing(self._connect()) as conn:
            rows = conn.execute("SELECT data FROM fingerprints ORDER BY key").fetchall()
        records: list[FingerprintRecord] = []
        for row in rows:
            try:
                records.append(FingerprintRecord(**json.loads(row[0])))
            except (json.JSONDecodeError, ValidationError):
                continue
        return records

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path), timeout=30)
