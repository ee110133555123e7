# src/cache/json_store.py - v1
"""JSON file-based fingerprint store (default CACHE_BACKEND=json).

Stores one JSON file per key under CACHE_ROOT. Writes go through a
temporary file and an atomic rename so a reader never sees a partial
record.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from schemagen.cache.base_fingerprint_store import BaseFingerprintStore, _safe_key
from schemagen.cache.models import FingerprintRecord

logger = logging.getLogger(__name__)


class JsonFingerprintStore(BaseFingerprintStore):
    """File-based fingerprint store using JSON files."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def lock_dir(self) -> Path:
        return self._root / "locks"

    async def get(self, key: str) -> FingerprintRecord | None:
        """Retrieve record by key; unreadable records count as absent."""
        path = self._record_path(key)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return FingerprintRecord(**data)
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.warning("Failed to read fingerprint record %s: %s", key, e)
            return None

    async def put(self, key: str, record: FingerprintRecord) -> None:
        """Store a record, replacing any previous one atomically."""
        path = self._record_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(f".{os.getpid()}.tmp")
        tmp_path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp_path, path)

    async def delete(self, key: str) -> None:
        """Remove a record."""
        path = self._record_path(key)
        if path.exists():
            path.unlink()

    async def list_records(self) -> list[FingerprintRecord]:
        """List all persisted records, skipping unreadable files."""
        records: list[FingerprintRecord] = []
        if not self._root.is_dir():
            return records

        for path in sorted(self._root.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                records.append(FingerprintRecord(**data))
            except (json.JSONDecodeError, ValidationError, OSError):
                logger.debug("Skipping unreadable record %s", path.name)
                continue

        return records

    def _record_path(self, key: str) -> Path:
        """Return file path for a store key."""
        return self._root / f"{_safe_key(key)}.json"
