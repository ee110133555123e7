# src/cache/models.py - v1
"""Cache domain models: GenerationFingerprint, FingerprintRecord, OutputDirState."""

from __future__ import annotations

import json
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class GenerationFingerprint(BaseModel):
    """Digest of every input that affects generated output."""

    model_config = ConfigDict(frozen=True)

    migration_set_digest: str
    schema_config_digest: str
    generator_version: str

    def canonical_bytes(self) -> bytes:
        """Stable serialization used for byte-for-byte comparison."""
        return json.dumps(self.model_dump(), sort_keys=True, separators=(",", ":")).encode("utf-8")


class FingerprintRecord(BaseModel):
    """Persisted fingerprint of the last successful generation for a key."""

    key: str
    target_package: str
    output_directory: str
    fingerprint: GenerationFingerprint
    recorded_at: datetime
    run_id: str
    files_written: list[str] = []


class OutputDirState(BaseModel):
    """Observed state of the generator's target directory."""

    model_config = ConfigDict(frozen=True)

    path: str
    exists: bool
    non_empty: bool
