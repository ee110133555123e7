# src/cache/base_fingerprint_store.py - v2
"""Abstract fingerprint store interface.

Records are keyed by fingerprint_key(target_package, output_directory).
Every store provides a key-scoped lock: two runs on the same key are
serialized from the cache check through the fingerprint write, runs on
distinct keys never contend.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from filelock import FileLock

from schemagen.cache.models import FingerprintRecord
from schemagen.core.blocking import run_blocking

logger = logging.getLogger(__name__)


class KeyLease:
    """A held key lock.

    hand_off() moves the release out of the ``lock()`` block: the lock
    stays held after the block exits until the returned callable runs.
    """

    def __init__(self, key: str, file_lock: FileLock) -> None:
        self.key = key
        self._file_lock = file_lock
        self.handed_off = False

    def hand_off(self) -> Callable[[], None]:
        self.handed_off = True
        return self._release_late

    def _release_late(self) -> None:
        self._file_lock.release()
        logger.info("Released fingerprint lock %s after abandoned call finished", self.key)


class BaseFingerprintStore(ABC):
    """Unified interface for fingerprint storage backends."""

    @abstractmethod
    async def get(self, key: str) -> FingerprintRecord | None:
        """Retrieve the record for key, or None."""

    @abstractmethod
    async def put(self, key: str, record: FingerprintRecord) -> None:
        """Store (replace) the record for key."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the record for key."""

    @abstractmethod
    async def list_records(self) -> list[FingerprintRecord]:
        """List all persisted records."""

    @property
    @abstractmethod
    def lock_dir(self) -> Path:
        """Directory holding the per-key lock files."""

    @asynccontextmanager
    async def lock(self, key: str, timeout_s: float) -> AsyncIterator[KeyLease]:
        """Hold the inter-process lock for key.

        Raises:
            filelock.Timeout: If the lock is not acquired within timeout_s.
        """
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        file_lock = FileLock(str(self.lock_dir / f"{_safe_key(key)}.lock"), thread_local=False)
        await run_blocking(
            file_lock.acquire,
            timeout=timeout_s,
            on_abandoned=lambda _: file_lock.release(),
        )
        logger.debug("Acquired fingerprint lock %s", key)
        lease = KeyLease(key, file_lock)
        try:
            yield lease
        finally:
            if lease.handed_off:
                logger.warning("Fingerprint lock %s stays held until the abandoned call finishes", key)
            else:
                file_lock.release()
                logger.debug("Released fingerprint lock %s", key)


def _safe_key(key: str) -> str:
    return key.replace("/", "_").replace("\\", "_")
