# src/cache/store_factory.py - v1
"""Factory for fingerprint store instantiation."""

from __future__ import annotations

from schemagen.cache.base_fingerprint_store import BaseFingerprintStore
from schemagen.config.settings import Settings


def create_fingerprint_store(settings: Settings | None = None) -> BaseFingerprintStore:
    """Instantiate the configured fingerprint store backend.

    Args:
        settings: Application settings. Defaults to the JSON backend.

    Returns:
        Configured BaseFingerprintStore implementation.
    """
    backend = "json" if settings is None else settings.cache_backend
    cache_root = ".schemagen/cache" if settings is None else str(settings.cache_root)

    if backend == "json":
        from schemagen.cache.json_store import JsonFingerprintStore
        return JsonFingerprintStore(cache_root=cache_root)

    if backend == "sqlite":
        from schemagen.cache.sqlite_store import SqliteFingerprintStore
        return SqliteFingerprintStore(db_path=f"{cache_root}/fingerprints.db")

    raise ValueError(f"Unsupported cache backend: {backend!r}")
