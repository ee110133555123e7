# tests/unit/cache/test_unit_store_factory.py - v1
"""Tests for cache/store_factory.py."""

from __future__ import annotations

import pytest

from schemagen.cache.json_store import JsonFingerprintStore
from schemagen.cache.sqlite_store import SqliteFingerprintStore
from schemagen.cache.store_factory import create_fingerprint_store


class TestStoreFactory:
    def test_json_backend(self, settings):
        store = create_fingerprint_store(settings)
        assert isinstance(store, JsonFingerprintStore)
        assert store.lock_dir == settings.cache_root / "locks"

    def test_sqlite_backend(self, settings):
        store = create_fingerprint_store(settings.model_copy(update={"cache_backend": "sqlite"}))
        assert isinstance(store, SqliteFingerprintStore)
        assert (settings.cache_root / "fingerprints.db").exists()

    def test_default_is_json(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert isinstance(create_fingerprint_store(), JsonFingerprintStore)

    def test_unknown_backend(self, settings):
        with pytest.raises(ValueError, match="Unsupported cache backend"):
            create_fingerprint_store(settings.model_copy(update={"cache_backend": "redis"}))
