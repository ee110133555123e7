# tests/unit/config/test_settings.py - v1
"""Tests for config/settings.py."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import SecretStr, ValidationError

from schemagen.config.settings import ConfigurationError, Settings, load_settings


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """No .env file and no SCHEMAGEN_ variables leak into these tests."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("SCHEMAGEN_"):
            monkeypatch.delenv(name)


class TestDefaults:
    def test_defaults(self):
        s = Settings()
        assert s.database_name == "testdb"
        assert s.username == "test"
        assert s.password.get_secret_value() == "test"
        assert s.image_ref == "postgres:16-alpine"
        assert s.input_schema == "public"
        assert s.target_package == "com.example.db.generated"
        assert s.excluded_tables_list == ["alembic_version"]
        assert s.migrations_dir == Path("db/migrations")
        assert s.output_dir == Path("build/generated-src/db")
        assert s.cache_backend == "json"
        assert s.teardown_retries == 1

    def test_password_hidden_in_repr(self):
        assert "test" not in repr(Settings().password)


class TestEnvironment:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SCHEMAGEN_TARGET_PACKAGE", "app.models")
        monkeypatch.setenv("SCHEMAGEN_SERVICE_IMAGE_VERSION", "17")
        s = Settings()
        assert s.target_package == "app.models"
        assert s.image_ref == "postgres:17"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("SCHEMAGEN_INPUT_SCHEMA=sales\n")
        assert Settings().input_schema == "sales"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("SCHEMAGEN_INPUT_SCHEMA", "sales")
        assert load_settings(input_schema="billing").input_schema == "billing"


class TestLists:
    def test_excluded_tables_parsed(self):
        s = Settings(excluded_tables=" alembic_version , audit_.* ,, ")
        assert s.excluded_tables_list == ["alembic_version", "audit_.*"]

    def test_generator_options_parsed(self):
        assert Settings(generator_options="noindexes,nocomments").generator_options_list == [
            "noindexes",
            "nocomments",
        ]
        assert Settings().generator_options_list == []

    def test_forced_types_default(self):
        assert Settings().forced_types_list == [("JSONB?", "varchar"), ("INET", "varchar")]

    def test_forced_types_parsed(self):
        s = Settings(forced_types=" citext = TEXT ,, money=numeric")
        assert s.forced_types_list == [("citext", "text"), ("money", "numeric")]
        assert Settings(forced_types="").forced_types_list == []

    def test_malformed_forced_type(self):
        with pytest.raises(ConfigurationError, match="FORCED_TYPES"):
            Settings(forced_types="JSONB")


class TestValidation:
    @pytest.mark.parametrize(
        "field", ["database_name", "username", "service_image", "input_schema", "generator_style"]
    )
    def test_empty_value_rejected(self, field):
        with pytest.raises(ConfigurationError, match=field.upper()):
            Settings(**{field: "  "})

    def test_empty_password_rejected(self):
        with pytest.raises(ConfigurationError, match="PASSWORD"):
            Settings(password=SecretStr(""))

    def test_errors_aggregated(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(database_name="", username="")
        assert "DATABASE_NAME" in str(exc_info.value)
        assert "USERNAME" in str(exc_info.value)

    def test_output_dir_must_be_named(self):
        with pytest.raises(ConfigurationError, match="OUTPUT_DIR"):
            Settings(output_dir=Path("."))

    def test_invalid_package(self):
        with pytest.raises(ValidationError, match="dotted identifier"):
            Settings(target_package="com.example.1db")

    @pytest.mark.parametrize("field", ["provision_timeout_s", "lock_timeout_s"])
    def test_timeouts_positive(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_teardown_retries_bounded(self):
        with pytest.raises(ValidationError):
            Settings(teardown_retries=2)

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            Settings(cache_backend="redis")
