# src/config/settings.py - v1
"""Typed configuration loaded from environment and .env via pydantic-settings.

Every variable carries the SCHEMAGEN_ prefix, e.g. SCHEMAGEN_TARGET_PACKAGE.
Defaults mirror the values a fresh project gets without configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from schemagen.core.errors import ConfigurationError

__all__ = ["ConfigurationError", "Settings", "load_settings"]


class Settings(BaseSettings):
    """Pipeline settings loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEMAGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Ephemeral database ===
    database_name: str = "testdb"
    username: str = "test"
    password: SecretStr = SecretStr("test")
    service_image: str = "postgres"
    service_image_version: str = "16-alpine"

    # === Migrations ===
    migrations_dir: Path = Path("db/migrations")

    # === Code generation ===
    input_schema: str = "public"
    target_package: str = "com.example.db.generated"
    excluded_tables: str = "alembic_version"
    output_dir: Path = Path("build/generated-src/db")
    generator_style: str = "declarative"
    generator_options: str = ""
    # Comma-separated PATTERN=TARGET rules; PATTERN matches the reflected type name
    forced_types: str = "JSONB?=varchar,INET=varchar"

    # === Fingerprint cache ===
    cache_backend: Literal["json", "sqlite"] = "json"
    cache_root: Path = Path(".schemagen/cache")

    # === Timeouts (seconds) ===
    provision_timeout_s: float = Field(default=120.0, gt=0)
    migrate_timeout_s: float = Field(default=300.0, gt=0)
    generate_timeout_s: float = Field(default=300.0, gt=0)
    teardown_timeout_s: float = Field(default=60.0, gt=0)
    lock_timeout_s: float = Field(default=600.0, gt=0)
    teardown_retries: int = Field(default=1, ge=0, le=1)

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("target_package")
    @classmethod
    def validate_target_package(cls, v: str) -> str:  # noqa: N805
        """Package must be a dotted sequence of identifiers."""
        if v and not all(part.isidentifier() for part in v.split(".")):
            raise ValueError(f"target_package is not a dotted identifier: {v!r}")
        return v

    @model_validator(mode="after")
    def validate_non_empty(self) -> Settings:
        """Every connection and generation value must be non-empty."""
        errors: list[str] = []

        for name in (
            "database_name",
            "username",
            "service_image",
            "service_image_version",
            "input_schema",
            "target_package",
            "generator_style",
        ):
            if not str(getattr(self, name)).strip():
                errors.append(f"{name.upper()} must not be empty")

        for rule in self._forced_type_entries():
            pattern, sep, target = rule.partition("=")
            if not sep or not pattern.strip() or not target.strip():
                errors.append(f"FORCED_TYPES entry {rule!r} must look like PATTERN=TARGET")

        if not self.password.get_secret_value():
            errors.append("PASSWORD must not be empty")

        for name in ("migrations_dir", "output_dir"):
            if str(getattr(self, name)) in ("", "."):
                errors.append(f"{name.upper()} must name a directory")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def image_ref(self) -> str:
        """Container image reference, e.g. postgres:16-alpine."""
        return f"{self.service_image}:{self.service_image_version}"

    @property
    def excluded_tables_list(self) -> list[str]:
        """Parse comma-separated table exclusion patterns."""
        return [t.strip() for t in self.excluded_tables.split(",") if t.strip()]

    @property
    def generator_options_list(self) -> list[str]:
        """Parse comma-separated generator options."""
        return [o.strip() for o in self.generator_options.split(",") if o.strip()]

    @property
    def forced_types_list(self) -> list[tuple[str, str]]:
        """Parse forced type rules into (pattern, target) pairs, in order."""
        pairs = []
        for rule in self._forced_type_entries():
            pattern, _, target = rule.partition("=")
            pairs.append((pattern.strip(), target.strip().lower()))
        return pairs

    def _forced_type_entries(self) -> list[str]:
        return [r.strip() for r in self.forced_types.split(",") if r.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment and .env with optional overrides.

    Args:
        **overrides: Field-level overrides (CLI flags, tests).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If a required value is empty.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
