# src/api/facade.py - v1
"""Public API facade: entry points for generation, cleanup and status.

Usage:
    from schemagen.api.facade import run_pipeline
    state = await run_pipeline(target_package="app.db.models")
"""

from __future__ import annotations

import logging
import shutil
from typing import Any

from schemagen.cache.base_fingerprint_store import BaseFingerprintStore
from schemagen.cache.fingerprint import compute_fingerprint, fingerprint_key, schema_config
from schemagen.cache.generation_cache import inspect_output_dir, regeneration_reason
from schemagen.cache.store_factory import create_fingerprint_store
from schemagen.codegen.base_generator import BaseSchemaCodeGenerator, package_directory
from schemagen.codegen.sqlacodegen_generator import SqlacodegenGenerator
from schemagen.config.settings import Settings, load_settings
from schemagen.migrations.alembic_runner import AlembicMigrationRunner
from schemagen.pipeline.orchestrator import PipelineOrchestrator
from schemagen.pipeline.state import PipelineRunState
from schemagen.substrate.postgres_container import PostgresContainerSubstrate

logger = logging.getLogger(__name__)


def build_generator(settings: Settings) -> BaseSchemaCodeGenerator:
    return SqlacodegenGenerator(
        style=settings.generator_style,
        options=settings.generator_options_list,
        forced_types=settings.forced_types_list,
    )


def build_orchestrator(
    settings: Settings,
    fingerprint_store: BaseFingerprintStore | None = None,
) -> PipelineOrchestrator:
    """Wire the default collaborators for settings.

    Args:
        settings: Validated settings.
        fingerprint_store: Store override. None = backend from settings.
    """
    return PipelineOrchestrator(
        settings=settings,
        substrate=PostgresContainerSubstrate(),
        migration_runner=AlembicMigrationRunner(),
        generator=build_generator(settings),
        fingerprint_store=fingerprint_store or create_fingerprint_store(settings),
    )


async def run_pipeline(settings: Settings | None = None, **overrides: Any) -> PipelineRunState:
    """Run provision, migrate, generate and teardown once.

    Args:
        settings: Global settings. Loaded from env/.env if None.
        **overrides: Field overrides applied on top of settings.

    Returns:
        The finalized PipelineRunState. Stage failures are reported
        there, not raised.

    Raises:
        ConfigurationError: If the resulting settings are invalid.
    """
    settings = _resolve(settings, overrides)
    orchestrator = build_orchestrator(settings)
    return await orchestrator.run()


async def clean_generated(settings: Settings | None = None, **overrides: Any) -> dict[str, Any]:
    """Delete the generated package and forget its fingerprint.

    The next run for the same key regenerates unconditionally.
    """
    settings = _resolve(settings, overrides)
    store = create_fingerprint_store(settings)
    key = fingerprint_key(settings.target_package, settings.output_dir)
    target_dir = package_directory(settings.output_dir, settings.target_package)

    async with store.lock(key, settings.lock_timeout_s):
        removed = target_dir.is_dir()
        if removed:
            shutil.rmtree(target_dir)
            logger.info("Removed generated sources in %s", target_dir)
        had_record = await store.get(key) is not None
        await store.delete(key)

    return {
        "store_key": key,
        "target_directory": str(target_dir),
        "sources_removed": removed,
        "fingerprint_removed": had_record,
    }


async def generation_status(settings: Settings | None = None, **overrides: Any) -> dict[str, Any]:
    """Report whether a run would regenerate, without provisioning anything."""
    settings = _resolve(settings, overrides)
    store = create_fingerprint_store(settings)
    generator = build_generator(settings)
    key = fingerprint_key(settings.target_package, settings.output_dir)
    target_dir = package_directory(settings.output_dir, settings.target_package)

    current = compute_fingerprint(
        settings.migrations_dir,
        schema_config(
            image_ref=settings.image_ref,
            input_schema=settings.input_schema,
            excluded_tables=settings.excluded_tables_list,
            target_package=settings.target_package,
            generator_style=generator.style,
            generator_options=settings.generator_options_list,
            forced_types=settings.forced_types_list,
        ),
        generator.version,
    )
    persisted = await store.get(key)
    reason = regeneration_reason(
        current,
        persisted.fingerprint if persisted else None,
        inspect_output_dir(target_dir),
    )
    return {
        "store_key": key,
        "target_package": settings.target_package,
        "target_directory": str(target_dir),
        "up_to_date": reason is None,
        "reason": reason,
        "last_run_id": persisted.run_id if persisted else None,
        "last_generated_at": persisted.recorded_at.isoformat() if persisted else None,
    }


def _resolve(settings: Settings | None, overrides: dict[str, Any]) -> Settings:
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if settings is None:
        return load_settings(**overrides)
    if not overrides:
        return settings
    # Re-validate so overrides go through the same checks as env values
    return Settings.model_validate({**settings.model_dump(), **overrides})
