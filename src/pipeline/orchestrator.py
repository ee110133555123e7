# src/pipeline/orchestrator.py - v1
"""Pipeline orchestrator: provision, migrate, generate, tear down.

Drives the fixed four-stage pipeline:
  Provision: start an ephemeral database and wait until it is ready
  Migrate:   apply every migration to it
  Generate:  regenerate data-access code unless the fingerprint is unchanged
  Teardown:  release the database

Stages run strictly in this order on one control flow. As soon as
Provision succeeds, Teardown is registered on an AsyncExitStack so it
runs on every exit path: normal completion, a failed stage, an
unexpected error or host cancellation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from contextlib import AsyncExitStack
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from schemagen.cache.fingerprint import compute_fingerprint, fingerprint_key, schema_config
from schemagen.cache.generation_cache import (
    inspect_output_dir,
    regeneration_reason,
    should_regenerate,
)
from schemagen.cache.models import FingerprintRecord
from schemagen.codegen.base_generator import package_directory
from schemagen.core.blocking import run_blocking
from schemagen.core.errors import GenerationFailure, TeardownFailure
from schemagen.core.models import ResourceHandle, StageName
from schemagen.logging.context import set_run_context
from schemagen.pipeline.stage_executor import StageExecutor, StageSkipped
from schemagen.pipeline.state import PipelineRunState

if TYPE_CHECKING:
    from schemagen.cache.base_fingerprint_store import BaseFingerprintStore
    from schemagen.codegen.base_generator import BaseSchemaCodeGenerator
    from schemagen.config.settings import Settings
    from schemagen.migrations.base_runner import BaseMigrationRunner
    from schemagen.pipeline.events import StageEventSink
    from schemagen.substrate.base_substrate import BaseServiceSubstrate

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Run the generation pipeline for one configuration.

    The orchestrator keeps no per-run state of its own; each run() builds
    a fresh PipelineRunState, so one instance may serve concurrent runs.

    Args:
        settings: Validated pipeline settings.
        substrate: Creates the ephemeral database.
        migration_runner: Applies migrations.
        generator: Generates code from the live schema.
        fingerprint_store: Persists the last successful fingerprint per key.
        event_sinks: Receivers of per-stage status events.
    """

    def __init__(
        self,
        settings: Settings,
        substrate: BaseServiceSubstrate,
        migration_runner: BaseMigrationRunner,
        generator: BaseSchemaCodeGenerator,
        fingerprint_store: BaseFingerprintStore,
        event_sinks: Sequence[StageEventSink] | None = None,
    ) -> None:
        self._settings = settings
        self._substrate = substrate
        self._runner = migration_runner
        self._generator = generator
        self._store = fingerprint_store
        self._executor = StageExecutor(sinks=event_sinks)

    @property
    def store_key(self) -> str:
        return fingerprint_key(self._settings.target_package, self._settings.output_dir)

    async def run(self) -> PipelineRunState:
        """Execute all stages and return the finalized run state.

        Stage faults never escape: they are reported in the returned
        state. Only host cancellation propagates, after teardown.
        """
        state = PipelineRunState(
            target_package=self._settings.target_package,
            store_key=self.store_key,
        )
        set_run_context(state.run_id, state.target_package)
        logger.info(
            "Pipeline run %s: %s -> %s",
            state.run_id, self._settings.target_package, self._settings.output_dir,
        )

        try:
            async with AsyncExitStack() as stack:
                await self._run_stages(state, stack)
        finally:
            state.finalize()
            logger.info(
                "Pipeline run %s finished: %s%s",
                state.run_id,
                state.outcome.value if state.outcome else "unknown",
                f" (root cause: {state.root_cause.value})" if state.root_cause else "",
                extra={"data": state.summary()},
            )
            if state.degraded:
                logger.warning(
                    "Generated code is in place but the ephemeral instance "
                    "was not released: %s", "; ".join(state.warnings),
                )
        return state

    async def _run_stages(self, state: PipelineRunState, stack: AsyncExitStack) -> None:
        s = self._settings

        provision = await self._executor.execute(
            state, StageName.PROVISION,
            lambda: self._provision(state),
            timeout_s=s.provision_timeout_s,
        )
        if not provision.succeeded or state.handle is None:
            logger.info("No instance was provisioned; nothing to release")
            return
        stack.push_async_callback(self._teardown, state, state.handle)

        migrate = await self._executor.execute(
            state, StageName.MIGRATE,
            lambda: self._migrate(state.handle),
            timeout_s=s.migrate_timeout_s,
        )
        if not migrate.succeeded:
            return

        # Bounded inside: lock wait and generator call have separate limits
        await self._executor.execute(
            state, StageName.GENERATE,
            lambda: self._generate(state, state.handle),
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _provision(self, state: PipelineRunState) -> dict[str, Any]:
        s = self._settings
        handle = await run_blocking(
            self._substrate.provision,
            s.image_ref,
            s.database_name,
            s.username,
            s.password.get_secret_value(),
            on_abandoned=_release_orphan,
        )
        state.handle = handle
        return {
            "substrate": self._substrate.name,
            "image_ref": s.image_ref,
            "endpoint": handle.endpoint_address,
            "database": handle.database_name,
        }

    async def _migrate(self, handle: ResourceHandle) -> dict[str, Any]:
        report = await run_blocking(
            self._runner.apply_all,
            handle.endpoint,
            handle.credentials,
            self._settings.migrations_dir,
        )
        return {
            "applied_count": report.applied_count,
            "revisions": report.current_revisions,
        }

    async def _generate(self, state: PipelineRunState, handle: ResourceHandle) -> dict[str, Any]:
        s = self._settings
        key = state.store_key
        target_dir = package_directory(s.output_dir, s.target_package)

        async with self._store.lock(key, s.lock_timeout_s) as lease:
            current = await run_blocking(
                compute_fingerprint,
                s.migrations_dir,
                self._schema_config(),
                self._generator.version,
            )
            persisted = await self._store.get(key)
            dir_state = inspect_output_dir(target_dir)
            previous = persisted.fingerprint if persisted else None

            if not should_regenerate(current, previous, dir_state):
                raise StageSkipped(
                    "fingerprint unchanged and output present",
                    detail={"store_key": key, "target_directory": str(target_dir)},
                )
            reason = regeneration_reason(current, previous, dir_state)
            logger.info("Regenerating %s: %s", s.target_package, reason)

            # The directory is about to be rewritten; no record may vouch for it
            # until this generation succeeds.
            if persisted is not None:
                await self._store.delete(key)

            deadline = asyncio.timeout(s.generate_timeout_s)
            try:
                async with deadline:
                    report = await run_blocking(
                        self._generator.generate,
                        handle.endpoint,
                        handle.credentials,
                        s.input_schema,
                        s.excluded_tables_list,
                        s.target_package,
                        s.output_dir,
                        hand_off=lease.hand_off,
                    )
            except TimeoutError as exc:
                if not deadline.expired():
                    raise
                raise GenerationFailure(
                    f"Code generation timed out after {s.generate_timeout_s:g}s"
                ) from exc

            await self._store.put(
                key,
                FingerprintRecord(
                    key=key,
                    target_package=s.target_package,
                    output_directory=str(s.output_dir),
                    fingerprint=current,
                    recorded_at=datetime.now(timezone.utc),
                    run_id=state.run_id,
                    files_written=report.files_written,
                ),
            )

        return {
            "reason": reason,
            "target_directory": report.target_directory,
            "files_written": len(report.files_written),
            "table_count": report.table_count,
        }

    async def _teardown(self, state: PipelineRunState, handle: ResourceHandle) -> None:
        await self._executor.execute(
            state, StageName.TEARDOWN,
            lambda: self._release(handle),
        )

    async def _release(self, handle: ResourceHandle) -> dict[str, Any]:
        """Release handle, retrying at most once; each attempt is bounded."""
        s = self._settings
        attempts = 1 + s.teardown_retries
        for attempt in range(1, attempts + 1):
            try:
                async with asyncio.timeout(s.teardown_timeout_s):
                    released = await run_blocking(handle.release)
                return {"released": released, "attempts": attempt}
            except Exception as exc:
                reason = str(exc) or type(exc).__name__
                if isinstance(exc, TimeoutError):
                    reason = f"release timed out after {s.teardown_timeout_s:g}s"
                if attempt == attempts:
                    raise TeardownFailure(
                        f"Release failed after {attempt} attempt(s): {reason}",
                        detail={"attempts": attempt, "endpoint": handle.endpoint_address},
                    ) from exc
                logger.warning("Release attempt %d failed: %s; retrying", attempt, reason)
        raise AssertionError("unreachable")

    def _schema_config(self) -> dict[str, Any]:
        s = self._settings
        return schema_config(
            image_ref=s.image_ref,
            input_schema=s.input_schema,
            excluded_tables=s.excluded_tables_list,
            target_package=s.target_package,
            generator_style=self._generator.style,
            generator_options=s.generator_options_list,
            forced_types=s.forced_types_list,
        )


def _release_orphan(handle: ResourceHandle) -> None:
    """Release an instance that finished starting after provision gave up."""
    logger.warning("Releasing instance %s that started after provision timed out", handle.endpoint_address)
    handle.release()
