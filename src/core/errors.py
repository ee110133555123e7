# src/core/errors.py - v1
"""Failure taxonomy for the generation pipeline.

Each stage has one failure class. Provision, migration and generation
failures are fatal to a run; a teardown failure is demoted to a warning
on an otherwise successful run.
"""

from __future__ import annotations

from typing import Any

from schemagen.core.models import StageName


class SchemagenError(Exception):
    """Base class for all schemagen errors."""


class ConfigurationError(SchemagenError):
    """Raised when configuration is missing values or internally inconsistent."""


class StageFailure(SchemagenError):
    """A stage could not complete.

    Args:
        message: Human-readable cause.
        detail: Structured extra data copied onto the StageResult error.
    """

    stage: StageName

    def __init__(self, message: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.detail: dict[str, Any] = dict(detail or {})


class ProvisionFailure(StageFailure):
    """Substrate unreachable, image unavailable, startup timeout, port conflict."""

    stage = StageName.PROVISION


class MigrationFailure(StageFailure):
    """Checksum mismatch, malformed script, connectivity loss mid-apply."""

    stage = StageName.MIGRATE

    def __init__(
        self,
        message: str,
        applied_count: int | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(detail or {})
        if applied_count is not None:
            merged["applied_count"] = applied_count
        super().__init__(message, merged)
        self.applied_count = applied_count


class GenerationFailure(StageFailure):
    """Introspection error, output write error, generator crash."""

    stage = StageName.GENERATE


class TeardownFailure(StageFailure):
    """Release timeout or already-released instance."""

    stage = StageName.TEARDOWN


FAILURE_BY_STAGE: dict[StageName, type[StageFailure]] = {
    StageName.PROVISION: ProvisionFailure,
    StageName.MIGRATE: MigrationFailure,
    StageName.GENERATE: GenerationFailure,
    StageName.TEARDOWN: TeardownFailure,
}


def as_stage_failure(stage: StageName, exc: BaseException) -> StageFailure:
    """Return exc as the failure class of stage, wrapping foreign exceptions."""
    failure_cls = FAILURE_BY_STAGE[stage]
    if isinstance(exc, failure_cls):
        return exc
    message = str(exc) or type(exc).__name__
    wrapped = failure_cls(message)
    wrapped.__cause__ = exc
    return wrapped
