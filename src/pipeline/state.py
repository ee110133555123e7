# src/pipeline/state.py - v1
"""Per-run pipeline state.

Created when a run starts, updated only through StageExecutor as each
stage finishes, and handed back to the caller once the run is final.
Nothing in it outlives the run except what the fingerprint store keeps.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from schemagen.core.models import (
    ResourceHandle,
    RunOutcome,
    StageName,
    StageOutcome,
    StageResult,
)

# Stages whose failure fails the run. Teardown only degrades it.
FATAL_STAGES = (StageName.PROVISION, StageName.MIGRATE, StageName.GENERATE)


def generate_run_id(timestamp: datetime | None = None) -> str:
    """Generate a run_id: yyyymmdd_hhmmss_{uuid4_short}."""
    ts = timestamp or datetime.now(timezone.utc)
    return f"{ts.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"


class PipelineRunState(BaseModel):
    """State of one pipeline run: handle, ordered stage log, terminal outcome."""

    model_config = {"arbitrary_types_allowed": True}

    # === IDENTITY ===
    run_id: str = Field(default_factory=generate_run_id)
    target_package: str = ""
    store_key: str = ""
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    # === RESOURCE ===
    handle: ResourceHandle | None = Field(default=None, exclude=True)

    # === STAGE LOG ===
    results: list[StageResult] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    # === OUTCOME ===
    outcome: RunOutcome | None = None
    root_cause: StageName | None = None

    def record(self, result: StageResult) -> None:
        """Append a stage result; a failed teardown becomes a warning."""
        self.results.append(result)
        if result.stage is StageName.TEARDOWN and result.failed:
            message = result.error.message if result.error else "unknown error"
            self.warnings.append(f"Ephemeral instance may not have been released: {message}")

    def result_for(self, stage: StageName) -> StageResult | None:
        """Return the result recorded for stage, if it ran."""
        for result in self.results:
            if result.stage is stage:
                return result
        return None

    def finalize(self) -> RunOutcome:
        """Compute the terminal outcome from the stage log.

        Success requires Provision and Migrate to succeed and Generate to
        succeed or be skipped. The first failing fatal stage is the root cause.
        """
        self.root_cause = None
        for stage in FATAL_STAGES:
            result = self.result_for(stage)
            # A stage that never ran counts against the run as well
            if result is None or result.failed:
                self.root_cause = stage
                break

        self.outcome = RunOutcome.FAILURE if self.root_cause else RunOutcome.SUCCESS
        self.completed_at = datetime.now(timezone.utc)
        return self.outcome

    @property
    def succeeded(self) -> bool:
        return self.outcome is RunOutcome.SUCCESS

    @property
    def degraded(self) -> bool:
        """Successful run whose ephemeral instance could not be released."""
        teardown = self.result_for(StageName.TEARDOWN)
        return self.succeeded and teardown is not None and teardown.failed

    @property
    def stages(self) -> list[tuple[StageName, StageOutcome]]:
        return [(r.stage, r.outcome) for r in self.results]

    def summary(self) -> dict[str, Any]:
        """Compact JSON-ready summary for logs and CLI output."""
        return {
            "run_id": self.run_id,
            "target_package": self.target_package,
            "outcome": self.outcome.value if self.outcome else None,
            "root_cause": self.root_cause.value if self.root_cause else None,
            "degraded": self.degraded,
            "stages": [
                {
                    "stage": r.stage.value,
                    "outcome": r.outcome.value,
                    "duration_ms": r.duration_ms,
                    "error": r.error.message if r.error else None,
                }
                for r in self.results
            ],
            "warnings": list(self.warnings),
        }
