# src/pipeline/events.py - v1
"""Structured status events, one per stage result.

A sink is any callable taking a StageEvent. The default sink writes the
event through logging with the payload attached as ``data``, which the
JSON formatter renders as a nested object.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from schemagen.core.models import StageName, StageOutcome, StageResult

logger = logging.getLogger(__name__)


class StageEvent(BaseModel):
    """Status event emitted after each stage."""

    run_id: str
    target_package: str
    store_key: str
    result: StageResult
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


StageEventSink = Callable[[StageEvent], None]


def log_stage_event(event: StageEvent) -> None:
    """Default sink: one log line per stage result."""
    result = event.result
    data = event.model_dump(mode="json")
    if result.outcome is StageOutcome.FAILURE:
        # Teardown failures never fail the run
        level = logging.WARNING if result.stage is StageName.TEARDOWN else logging.ERROR
        reason = result.error.message if result.error else "unknown error"
        logger.log(
            level, "Stage %s failed after %dms: %s",
            result.stage.value, result.duration_ms, reason,
            extra={"data": data},
        )
    elif result.outcome is StageOutcome.SKIPPED:
        logger.info(
            "Stage %s skipped: %s",
            result.stage.value, result.detail.get("reason", "no reason given"),
            extra={"data": data},
        )
    else:
        logger.info(
            "Stage %s succeeded in %dms",
            result.stage.value, result.duration_ms,
            extra={"data": data},
        )


def emit(sinks: Sequence[StageEventSink], event: StageEvent) -> None:
    """Deliver event to every sink; a failing sink does not stop the others."""
    for sink in sinks:
        try:
            sink(event)
        except Exception:
            logger.exception("Stage event sink %r failed", sink)
