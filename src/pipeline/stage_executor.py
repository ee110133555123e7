# src/pipeline/stage_executor.py - v1
"""Stage executor: run one named stage and turn its fate into a StageResult.

Every outcome of an action becomes a result appended to the run state:
  - normal return        -> success (the returned dict becomes ``detail``)
  - StageSkipped raised  -> skipped
  - timeout or exception -> failure with a typed StageError

Host cancellation is recorded as a failure and then re-raised, so the
orchestrator can still run teardown before honouring it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from schemagen.core.errors import FAILURE_BY_STAGE, StageFailure, as_stage_failure
from schemagen.core.models import StageError, StageName, StageOutcome, StageResult
from schemagen.logging.context import set_stage_context
from schemagen.pipeline.events import StageEvent, StageEventSink, emit, log_stage_event
from schemagen.pipeline.state import PipelineRunState

logger = logging.getLogger(__name__)

StageAction = Callable[[], Awaitable[dict[str, Any] | None]]


class StageSkipped(Exception):
    """Raised by a stage action that decided there is nothing to do."""

    def __init__(self, reason: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.detail = dict(detail or {})


class StageExecutor:
    """Execute stage actions with timing, timeout and failure capture.

    Args:
        sinks: Receivers of one StageEvent per result.
    """

    def __init__(self, sinks: Sequence[StageEventSink] | None = None) -> None:
        self._sinks = list(sinks) if sinks is not None else [log_stage_event]

    async def execute(
        self,
        state: PipelineRunState,
        stage: StageName,
        action: StageAction,
        timeout_s: float | None = None,
    ) -> StageResult:
        """Run action as stage and record the result on state.

        Args:
            state: Run state receiving the result.
            stage: Stage being executed.
            action: Zero-argument coroutine factory.
            timeout_s: Bound on the whole action; None = unbounded.

        Returns:
            The recorded StageResult. Never raises for stage faults.
        """
        set_stage_context(stage.value)
        start_ns = time.monotonic_ns()
        deadline = asyncio.timeout(timeout_s)
        try:
            async with deadline:
                detail = await action()
            result = _result(stage, StageOutcome.SUCCESS, start_ns, detail=detail)
        except StageSkipped as skip:
            result = _result(
                stage, StageOutcome.SKIPPED, start_ns,
                detail={"reason": skip.reason, **skip.detail},
            )
        except asyncio.CancelledError:
            failure = FAILURE_BY_STAGE[stage](f"{stage.value} cancelled by host")
            self._record(state, _failure_result(stage, start_ns, failure, None))
            set_stage_context(None)
            raise
        except TimeoutError as exc:
            if deadline.expired():
                failure = FAILURE_BY_STAGE[stage](
                    f"{stage.value} timed out after {timeout_s:g}s"
                )
            else:
                failure = as_stage_failure(stage, exc)
            logger.debug("Stage %s timed out", stage.value, exc_info=True)
            result = _failure_result(stage, start_ns, failure, exc)
        except Exception as exc:
            logger.debug("Stage %s raised", stage.value, exc_info=True)
            result = _failure_result(stage, start_ns, as_stage_failure(stage, exc), exc)

        self._record(state, result)
        set_stage_context(None)
        return result

    def _record(self, state: PipelineRunState, result: StageResult) -> None:
        state.record(result)
        emit(
            self._sinks,
            StageEvent(
                run_id=state.run_id,
                target_package=state.target_package,
                store_key=state.store_key,
                result=result,
            ),
        )


def _elapsed_ms(start_ns: int) -> int:
    return (time.monotonic_ns() - start_ns) // 1_000_000


def _result(
    stage: StageName,
    outcome: StageOutcome,
    start_ns: int,
    detail: dict[str, Any] | None = None,
) -> StageResult:
    return StageResult(
        stage=stage,
        outcome=outcome,
        duration_ms=_elapsed_ms(start_ns),
        detail=dict(detail or {}),
    )


def _failure_result(
    stage: StageName,
    start_ns: int,
    failure: StageFailure,
    original: BaseException | None,
) -> StageResult:
    cause = failure.__cause__ if original is failure else original
    return StageResult(
        stage=stage,
        outcome=StageOutcome.FAILURE,
        duration_ms=_elapsed_ms(start_ns),
        error=StageError(
            kind=type(failure).__name__,
            message=str(failure),
            cause_type=type(cause).__name__ if cause is not None else None,
            detail=failure.detail,
        ),
    )
