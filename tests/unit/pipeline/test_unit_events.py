# tests/unit/pipeline/test_unit_events.py - v1
"""Tests for pipeline/events.py."""

from __future__ import annotations

import logging

from schemagen.core.models import StageError, StageName, StageOutcome, StageResult
from schemagen.pipeline.events import StageEvent, emit, log_stage_event


def _event(stage: StageName, outcome: StageOutcome, **kwargs) -> StageEvent:
    return StageEvent(
        run_id="20260101_000000_abcdef",
        target_package="app.db",
        store_key="k1",
        result=StageResult(stage=stage, outcome=outcome, **kwargs),
    )


class TestLogStageEvent:
    def test_success_logged_at_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="schemagen"):
            log_stage_event(_event(StageName.MIGRATE, StageOutcome.SUCCESS, duration_ms=12))
        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert "migrate succeeded" in record.getMessage()
        assert record.data["result"]["outcome"] == "success"

    def test_skip_reason_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="schemagen"):
            log_stage_event(_event(
                StageName.GENERATE, StageOutcome.SKIPPED, detail={"reason": "unchanged"},
            ))
        assert "skipped: unchanged" in caplog.records[-1].getMessage()

    def test_failure_logged_at_error(self, caplog):
        error = StageError(kind="MigrationFailure", message="bad checksum")
        with caplog.at_level(logging.INFO, logger="schemagen"):
            log_stage_event(_event(StageName.MIGRATE, StageOutcome.FAILURE, error=error))
        assert caplog.records[-1].levelno == logging.ERROR

    def test_teardown_failure_logged_at_warning(self, caplog):
        error = StageError(kind="TeardownFailure", message="daemon unreachable")
        with caplog.at_level(logging.INFO, logger="schemagen"):
            log_stage_event(_event(StageName.TEARDOWN, StageOutcome.FAILURE, error=error))
        assert caplog.records[-1].levelno == logging.WARNING


class TestEmit:
    def test_all_sinks_receive_event(self):
        first, second = [], []
        event = _event(StageName.PROVISION, StageOutcome.SUCCESS)
        emit([first.append, second.append], event)
        assert first == [event] and second == [event]

    def test_sink_error_is_logged(self, caplog):
        def broken(event):
            raise ValueError("nope")

        received = []
        with caplog.at_level(logging.ERROR, logger="schemagen"):
            emit([broken, received.append], _event(StageName.PROVISION, StageOutcome.SUCCESS))
        assert len(received) == 1
        assert "sink" in caplog.records[-1].getMessage()
