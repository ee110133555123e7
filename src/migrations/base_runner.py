# src/migrations/base_runner.py - v1
"""Abstract migration runner interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel

from schemagen.core.models import Credentials, Endpoint


class MigrationReport(BaseModel):
    """Outcome of a successful migration run."""

    applied_count: int
    current_revisions: list[str] = []


class BaseMigrationRunner(ABC):
    """Applies an ordered set of versioned migrations to a live database."""

    @abstractmethod
    def apply_all(
        self,
        endpoint: Endpoint,
        credentials: Credentials,
        source_location: Path,
    ) -> MigrationReport:
        """Apply every pending migration under source_location.

        Raises:
            MigrationFailure: Malformed script, conflicting history,
                connectivity loss. ``applied_count`` holds the number of
                migrations applied before the failure when known.
        """
