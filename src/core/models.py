# src/core/models.py - v1
"""Shared domain models used across modules.

Stage results and their structured errors are immutable Pydantic models.
The resource handle is a plain class because it owns a release callable
and the lock guarding it.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from sqlalchemy.engine import URL


class StageName(str, Enum):
    """Pipeline stages, in execution order."""

    PROVISION = "provision"
    MIGRATE = "migrate"
    GENERATE = "generate"
    TEARDOWN = "teardown"


class StageOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class RunOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


# === CONNECTION ===


class Credentials(BaseModel):
    """Database login assigned to the ephemeral instance."""

    model_config = ConfigDict(frozen=True)

    user: str
    secret: SecretStr


class Endpoint(BaseModel):
    """Network location of a provisioned database."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int
    database_name: str

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def build_connection_url(
    endpoint: Endpoint,
    credentials: Credentials,
    drivername: str = "postgresql+psycopg",
) -> URL:
    """Build a SQLAlchemy URL for endpoint; the password is escaped by URL."""
    return URL.create(
        drivername=drivername,
        username=credentials.user,
        password=credentials.secret.get_secret_value(),
        host=endpoint.host,
        port=endpoint.port,
        database=endpoint.database_name,
    )


class ResourceHandle:
    """A provisioned ephemeral service and the capability to release it.

    ``release()`` is idempotent: once a release succeeded, later calls
    return without touching the service. A release that raised is not
    recorded, so the caller may attempt it again.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        credentials: Credentials,
        release_action: Callable[[], None],
    ) -> None:
        self.endpoint = endpoint
        self.credentials = credentials
        self._release_action = release_action
        self._lock = threading.Lock()
        self._released = False

    @property
    def endpoint_address(self) -> str:
        return self.endpoint.address

    @property
    def database_name(self) -> str:
        return self.endpoint.database_name

    @property
    def released(self) -> bool:
        return self._released

    def connection_url(self, drivername: str = "postgresql+psycopg") -> URL:
        return build_connection_url(self.endpoint, self.credentials, drivername)

    def release(self) -> bool:
        """Release the service.

        Returns:
            True if this call performed the release, False if it had
            already been released.
        """
        with self._lock:
            if self._released:
                return False
            self._release_action()
            self._released = True
            return True

    def __repr__(self) -> str:
        return (
            f"ResourceHandle(endpoint={self.endpoint.address!r}, "
            f"database={self.endpoint.database_name!r}, released={self._released})"
        )


# === STAGE RESULTS ===


class StageError(BaseModel):
    """Structured cause of a failed stage."""

    model_config = ConfigDict(frozen=True)

    kind: str
    message: str
    cause_type: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)


class StageResult(BaseModel):
    """Outcome of one stage execution. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    stage: StageName
    outcome: StageOutcome
    error: StageError | None = None
    duration_ms: int = 0
    detail: dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.outcome is StageOutcome.SUCCESS

    @property
    def failed(self) -> bool:
        return self.outcome is StageOutcome.FAILURE
