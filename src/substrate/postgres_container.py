# src/substrate/postgres_container.py - v1
"""PostgreSQL instances in Docker via testcontainers.

Each provision() starts a new container bound to a random host port and
blocks until the database answers a query. Releasing the handle removes
the container and its volume.
"""

from __future__ import annotations

import logging
import time

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL
from sqlalchemy.pool import NullPool
from testcontainers.postgres import PostgresContainer

from schemagen.core.errors import ProvisionFailure
from schemagen.core.models import Credentials, Endpoint, ResourceHandle
from schemagen.substrate.base_substrate import BaseServiceSubstrate

logger = logging.getLogger(__name__)

POSTGRES_PORT = 5432
DEFAULT_READY_TIMEOUT_S = 30.0
_READY_POLL_INTERVAL_S = 0.5


class PostgresContainerSubstrate(BaseServiceSubstrate):
    """Provision PostgreSQL containers with testcontainers.

    Args:
        driver: SQLAlchemy driver used for the readiness probe.
        ready_timeout_s: Bound on the post-start readiness probe.
    """

    def __init__(
        self,
        driver: str = "psycopg",
        ready_timeout_s: float = DEFAULT_READY_TIMEOUT_S,
    ) -> None:
        self._driver = driver
        self._ready_timeout_s = ready_timeout_s

    @property
    def name(self) -> str:
        return "testcontainers-postgres"

    def provision(
        self,
        image_ref: str,
        database_name: str,
        user: str,
        secret: str,
    ) -> ResourceHandle:
        logger.info("Starting PostgreSQL container %s", image_ref)
        container = PostgresContainer(
            image=image_ref,
            port=POSTGRES_PORT,
            username=user,
            password=secret,
            dbname=database_name,
            driver=self._driver,
        )
        try:
            container.start()
            endpoint = Endpoint(
                host=container.get_container_host_ip(),
                port=int(container.get_exposed_port(POSTGRES_PORT)),
                database_name=database_name,
            )
            credentials = Credentials(user=user, secret=secret)
            handle = ResourceHandle(
                endpoint=endpoint,
                credentials=credentials,
                release_action=lambda: _stop_container(container),
            )
            _wait_until_ready(
                handle.connection_url(f"postgresql+{self._driver}"),
                self._ready_timeout_s,
            )
        except Exception as exc:
            _discard_container(container)
            raise ProvisionFailure(
                f"Could not start {image_ref}: {exc}",
                detail={"image_ref": image_ref},
            ) from exc

        logger.info("PostgreSQL container ready at %s", endpoint.address)
        return handle


def _wait_until_ready(url: URL, timeout_s: float) -> None:
    """Poll the database with SELECT 1 until it answers or timeout_s passes."""
    deadline = time.monotonic() + timeout_s
    engine = create_engine(url, poolclass=NullPool)
    try:
        while True:
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                return
            except Exception:
                if time.monotonic() >= deadline:
                    raise
                time.sleep(_READY_POLL_INTERVAL_S)
    finally:
        engine.dispose()


def _stop_container(container: PostgresContainer) -> None:
    container.stop()
    logger.info("PostgreSQL container stopped and removed")


def _discard_container(container: PostgresContainer) -> None:
    """Remove a container that failed to become ready."""
    if container.get_wrapped_container() is None:
        return
    try:
        container.stop()
    except Exception:
        logger.warning("Failed to remove container after startup failure", exc_info=True)
