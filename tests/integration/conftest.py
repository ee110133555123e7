# tests/integration/conftest.py - v1
"""Shared fixtures for integration tests using testcontainers.

These tests start real PostgreSQL containers and are skipped when no
Docker daemon is reachable.
"""

from __future__ import annotations

import logging
import textwrap
from pathlib import Path

import pytest

logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "docker: requires a reachable Docker daemon")


def _docker_available() -> bool:
    """Check if Docker daemon is reachable."""
    try:
        import docker

        client = docker.from_env()
        client.ping()
        return True
    except Exception:
        return False


skip_no_docker = pytest.mark.skipif(
    not _docker_available(),
    reason="Docker daemon not available",
)


ALEMBIC_ENV = textwrap.dedent(
    """
    from alembic import context
    from sqlalchemy import create_engine, pool

    config = context.config
    engine = create_engine(config.get_main_option("sqlalchemy.url"), poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, transaction_per_migration=True)
        with context.begin_transaction():
            context.run_migrations()
    """
)

CUSTOMER_REVISION = textwrap.dedent(
    """
    import sqlalchemy as sa
    from alembic import op

    revision = "0001"
    down_revision = None
    branch_labels = None
    depends_on = None


    def upgrade():
        op.create_table(
            "customer",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("email", sa.String(255), nullable=False, unique=True),
        )


    def downgrade():
        op.drop_table("customer")
    """
)

ORDERS_REVISION = textwrap.dedent(
    """
    import sqlalchemy as sa
    from alembic import op

    revision = "0002"
    down_revision = "0001"
    branch_labels = None
    depends_on = None


    def upgrade():
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("customer_id", sa.Integer, sa.ForeignKey("customer.id"), nullable=False),
            sa.Column("total", sa.Numeric(10, 2)),
        )


    def downgrade():
        op.drop_table("orders")
    """
)


@pytest.fixture
def alembic_migrations(tmp_path: Path) -> Path:
    """Alembic script directory with two revisions."""
    root = tmp_path / "migrations"
    versions = root / "versions"
    versions.mkdir(parents=True)
    (root / "env.py").write_text(ALEMBIC_ENV)
    (versions / "0001_customer.py").write_text(CUSTOMER_REVISION)
    (versions / "0002_orders.py").write_text(ORDERS_REVISION)
    return root
