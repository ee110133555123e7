# src/migrations/alembic_runner.py - v1
"""Alembic-backed migration runner.

The migrations directory is an Alembic script location (env.py plus a
versions/ folder). The runner points Alembic at the ephemeral instance,
upgrades to head and reports how many revisions were newly applied.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine
from sqlalchemy.engine import URL
from sqlalchemy.pool import NullPool

from schemagen.core.errors import MigrationFailure
from schemagen.core.models import Credentials, Endpoint, build_connection_url
from schemagen.migrations.base_runner import BaseMigrationRunner, MigrationReport

logger = logging.getLogger(__name__)


class AlembicMigrationRunner(BaseMigrationRunner):
    """Upgrade a database to the head revision of an Alembic script directory.

    Args:
        target: Revision to upgrade to.
        drivername: SQLAlchemy driver for the connection URL.
    """

    def __init__(self, target: str = "heads", drivername: str = "postgresql+psycopg") -> None:
        self._target = target
        self._drivername = drivername

    def apply_all(
        self,
        endpoint: Endpoint,
        credentials: Credentials,
        source_location: Path,
    ) -> MigrationReport:
        source = Path(source_location)
        if not source.is_dir():
            raise MigrationFailure(f"Migration source not found: {source}", applied_count=0)

        url = build_connection_url(endpoint, credentials, self._drivername)
        config = _alembic_config(source, url)
        try:
            script = ScriptDirectory.from_config(config)
        except Exception as exc:
            raise MigrationFailure(f"Invalid migration source {source}: {exc}", applied_count=0) from exc

        before = _current_heads(url)
        logger.info("Running migrations from %s (current: %s)", source, before or "base")

        try:
            command.upgrade(config, self._target)
        except Exception as exc:
            applied = _applied_since(script, before, _heads_or_none(url))
            counted = "an unknown number of" if applied is None else str(applied)
            raise MigrationFailure(
                f"Migration failed after {counted} migrations applied: {exc}",
                applied_count=applied,
            ) from exc

        after = _current_heads(url)
        applied = count_applied(_parent_map(script), before, after)
        logger.info("Migrations completed: %d migrations executed", applied)
        return MigrationReport(applied_count=applied, current_revisions=sorted(after))


def count_applied(
    parents: dict[str, tuple[str, ...]],
    before: Iterable[str],
    after: Iterable[str],
) -> int:
    """Count revisions reachable from after but not from before.

    Args:
        parents: revision id -> down revision ids.
        before: Version heads prior to the upgrade.
        after: Version heads after the upgrade.
    """
    return len(_ancestry(parents, after) - _ancestry(parents, before))


def _ancestry(parents: dict[str, tuple[str, ...]], heads: Iterable[str]) -> set[str]:
    seen: set[str] = set()
    stack = list(heads)
    while stack:
        rev = stack.pop()
        if rev in seen:
            continue
        seen.add(rev)
        stack.extend(parents.get(rev, ()))
    return seen


def _parent_map(script: ScriptDirectory) -> dict[str, tuple[str, ...]]:
    parents: dict[str, tuple[str, ...]] = {}
    for rev in script.walk_revisions():
        down = rev.down_revision
        if down is None:
            parents[rev.revision] = ()
        elif isinstance(down, str):
            parents[rev.revision] = (down,)
        else:
            parents[rev.revision] = tuple(down)
    return parents


def _alembic_config(source: Path, url: URL) -> Config:
    config = Config()
    config.set_main_option("script_location", str(source))
    # ConfigParser interpolation treats % as special
    rendered = url.render_as_string(hide_password=False).replace("%", "%%")
    config.set_main_option("sqlalchemy.url", rendered)
    return config


def _current_heads(url: URL) -> set[str]:
    engine = create_engine(url, poolclass=NullPool)
    try:
        with engine.connect() as conn:
            return set(MigrationContext.configure(conn).get_current_heads())
    finally:
        engine.dispose()


def _heads_or_none(url: URL) -> set[str] | None:
    """Current heads, or None when the database can no longer be read."""
    try:
        return _current_heads(url)
    except Exception:
        logger.warning("Could not read migration state after failure", exc_info=True)
        return None


def _applied_since(
    script: ScriptDirectory, before: set[str], after: set[str] | None
) -> int | None:
    if after is None:
        return None
    return count_applied(_parent_map(script), before, after)
