# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Provides in-process fakes for the substrate, migration runner and code
generator, settings rooted in a temp directory, and a sample migrations
directory. No Docker required.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from schemagen.cache.json_store import JsonFingerprintStore
from schemagen.codegen.base_generator import (
    BaseSchemaCodeGenerator,
    GenerationReport,
    package_directory,
)
from schemagen.config.settings import Settings
from schemagen.core.errors import GenerationFailure, MigrationFailure, ProvisionFailure
from schemagen.core.models import Credentials, Endpoint, ResourceHandle
from schemagen.migrations.base_runner import BaseMigrationRunner, MigrationReport
from schemagen.pipeline.orchestrator import PipelineOrchestrator
from schemagen.substrate.base_substrate import BaseServiceSubstrate


# === FAKE COLLABORATORS ===


class FakeSubstrate(BaseServiceSubstrate):
    """Hands out in-memory handles and records every release.

    Args:
        fail: Raise ProvisionFailure instead of provisioning.
        delay_s: Block this long before returning the handle.
        release_failures: Number of release attempts that raise before
            one succeeds.
    """

    def __init__(
        self,
        fail: bool = False,
        delay_s: float = 0.0,
        release_failures: int = 0,
    ) -> None:
        self.fail = fail
        self.delay_s = delay_s
        self.release_failures = release_failures
        self.handles: list[ResourceHandle] = []
        self.release_attempts = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "fake"

    def provision(self, image_ref: str, database_name: str, user: str, secret: str) -> ResourceHandle:
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.fail:
            raise ProvisionFailure(f"image {image_ref} unavailable")
        with self._lock:
            port = 15432 + len(self.handles)
            handle = ResourceHandle(
                endpoint=Endpoint(host="127.0.0.1", port=port, database_name=database_name),
                credentials=Credentials(user=user, secret=secret),
                release_action=self._release,
            )
            self.handles.append(handle)
        return handle

    def _release(self) -> None:
        with self._lock:
            self.release_attempts += 1
            if self.release_failures > 0:
                self.release_failures -= 1
                raise RuntimeError("daemon unreachable")


class FakeMigrationRunner(BaseMigrationRunner):
    """Counts the files under the migrations directory as applied."""

    def __init__(self, fail_after: int | None = None, delay_s: float = 0.0) -> None:
        self.fail_after = fail_after
        self.delay_s = delay_s
        self.calls: list[Path] = []

    def apply_all(self, endpoint: Endpoint, credentials: Credentials, source_location: Path) -> MigrationReport:
        self.calls.append(Path(source_location))
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.fail_after is not None:
            raise MigrationFailure(
                f"checksum mismatch after {self.fail_after} migrations",
                applied_count=self.fail_after,
            )
        scripts = sorted(p.name for p in Path(source_location).glob("*.py"))
        return MigrationReport(applied_count=len(scripts), current_revisions=scripts[-1:])


class FakeGenerator(BaseSchemaCodeGenerator):
    """Writes a small models module into the target package directory.

    Args:
        body: Contents of models.py (default: a comment naming the schema).
        fail: Raise GenerationFailure before writing anything.
        fail_after_write: Write models.py, then raise GenerationFailure.
        delay_s: Block this long before writing.
    """

    def __init__(
        self,
        version: str = "fake-1.0",
        style: str = "declarative",
        fail: bool = False,
        delay_s: float = 0.0,
        body: str | None = None,
        fail_after_write: bool = False,
    ) -> None:
        self._version = version
        self._style = style
        self.fail = fail
        self.delay_s = delay_s
        self.body = body
        self.fail_after_write = fail_after_write
        self.calls: list[dict[str, Any]] = []
        self.started = threading.Event()
        self.finished = threading.Event()
        self._lock = threading.Lock()

    @property
    def version(self) -> str:
        return self._version

    @property
    def style(self) -> str:
        return self._style

    def generate(
        self,
        endpoint: Endpoint,
        credentials: Credentials,
        schema_name: str,
        exclusions: Sequence[str],
        target_package: str,
        output_directory: Path,
    ) -> GenerationReport:
        self.started.set()
        try:
            return self._generate(schema_name, exclusions, endpoint, target_package, output_directory)
        finally:
            self.finished.set()

    def _generate(self, schema_name, exclusions, endpoint, target_package, output_directory):
        with self._lock:
            self.calls.append({
                "endpoint": endpoint,
                "schema_name": schema_name,
                "exclusions": list(exclusions),
                "target_package": target_package,
            })
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.fail:
            raise GenerationFailure("introspection failed")
        target = package_directory(output_directory, target_package)
        target.mkdir(parents=True, exist_ok=True)
        body = self.body if self.body is not None else f"# {schema_name}\n"
        (target / "models.py").write_text(body, encoding="utf-8")
        if self.fail_after_write:
            raise GenerationFailure("rendering failed after models.py was written")
        return GenerationReport(
            target_directory=str(target),
            files_written=["models.py"],
            table_count=1,
        )


# === FIXTURES ===


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    """Two migration scripts."""
    root = tmp_path / "migrations"
    root.mkdir()
    (root / "V1__create_customer.py").write_text("CREATE TABLE customer (id int);\n")
    (root / "V2__create_orders.py").write_text("CREATE TABLE orders (id int);\n")
    return root


@pytest.fixture
def settings(tmp_path: Path, migrations_dir: Path) -> Settings:
    """Settings rooted in tmp_path, independent of any .env file."""
    return Settings(
        _env_file=None,
        migrations_dir=migrations_dir,
        output_dir=tmp_path / "generated",
        cache_root=tmp_path / "cache",
        target_package="app.db.generated",
        provision_timeout_s=5,
        migrate_timeout_s=5,
        generate_timeout_s=5,
        teardown_timeout_s=5,
        lock_timeout_s=5,
    )


@pytest.fixture
def substrate() -> FakeSubstrate:
    return FakeSubstrate()


@pytest.fixture
def runner() -> FakeMigrationRunner:
    return FakeMigrationRunner()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def store(settings: Settings) -> JsonFingerprintStore:
    return JsonFingerprintStore(cache_root=settings.cache_root)


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def make_orchestrator(settings, substrate, runner, generator, store, events):
    """Factory building an orchestrator; keyword arguments replace fixtures."""

    def _make(**overrides: Any) -> PipelineOrchestrator:
        return PipelineOrchestrator(
            settings=overrides.get("settings", settings),
            substrate=overrides.get("substrate", substrate),
            migration_runner=overrides.get("runner", runner),
            generator=overrides.get("generator", generator),
            fingerprint_store=overrides.get("store", store),
            event_sinks=overrides.get("event_sinks", [events.append]),
        )

    return _make
