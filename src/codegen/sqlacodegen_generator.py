# src/codegen/sqlacodegen_generator.py - v1
"""sqlacodegen-backed schema code generator.

Reflects the live schema with SQLAlchemy, renders it with one of the
installed sqlacodegen generators (tables, declarative, dataclasses,
sqlmodels) and writes the result as ``<package>/models.py``. The
package directory is cleaned before writing so dropped tables do not
leave stale modules behind.

Forced type rules replace reflected column types before rendering, e.g.
``JSONB?=varchar`` renders json and jsonb columns as String.
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Sequence
from importlib.metadata import entry_points, version
from pathlib import Path

from sqlalchemy import (
    BigInteger,
    Boolean,
    Integer,
    MetaData,
    Numeric,
    String,
    Text,
    create_engine,
    inspect,
)
from sqlalchemy.pool import NullPool

from schemagen.codegen.base_generator import (
    BaseSchemaCodeGenerator,
    GenerationReport,
    package_directory,
)
from schemagen.core.errors import GenerationFailure
from schemagen.core.models import Credentials, Endpoint, build_connection_url

logger = logging.getLogger(__name__)

GENERATOR_ENTRY_POINT_GROUP = "sqlacodegen.generators"
MODULE_NAME = "models.py"
_HEADER = "# Generated by schemagen from schema {schema!r}. Do not edit.\n"

FORCED_TYPE_TARGETS: dict[str, type] = {
    "varchar": String,
    "text": Text,
    "integer": Integer,
    "bigint": BigInteger,
    "boolean": Boolean,
    "numeric": Numeric,
}


class SqlacodegenGenerator(BaseSchemaCodeGenerator):
    """Generate SQLAlchemy models from a live database.

    Args:
        style: sqlacodegen generator name.
        options: sqlacodegen generator options (e.g. "noindexes", "use_inflect").
        forced_types: Ordered (pattern, target) rules; see FORCED_TYPE_TARGETS.
        include_views: Reflect views alongside tables.
        drivername: SQLAlchemy driver for the connection URL.
    """

    def __init__(
        self,
        style: str = "declarative",
        options: Sequence[str] = (),
        forced_types: Sequence[tuple[str, str]] = (),
        include_views: bool = True,
        drivername: str = "postgresql+psycopg",
    ) -> None:
        self._style = style
        self._options = set(options)
        self._forced_types = list(forced_types)
        self._include_views = include_views
        self._drivername = drivername

    @property
    def version(self) -> str:
        return f"sqlacodegen-{version('sqlacodegen')}"

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
        generator_cls = load_generator_class(self._style)
        excluded = compile_exclusions(exclusions)
        forced = compile_forced_types(self._forced_types)
        url = build_connection_url(endpoint, credentials, self._drivername)

        engine = create_engine(url, poolclass=NullPool)
        try:
            default_schema = inspect(engine).default_schema_name
            schema = None if schema_name == default_schema else schema_name
            metadata = MetaData()
            metadata.reflect(
                engine,
                schema=schema,
                views=self._include_views,
                only=lambda name, _meta: not is_excluded(name, excluded),
            )
            logger.info(
                "Reflected %d tables from schema %s", len(metadata.tables), schema_name
            )
            replaced = apply_forced_types(metadata, forced)
            if replaced:
                logger.info("Forced types on %d columns", replaced)
            source = generator_cls(metadata, engine, set(self._options)).generate()
        finally:
            engine.dispose()

        target_dir = package_directory(output_directory, target_package)
        content = _HEADER.format(schema=schema_name) + source
        try:
            files = write_package(Path(output_directory), target_package, content)
        except OSError as exc:
            raise GenerationFailure(
                f"Could not write generated sources to {target_dir}: {exc}"
            ) from exc

        logger.info("Wrote %d files to %s", len(files), target_dir)
        return GenerationReport(
            target_directory=str(target_dir),
            files_written=files,
            table_count=len(metadata.tables),
        )


def load_generator_class(style: str) -> type:
    """Resolve a sqlacodegen generator class by its entry point name."""
    for ep in entry_points(group=GENERATOR_ENTRY_POINT_GROUP):
        if ep.name == style:
            return ep.load()
    available = sorted(ep.name for ep in entry_points(group=GENERATOR_ENTRY_POINT_GROUP))
    raise GenerationFailure(
        f"Unknown generator style {style!r}; available: {', '.join(available) or 'none'}"
    )


def compile_exclusions(patterns: Sequence[str]) -> re.Pattern[str] | None:
    """Combine exclusion patterns into one anchored, case-insensitive regex."""
    cleaned = [p.strip() for p in patterns if p.strip()]
    if not cleaned:
        return None
    try:
        return re.compile("|".join(f"(?:{p})" for p in cleaned), re.IGNORECASE)
    except re.error as exc:
        raise GenerationFailure(f"Invalid table exclusion pattern: {exc}") from exc


def is_excluded(table_name: str, excluded: re.Pattern[str] | None) -> bool:
    return excluded is not None and excluded.fullmatch(table_name) is not None


def compile_forced_types(rules: Sequence[tuple[str, str]]) -> list[tuple[re.Pattern[str], type]]:
    """Resolve (pattern, target) rules; patterns are anchored and case-insensitive."""
    compiled = []
    for pattern, target in rules:
        type_cls = FORCED_TYPE_TARGETS.get(target.lower())
        if type_cls is None:
            raise GenerationFailure(
                f"Unknown forced type target {target!r}; "
                f"available: {', '.join(sorted(FORCED_TYPE_TARGETS))}"
            )
        try:
            compiled.append((re.compile(pattern, re.IGNORECASE), type_cls))
        except re.error as exc:
            raise GenerationFailure(f"Invalid forced type pattern {pattern!r}: {exc}") from exc
    return compiled


def apply_forced_types(
    metadata: MetaData, rules: Sequence[tuple[re.Pattern[str], type]]
) -> int:
    """Replace column types whose type name matches a rule; first match wins.

    Returns the number of columns changed.
    """
    replaced = 0
    for table in metadata.tables.values():
        for column in table.columns:
            type_name = type(column.type).__name__
            for pattern, type_cls in rules:
                if pattern.fullmatch(type_name):
                    column.type = type_cls()
                    replaced += 1
                    break
    return replaced


def write_package(output_directory: Path, target_package: str, source: str) -> list[str]:
    """Replace target_package under output_directory with a models module.

    Intermediate package directories get an empty ``__init__.py`` when
    they have none. Returns the written paths relative to output_directory.
    """
    target_dir = package_directory(output_directory, target_package)
    if target_dir.exists():
        shutil.rmtree(target_dir)
    target_dir.mkdir(parents=True)

    written: list[Path] = []
    current = Path(output_directory)
    for part in target_package.split("."):
        current = current / part
        init_file = current / "__init__.py"
        if not init_file.exists():
            init_file.write_text("", encoding="utf-8")
            written.append(init_file)

    models_file = target_dir / MODULE_NAME
    models_file.write_text(source, encoding="utf-8")
    written.append(models_file)
    return sorted(p.relative_to(output_directory).as_posix() for p in written)
