# src/cache/fingerprint.py - v1
"""Generation fingerprinting.

A fingerprint combines three digests:
  1. the migration set (every file under the migrations directory)
  2. the schema configuration that shapes generated output
  3. the code generator version

Any change to one of them forces regeneration.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from schemagen.cache.models import GenerationFingerprint

_IGNORED_DIRS = {"__pycache__"}
_IGNORED_SUFFIXES = {".pyc", ".pyo"}


def compute_fingerprint(
    migrations_dir: Path,
    schema_config: Mapping[str, Any],
    generator_version: str,
) -> GenerationFingerprint:
    """Compute the fingerprint of the current generation inputs.

    Args:
        migrations_dir: Directory holding the migration scripts.
        schema_config: Output-shaping configuration (see schema_config()).
        generator_version: Version string reported by the code generator.

    Returns:
        GenerationFingerprint for the current inputs.
    """
    return GenerationFingerprint(
        migration_set_digest=migration_set_digest(migrations_dir),
        schema_config_digest=schema_config_digest(schema_config),
        generator_version=generator_version,
    )


def migration_set_digest(migrations_dir: Path) -> str:
    """SHA-256 over relative paths and contents of all migration files.

    Files are visited in sorted POSIX path order so the digest does not
    depend on filesystem iteration order. Bytecode caches and dot-files
    are ignored.

    Raises:
        FileNotFoundError: If migrations_dir is not a directory.
    """
    root = Path(migrations_dir)
    if not root.is_dir():
        raise FileNotFoundError(f"Migrations directory not found: {root}")

    digest = hashlib.sha256()
    for rel_path, path in _iter_migration_files(root):
        digest.update(rel_path.encode("utf-8"))
        digest.update(b"\0")
        digest.update(path.read_bytes())
        digest.update(b"\0")
    return digest.hexdigest()


def schema_config(
    image_ref: str,
    input_schema: str,
    excluded_tables: Iterable[str],
    target_package: str,
    generator_style: str,
    generator_options: Iterable[str] = (),
    forced_types: Iterable[tuple[str, str]] = (),
) -> dict[str, Any]:
    """Collect the configuration values that influence generated code.

    Exclusions and options are order-insensitive and are sorted. Forced
    type rules keep their order: the first matching rule wins.
    """
    return {
        "image_ref": image_ref,
        "input_schema": input_schema,
        "excluded_tables": sorted(set(excluded_tables)),
        "target_package": target_package,
        "generator_style": generator_style,
        "generator_options": sorted(set(generator_options)),
        "forced_types": [f"{pattern}={target}" for pattern, target in forced_types],
    }


def schema_config_digest(config: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of config."""
    canonical = json.dumps(config, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def fingerprint_key(target_package: str, output_directory: Path | str) -> str:
    """Store key for a (target package, output directory) pair."""
    resolved = Path(output_directory).expanduser().resolve().as_posix()
    raw = f"{target_package}\0{resolved}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


def fingerprints_match(
    current: GenerationFingerprint, persisted: GenerationFingerprint
) -> bool:
    """Byte-for-byte comparison of two fingerprints."""
    return current.canonical_bytes() == persisted.canonical_bytes()


def _iter_migration_files(root: Path) -> list[tuple[str, Path]]:
    """Return (relative posix path, path) pairs for hashed files, sorted."""
    files: list[tuple[str, Path]] = []
    for path in root.rglob("*"):
        if not path.is_file():
            continue
        rel = path.relative_to(root)
        if any(part in _IGNORED_DIRS or part.startswith(".") for part in rel.parts):
            continue
        if path.suffix in _IGNORED_SUFFIXES:
            continue
        files.append((rel.as_posix(), path))
    files.sort(key=lambda item: item[0])
    return files
