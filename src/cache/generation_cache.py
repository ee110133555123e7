# src/cache/generation_cache.py - v1
"""Regeneration decision.

Regenerate when any of these hold:
  - no fingerprint was persisted for the key
  - the persisted fingerprint differs from the current one
  - the output directory is missing or empty (artifacts deleted externally)
"""

from __future__ import annotations

from pathlib import Path

from schemagen.cache.fingerprint import fingerprints_match
from schemagen.cache.models import GenerationFingerprint, OutputDirState


def should_regenerate(
    current: GenerationFingerprint,
    persisted: GenerationFingerprint | None,
    output_dir_state: OutputDirState,
) -> bool:
    """Return True if the generator must run. Pure function."""
    if persisted is None:
        return True
    if not fingerprints_match(current, persisted):
        return True
    return not (output_dir_state.exists and output_dir_state.non_empty)


def regeneration_reason(
    current: GenerationFingerprint,
    persisted: GenerationFingerprint | None,
    output_dir_state: OutputDirState,
) -> str | None:
    """Explain why should_regenerate() is True, or None on a cache hit."""
    if persisted is None:
        return "no persisted fingerprint"
    if not fingerprints_match(current, persisted):
        changed = [
            name
            for name in ("migration_set_digest", "schema_config_digest", "generator_version")
            if getattr(current, name) != getattr(persisted, name)
        ]
        return f"fingerprint changed: {', '.join(changed)}"
    if not output_dir_state.exists:
        return "output directory missing"
    if not output_dir_state.non_empty:
        return "output directory empty"
    return None


def inspect_output_dir(path: Path) -> OutputDirState:
    """Probe the generator's target directory without modifying it."""
    target = Path(path)
    exists = target.is_dir()
    non_empty = exists and any(target.iterdir())
    return OutputDirState(path=str(target), exists=exists, non_empty=non_empty)
