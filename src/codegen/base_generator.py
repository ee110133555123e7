# src/codegen/base_generator.py - v1
"""Abstract schema code generator interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel

from schemagen.core.models import Credentials, Endpoint


class GenerationReport(BaseModel):
    """Outcome of a successful code generation."""

    target_directory: str
    files_written: list[str]
    table_count: int = 0


class BaseSchemaCodeGenerator(ABC):
    """Introspects a live schema and writes source artifacts."""

    @property
    @abstractmethod
    def version(self) -> str:
        """Generator version, part of the generation fingerprint."""

    @property
    @abstractmethod
    def style(self) -> str:
        """Rendering style, part of the schema configuration digest."""

    @abstractmethod
    def generate(
        self,
        endpoint: Endpoint,
        credentials: Credentials,
        schema_name: str,
        exclusions: Sequence[str],
        target_package: str,
        output_directory: Path,
    ) -> GenerationReport:
        """Write generated sources for target_package under output_directory.

        Raises:
            GenerationFailure: Introspection error, write error, generator crash.
        """


def package_directory(output_directory: Path, target_package: str) -> Path:
    """Directory holding target_package's modules under output_directory."""
    return Path(output_directory).joinpath(*target_package.split("."))
