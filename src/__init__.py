"""schemagen: data-access code generation from migrated schemas."""

from schemagen.version import __version__

__all__ = ["__version__"]
