# src/main.py - v1
"""CLI entry point: generate, clean, status commands.

Usage:
    schemagen generate [options]
    schemagen clean [options]
    schemagen status [options]

Every option overrides the matching SCHEMAGEN_* environment variable.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from schemagen.core.errors import ConfigurationError
from schemagen.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        from schemagen.config.settings import load_settings

        settings = load_settings(**_overrides(args))
    except (ConfigurationError, ValueError) as exc:
        # ValueError covers pydantic's ValidationError
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="schemagen",
        description=f"schemagen v{__version__}: data-access code from migrated schemas",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    p_generate = subparsers.add_parser(
        "generate", help="Provision, migrate, generate and tear down",
    )
    _add_target_options(p_generate)
    p_generate.add_argument(
        "-s", "--schema", dest="input_schema", default=None,
        help="Schema to generate from (default: public)",
    )
    p_generate.add_argument(
        "-x", "--exclude", dest="excluded_tables", default=None,
        help="Comma-separated table exclusion patterns (regular expressions)",
    )
    p_generate.add_argument(
        "--style", dest="generator_style", default=None,
        help="sqlacodegen generator: tables, declarative, dataclasses, sqlmodels",
    )
    p_generate.add_argument(
        "-t", "--forced-types", dest="forced_types", default=None,
        help="Comma-separated PATTERN=TARGET column type overrides (default: JSONB?=varchar,INET=varchar)",
    )
    p_generate.set_defaults(func=_cmd_generate)

    p_clean = subparsers.add_parser(
        "clean", help="Delete generated sources and their fingerprint",
    )
    _add_target_options(p_clean)
    p_clean.set_defaults(func=_cmd_clean)

    p_status = subparsers.add_parser(
        "status", help="Show whether the next run would regenerate",
    )
    _add_target_options(p_status)
    p_status.set_defaults(func=_cmd_status)

    return parser


def _add_target_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-m", "--migrations", dest="migrations_dir", type=Path, default=None,
        help="Migrations directory (default: db/migrations)",
    )
    parser.add_argument(
        "-o", "--output", dest="output_dir", type=Path, default=None,
        help="Output directory (default: build/generated-src/db)",
    )
    parser.add_argument(
        "-p", "--package", dest="target_package", default=None,
        help="Target package (default: com.example.db.generated)",
    )


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    names = (
        "migrations_dir", "output_dir", "target_package",
        "input_schema", "excluded_tables", "generator_style", "forced_types",
    )
    return {
        name: getattr(args, name)
        for name in names
        if getattr(args, name, None) is not None
    }


async def _cmd_generate(settings: Any) -> int:
    """Run the full pipeline once."""
    from schemagen.api.facade import run_pipeline

    state = await run_pipeline(settings)

    print(f"\nRun {state.run_id}: {state.outcome.value if state.outcome else 'unknown'}")
    for result in state.results:
        line = f"  {result.stage.value:<10} {result.outcome.value:<8} {result.duration_ms:>7}ms"
        if result.error:
            line += f"  {result.error.kind}: {result.error.message}"
        elif result.outcome.value == "skipped":
            line += f"  {result.detail.get('reason', '')}"
        print(line)
    for warning in state.warnings:
        print(f"  warning: {warning}")
    if state.root_cause:
        print(f"  root cause: {state.root_cause.value}")
    return 0 if state.succeeded else 1


async def _cmd_clean(settings: Any) -> int:
    """Remove generated sources and forget the fingerprint."""
    from schemagen.api.facade import clean_generated

    report = await clean_generated(settings)
    print(f"\nCleaned {report['target_directory']}:")
    print(f"  Sources removed:     {report['sources_removed']}")
    print(f"  Fingerprint removed: {report['fingerprint_removed']}")
    return 0


async def _cmd_status(settings: Any) -> int:
    """Report cache state without provisioning."""
    from schemagen.api.facade import generation_status

    try:
        report = await generation_status(settings)
    except FileNotFoundError as exc:
        logger.error("Migrations directory not found: %s", exc)
        return 1

    print(f"\nStatus for {report['target_package']}:")
    print(f"  Output:        {report['target_directory']}")
    print(f"  Up to date:    {report['up_to_date']}")
    if report["reason"]:
        print(f"  Would run:     {report['reason']}")
    if report["last_run_id"]:
        print(f"  Last run:      {report['last_run_id']} at {report['last_generated_at']}")
    return 0


def _setup_logging(settings: Any, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from schemagen.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
