"""Logging setup and run context."""
