"""Ephemeral database substrates."""
