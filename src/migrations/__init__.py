"""Migration runners."""
