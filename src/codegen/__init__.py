"""Schema code generators."""
