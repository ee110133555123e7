"""Generation fingerprints and their persistence."""
