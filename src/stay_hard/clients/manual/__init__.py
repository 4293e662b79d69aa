"""Fixed-coordinate position provider."""
