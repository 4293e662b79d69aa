"""Location fix file provider."""
