"""stay-hard: daily gym accountability workflow engine."""
