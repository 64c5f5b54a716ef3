"""Core enums, errors, settings and the typed table."""
