"""Command-line interface for chatgate."""
