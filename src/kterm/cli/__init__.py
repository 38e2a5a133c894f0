"""Command-line interface for kterm."""
