"""Textual host and Rich renderer for the dashboard."""
