"""Logging configuration for kterm."""

from kterm.logging.config import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
