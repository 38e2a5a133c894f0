"""Utility helpers for kterm."""
