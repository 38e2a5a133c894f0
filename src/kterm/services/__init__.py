"""Service layer over external systems."""
