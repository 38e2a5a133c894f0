"""Dashboard configuration models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class DashboardConfig(BaseModel):
    """Runtime settings for the dashboard.

    Everything here has a working default; credentials and cluster endpoints
    come from kubeconfig.
    """

    model_config = ConfigDict(extra="forbid")

    kubeconfig: str | None = None
    context: str | None = None
    namespace: str | None = None
    log_tail_lines: int = 100
    watch_retry_attempts: int = 3
    editor: str | None = None
    pager: str | None = None

    @field_validator("kubeconfig")
    @classmethod
    def validate_kubeconfig(cls, v: str | None) -> str | None:
        """Expand ~ in kubeconfig path."""
        if v is None:
            return None
        return str(Path(v).expanduser())

    @field_validator("log_tail_lines")
    @classmethod
    def validate_log_tail_lines(cls, v: int) -> int:
        """Validate log_tail_lines is positive."""
        if v <= 0:
            raise ValueError("log_tail_lines must be positive")
        return v

    @field_validator("watch_retry_attempts")
    @classmethod
    def validate_watch_retry_attempts(cls, v: int) -> int:
        """Validate watch_retry_attempts is non-negative."""
        if v < 0:
            raise ValueError("watch_retry_attempts must be non-negative")
        return v

    @classmethod
    def from_env(cls, base_config: dict[str, Any] | None = None) -> DashboardConfig:
        """Create configuration with environment variable overrides.

        Environment variables take precedence over base_config values.

        Supported environment variables:
            KTERM_KUBECONFIG: Path to the kubeconfig file
            KTERM_CONTEXT: Context to select at startup
            KTERM_NAMESPACE: Namespace to select at startup
            KTERM_LOG_TAIL_LINES: Number of log lines fetched before following
            KTERM_EDITOR: Editor command for YAML edits and log buffers
            KTERM_PAGER: Pager command for log buffers
        """
        config_dict = base_config.copy() if base_config else {}

        if kubeconfig := os.environ.get("KTERM_KUBECONFIG"):
            config_dict["kubeconfig"] = kubeconfig
        if context := os.environ.get("KTERM_CONTEXT"):
            config_dict["context"] = context
        if namespace := os.environ.get("KTERM_NAMESPACE"):
            config_dict["namespace"] = namespace
        if tail := os.environ.get("KTERM_LOG_TAIL_LINES"):
            config_dict["log_tail_lines"] = int(tail)
        if editor := os.environ.get("KTERM_EDITOR"):
            config_dict["editor"] = editor
        if pager := os.environ.get("KTERM_PAGER"):
            config_dict["pager"] = pager

        return cls(**config_dict)
