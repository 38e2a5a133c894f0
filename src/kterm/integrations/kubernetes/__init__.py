"""Kubernetes integration - API client, configuration and exceptions."""

from kterm.integrations.kubernetes.client import KubernetesClient
from kterm.integrations.kubernetes.config import DashboardConfig
from kterm.integrations.kubernetes.exceptions import (
    KubernetesAuthError,
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesNotFoundError,
    KubernetesValidationError,
    UnsupportedActionError,
)

__all__ = [
    "DashboardConfig",
    "KubernetesAuthError",
    "KubernetesClient",
    "KubernetesConflictError",
    "KubernetesConnectionError",
    "KubernetesError",
    "KubernetesNotFoundError",
    "KubernetesValidationError",
    "UnsupportedActionError",
]
