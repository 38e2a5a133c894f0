"""Shared fixtures for Kubernetes service tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest

from kterm.integrations.kubernetes.client import KubernetesClient


def _no_retry() -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return lambda fn: fn


@pytest.fixture
def mock_k8s_client() -> MagicMock:
    """Create a mock Kubernetes client with API sub-mocks.

    ``core_v1`` and ``apps_v1`` are auto-created MagicMocks. Error
    translation is the real one so tests see the real exception types, and
    the retry decorator is a pass-through.
    """
    mock_client = MagicMock()
    mock_client.default_namespace = "default"
    mock_client.context = "kind-dev"
    mock_client.translate_api_exception.side_effect = KubernetesClient.translate_api_exception
    mock_client.make_retry_decorator.side_effect = _no_retry
    return mock_client
