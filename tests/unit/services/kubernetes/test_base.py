"""Unit tests for K8sBaseManager."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException

from kterm.core.types import ResourceType
from kterm.integrations.kubernetes.exceptions import KubernetesError, KubernetesNotFoundError
from kterm.services.kubernetes.base import K8sBaseManager


class TestK8sBaseManager:
    """Tests for K8sBaseManager base class."""

    @pytest.mark.unit
    def test_init(self, mock_k8s_client: MagicMock) -> None:
        manager = K8sBaseManager(mock_k8s_client)

        assert manager._client == mock_k8s_client
        assert manager._log is not None

    @pytest.mark.unit
    def test_resolve_namespace(self, mock_k8s_client: MagicMock) -> None:
        manager = K8sBaseManager(mock_k8s_client)

        assert manager._resolve_namespace("apps") == "apps"
        assert manager._resolve_namespace(None) == "default"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("resource_type", "api_attr", "method"),
        [
            (ResourceType.PODS, "core_v1", "read_namespaced_pod"),
            (ResourceType.PERSISTENT_VOLUME_CLAIMS, "core_v1", "read_namespaced_persistent_volume_claim"),
            (ResourceType.STATEFUL_SETS, "apps_v1", "read_namespaced_stateful_set"),
        ],
    )
    def test_api_method_lookup(
        self,
        mock_k8s_client: MagicMock,
        resource_type: ResourceType,
        api_attr: str,
        method: str,
    ) -> None:
        manager = K8sBaseManager(mock_k8s_client)

        result = manager._api_method(resource_type, "read_namespaced_{kind}")

        assert result is getattr(getattr(mock_k8s_client, api_attr), method)

    @pytest.mark.unit
    def test_handle_api_error_translates(self, mock_k8s_client: MagicMock) -> None:
        manager = K8sBaseManager(mock_k8s_client)
        original = ApiException(status=404)

        with pytest.raises(KubernetesNotFoundError) as exc_info:
            manager._handle_api_error(original, "Pod", "web-0", "apps")

        assert exc_info.value.__cause__ is original

    @pytest.mark.unit
    def test_handle_api_error_reraises_translated(self, mock_k8s_client: MagicMock) -> None:
        manager = K8sBaseManager(mock_k8s_client)
        original = KubernetesError("already translated")

        with pytest.raises(KubernetesError) as exc_info:
            manager._handle_api_error(original)

        assert exc_info.value is original
