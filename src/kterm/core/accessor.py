"""Cluster accessor: the blocking cluster operations the core relies on.

The core only talks to clusters through this interface and always calls it
from worker threads. :class:`KubernetesAccessor` implements it on top of
the kubernetes client managers; tests substitute their own.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Protocol

from kterm.integrations.kubernetes.client import KubernetesClient
from kterm.integrations.kubernetes.config import DashboardConfig
from kterm.services.kubernetes import ActionManager, ResourceManager, StreamingManager

if TYPE_CHECKING:
    from kterm.core.types import ResourceItem, ResourceType


class WatchStream(Protocol):
    def __iter__(self) -> Iterator[tuple[str, ResourceItem | None]]: ...

    def stop(self) -> None: ...


class LineStream(Protocol):
    def __iter__(self) -> Iterator[str]: ...

    def close(self) -> None: ...


class ClusterAccessor(Protocol):
    """Operations against kubeconfig contexts and their clusters."""

    def list_contexts(self) -> list[str]: ...

    def current_context(self) -> str: ...

    def current_namespace(self, context: str) -> str: ...

    def connect(self, context: str) -> Any: ...

    def list_namespaces(self, client: Any) -> list[str]: ...

    def watch(self, client: Any, namespace: str, resource_type: ResourceType) -> WatchStream: ...

    def list_all(self, client: Any, resource_type: ResourceType) -> list[ResourceItem]: ...

    def describe(self, client: Any, namespace: str, name: str, resource_type: ResourceType) -> str: ...

    def delete(self, client: Any, namespace: str, name: str, resource_type: ResourceType) -> None: ...

    def restart(self, client: Any, namespace: str, name: str, resource_type: ResourceType) -> None: ...

    def apply(
        self,
        client: Any,
        namespace: str,
        name: str,
        resource_type: ResourceType,
        definition: str,
    ) -> None: ...

    def stream_logs(
        self,
        client: Any,
        namespace: str,
        pod_name: str,
        container: str | None = None,
    ) -> LineStream: ...


class KubernetesAccessor:
    """:class:`ClusterAccessor` backed by the official kubernetes client."""

    def __init__(self, config: DashboardConfig | None = None) -> None:
        self._config = config or DashboardConfig()

    def list_contexts(self) -> list[str]:
        return KubernetesClient.list_contexts(self._config.kubeconfig)

    def current_context(self) -> str:
        return self._config.context or KubernetesClient.current_context(self._config.kubeconfig)

    def current_namespace(self, context: str) -> str:
        if self._config.namespace:
            return self._config.namespace
        return KubernetesClient.context_namespace(context, self._config.kubeconfig)

    def connect(self, context: str) -> KubernetesClient:
        return KubernetesClient.connect(
            context,
            kubeconfig=self._config.kubeconfig,
            retry_attempts=self._config.watch_retry_attempts,
        )

    def list_namespaces(self, client: KubernetesClient) -> list[str]:
        return ResourceManager(client).list_namespaces()

    def watch(self, client: KubernetesClient, namespace: str, resource_type: ResourceType) -> WatchStream:
        return ResourceManager(client).watch(namespace, resource_type)

    def list_all(self, client: KubernetesClient, resource_type: ResourceType) -> list[ResourceItem]:
        return ResourceManager(client).list_all(resource_type)

    def describe(
        self, client: KubernetesClient, namespace: str, name: str, resource_type: ResourceType
    ) -> str:
        return ResourceManager(client).describe(namespace, name, resource_type)

    def delete(
        self, client: KubernetesClient, namespace: str, name: str, resource_type: ResourceType
    ) -> None:
        ActionManager(client).delete(namespace, name, resource_type)

    def restart(
        self, client: KubernetesClient, namespace: str, name: str, resource_type: ResourceType
    ) -> None:
        ActionManager(client).restart(namespace, name, resource_type)

    def apply(
        self,
        client: KubernetesClient,
        namespace: str,
        name: str,
        resource_type: ResourceType,
        definition: str,
    ) -> None:
        ActionManager(client).apply(namespace, name, resource_type, definition)

    def stream_logs(
        self,
        client: KubernetesClient,
        namespace: str,
        pod_name: str,
        container: str | None = None,
    ) -> LineStream:
        return StreamingManager(client).stream_logs(
            pod_name,
            namespace,
            container=container,
            tail_lines=self._config.log_tail_lines,
        )
