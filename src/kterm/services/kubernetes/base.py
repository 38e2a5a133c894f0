"""Base manager for Kubernetes service managers.

Provides shared infrastructure for the resource, action and streaming
managers: client access, structured logging and error translation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NoReturn

import structlog

from kterm.core.types import ResourceType

if TYPE_CHECKING:
    from kterm.integrations.kubernetes.client import KubernetesClient

logger = structlog.get_logger()

# Maps ResourceType -> (api_property, method suffix)
RESOURCE_API_MAP: dict[ResourceType, tuple[str, str]] = {
    ResourceType.PODS: ("core_v1", "pod"),
    ResourceType.PERSISTENT_VOLUME_CLAIMS: ("core_v1", "persistent_volume_claim"),
    ResourceType.STATEFUL_SETS: ("apps_v1", "stateful_set"),
}


class K8sBaseManager:
    """Base class for Kubernetes service managers.

    Subclasses set ``_entity_name`` for structured log context.
    """

    _entity_name: str = ""

    def __init__(self, client: KubernetesClient) -> None:
        """Initialize the manager.

        Args:
            client: Kubernetes API client instance.
        """
        self._client = client
        self._log = logger.bind(entity=self._entity_name, context=client.context)

    def _resolve_namespace(self, namespace: str | None) -> str:
        return namespace or self._client.default_namespace

    def _api_method(self, resource_type: ResourceType, template: str) -> Any:
        """Look up an API method by resource type.

        Args:
            resource_type: Resource type to operate on.
            template: Method name with ``{kind}`` placeholder, for example
                ``"read_namespaced_{kind}"``.

        Returns:
            The bound method on the right API group.
        """
        api_attr, kind = RESOURCE_API_MAP[resource_type]
        api = getattr(self._client, api_attr)
        return getattr(api, template.format(kind=kind))

    def _handle_api_error(
        self,
        e: Exception,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> NoReturn:
        """Translate a Kubernetes API exception and re-raise.

        Raises:
            KubernetesError: Always raises an appropriate subclass.
        """
        translated = self._client.translate_api_exception(
            e,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )
        if translated is e:
            raise e
        raise translated from e
