"""Mutating operations: delete, restart and apply."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import yaml

from kterm.core.types import RESTARTABLE_TYPES, ResourceType
from kterm.integrations.kubernetes.exceptions import (
    KubernetesValidationError,
    UnsupportedActionError,
)
from kterm.services.kubernetes.base import K8sBaseManager

RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"


def restart_patch(now: datetime | None = None) -> dict[str, Any]:
    """Merge patch that triggers a rolling restart, like ``kubectl rollout restart``."""
    timestamp = (now or datetime.now(UTC)).isoformat()
    return {
        "spec": {
            "template": {
                "metadata": {"annotations": {RESTARTED_AT_ANNOTATION: timestamp}}
            }
        }
    }


def parse_definition(text: str) -> dict[str, Any]:
    """Parse an edited YAML definition.

    Raises:
        KubernetesValidationError: If the text is not a YAML mapping.
    """
    try:
        body = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise KubernetesValidationError(message=f"Invalid YAML: {e}", status_code=None) from e
    if not isinstance(body, dict):
        raise KubernetesValidationError(
            message="Edited definition is not a YAML mapping", status_code=None
        )
    return body


class ActionManager(K8sBaseManager):
    """Delete, restart and replace objects."""

    _entity_name = "action"

    def delete(self, namespace: str | None, name: str, resource_type: ResourceType) -> None:
        """Delete one object.

        Args:
            namespace: Object namespace.
            name: Object name.
            resource_type: Object type.
        """
        ns = self._resolve_namespace(namespace)
        self._log.info("deleting_resource", name=name, namespace=ns, resource_type=resource_type.value)
        try:
            self._api_method(resource_type, "delete_namespaced_{kind}")(name=name, namespace=ns)
        except Exception as e:
            self._handle_api_error(e, resource_type.kind, name, ns)
        self._log.info("deleted_resource", name=name, namespace=ns)

    def restart(self, namespace: str | None, name: str, resource_type: ResourceType) -> None:
        """Restart one object.

        Pods are deleted so their controller recreates them. StatefulSets get
        the ``restartedAt`` template annotation. PVCs cannot be restarted.

        Raises:
            UnsupportedActionError: For resource types that cannot restart.
        """
        if resource_type not in RESTARTABLE_TYPES:
            raise UnsupportedActionError("restarted", resource_type.display_name)

        if resource_type is ResourceType.PODS:
            self.delete(namespace, name, resource_type)
            return

        ns = self._resolve_namespace(namespace)
        self._log.info("restarting_resource", name=name, namespace=ns, resource_type=resource_type.value)
        try:
            self._api_method(resource_type, "patch_namespaced_{kind}")(
                name=name, namespace=ns, body=restart_patch()
            )
        except Exception as e:
            self._handle_api_error(e, resource_type.kind, name, ns)
        self._log.info("restarted_resource", name=name, namespace=ns)

    def apply(
        self,
        namespace: str | None,
        name: str,
        resource_type: ResourceType,
        definition: str,
    ) -> None:
        """Replace an object with an edited YAML definition.

        Args:
            namespace: Object namespace.
            name: Object name.
            resource_type: Object type.
            definition: Full YAML definition.

        Raises:
            KubernetesValidationError: If the YAML cannot be parsed.
        """
        ns = self._resolve_namespace(namespace)
        body = parse_definition(definition)
        self._log.info("applying_resource", name=name, namespace=ns, resource_type=resource_type.value)
        try:
            self._api_method(resource_type, "replace_namespaced_{kind}")(
                name=name, namespace=ns, body=body
            )
        except Exception as e:
            self._handle_api_error(e, resource_type.kind, name, ns)
        self._log.info("applied_resource", name=name, namespace=ns)
