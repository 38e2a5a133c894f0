"""Read-side resource operations: namespaces, watches, lists and describe."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from kterm.core.types import WATCH_SYNCED, ResourceItem, ResourceType
from kterm.integrations.kubernetes.exceptions import KubernetesError
from kterm.integrations.kubernetes.models import (
    safe_get,
    pod_to_item,
    pvc_to_item,
    stateful_set_to_item,
    to_yaml,
)
from kterm.services.kubernetes.base import K8sBaseManager

# Server-side watch timeout; bounds how long a cancelled watch thread lingers
WATCH_TIMEOUT_SECONDS = 30

WATCH_EVENT_TYPES = frozenset({"ADDED", "MODIFIED", "DELETED"})

CONVERTERS: dict[ResourceType, Callable[[Any], ResourceItem]] = {
    ResourceType.PODS: pod_to_item,
    ResourceType.PERSISTENT_VOLUME_CLAIMS: pvc_to_item,
    ResourceType.STATEFUL_SETS: stateful_set_to_item,
}


class ResourceWatch:
    """Blocking iterator of ``(event_type, ResourceItem)`` for one namespace and type.

    Starts with an ``ADDED`` event for every existing object and a
    ``(WATCH_SYNCED, None)`` marker, then follows changes. Call :meth:`stop`
    from any thread to end the iteration.
    """

    def __init__(
        self,
        manager: ResourceManager,
        namespace: str,
        resource_type: ResourceType,
    ) -> None:
        from kubernetes import watch

        self._manager = manager
        self._namespace = namespace
        self._resource_type = resource_type
        self._watch = watch.Watch()
        self._stopped = False

    def __iter__(self) -> Iterator[tuple[str, ResourceItem | None]]:
        return self._manager.watch_events(
            self._watch, self._namespace, self._resource_type, lambda: self._stopped
        )

    def stop(self) -> None:
        self._stopped = True
        self._watch.stop()


class ResourceManager(K8sBaseManager):
    """Namespaces, watches, cross-namespace lists and describe text."""

    _entity_name = "resource"

    # =========================================================================
    # Namespaces
    # =========================================================================

    def list_namespaces(self) -> list[str]:
        """List namespace names, sorted.

        Returns:
            Namespace names.
        """
        self._log.debug("listing_namespaces")
        try:
            result = self._client.core_v1.list_namespace()
        except Exception as e:
            self._handle_api_error(e, "Namespace")
        names = sorted(ns.metadata.name for ns in result.items if ns.metadata and ns.metadata.name)
        self._log.debug("listed_namespaces", count=len(names))
        return names

    # =========================================================================
    # Listing
    # =========================================================================

    def list_namespaced_raw(self, namespace: str, resource_type: ResourceType) -> Any:
        """List SDK objects of ``resource_type`` in ``namespace``, with retries.

        Connection failures are retried with exponential backoff before
        giving up.
        """

        @self._client.make_retry_decorator()
        def _list() -> Any:
            try:
                return self._api_method(resource_type, "list_namespaced_{kind}")(namespace=namespace)
            except Exception as e:
                self._handle_api_error(e, resource_type.kind, namespace=namespace)

        self._log.debug("listing_resources", namespace=namespace, resource_type=resource_type.value)
        return _list()

    def list_all(self, resource_type: ResourceType) -> list[ResourceItem]:
        """List every object of ``resource_type`` across all namespaces.

        Args:
            resource_type: Resource type to list.

        Returns:
            Converted rows in API order.
        """
        self._log.debug("listing_all_resources", resource_type=resource_type.value)
        try:
            result = self._api_method(resource_type, "list_{kind}_for_all_namespaces")()
        except Exception as e:
            self._handle_api_error(e, resource_type.kind)
        convert = CONVERTERS[resource_type]
        items = [convert(obj) for obj in result.items]
        self._log.debug("listed_all_resources", resource_type=resource_type.value, count=len(items))
        return items

    def watch(self, namespace: str | None, resource_type: ResourceType) -> ResourceWatch:
        """Open a watch on ``resource_type`` objects in ``namespace``.

        The returned iterator blocks; run it off the event loop.
        """
        ns = self._resolve_namespace(namespace)
        self._log.debug("opening_watch", namespace=ns, resource_type=resource_type.value)
        return ResourceWatch(self, ns, resource_type)

    def watch_events(
        self,
        watcher: Any,
        namespace: str,
        resource_type: ResourceType,
        stopped: Callable[[], bool],
    ) -> Iterator[tuple[str, ResourceItem | None]]:
        """List ``resource_type`` in ``namespace``, then follow changes with ``watcher``.

        The watch is reopened from the last seen resource version each time
        the server closes it, until ``stopped()`` returns True.

        Args:
            watcher: A ``kubernetes.watch.Watch``.
            namespace: Namespace to follow.
            resource_type: Resource type to follow.
            stopped: Polled between events.

        Yields:
            ``(event_type, item)`` pairs, with ``(WATCH_SYNCED, None)`` after
            the initial list.

        Raises:
            KubernetesError: On an ERROR notification or a failed stream.
        """
        convert = CONVERTERS[resource_type]
        listing = self.list_namespaced_raw(namespace, resource_type)
        for obj in listing.items:
            yield "ADDED", convert(obj)
        yield WATCH_SYNCED, None

        list_func = self._api_method(resource_type, "list_namespaced_{kind}")
        resource_version = safe_get(listing, "metadata", "resource_version")
        while not stopped():
            try:
                for event in watcher.stream(
                    list_func,
                    namespace=namespace,
                    resource_version=resource_version,
                    timeout_seconds=WATCH_TIMEOUT_SECONDS,
                ):
                    if stopped():
                        return
                    event_type = event.get("type")
                    if event_type == "ERROR":
                        raw = event.get("raw_object") or {}
                        raise KubernetesError(
                            message=raw.get("message", "watch stream error"),
                            status_code=raw.get("code"),
                        )
                    if event_type in WATCH_EVENT_TYPES:
                        yield event_type, convert(event["object"])
            except KubernetesError:
                raise
            except Exception as e:
                self._handle_api_error(e, resource_type.kind, namespace=namespace)
            resource_version = watcher.resource_version or resource_version

    # =========================================================================
    # Describe
    # =========================================================================

    def describe(self, namespace: str | None, name: str, resource_type: ResourceType) -> str:
        """Build human readable detail text for one object.

        Args:
            namespace: Object namespace.
            name: Object name.
            resource_type: Object type.

        Returns:
            Summary fields, related events and the full YAML definition.
        """
        ns = self._resolve_namespace(namespace)
        self._log.debug("describing_resource", name=name, namespace=ns, resource_type=resource_type.value)
        try:
            obj = self._api_method(resource_type, "read_namespaced_{kind}")(name=name, namespace=ns)
        except Exception as e:
            self._handle_api_error(e, resource_type.kind, name, ns)

        lines = [f"Name:         {name}", f"Namespace:    {ns}"]
        if resource_type is ResourceType.PODS:
            lines.extend(_describe_pod(obj))
        elif resource_type is ResourceType.PERSISTENT_VOLUME_CLAIMS:
            lines.extend(_describe_pvc(obj))
        else:
            lines.extend(_describe_stateful_set(obj))

        events = self.list_events(ns, name)
        if events:
            lines.append("")
            lines.append("Events:")
            lines.extend(f"  {event}" for event in events)

        lines.append("")
        lines.append("--- Full YAML ---")
        return "\n".join(lines) + "\n" + to_yaml(obj)

    def list_events(self, namespace: str, name: str) -> list[str]:
        """Events whose involvedObject is ``name``, as ``type reason message``.

        Event listing is best effort: on failure the describe text just has no
        events section.
        """
        try:
            result = self._client.core_v1.list_namespaced_event(
                namespace=namespace,
                field_selector=f"involvedObject.name={name}",
            )
        except Exception as e:
            self._log.debug("list_events_failed", name=name, namespace=namespace, error=str(e))
            return []
        return [
            f"{evt.type or 'Normal'} {evt.reason or ''} {evt.message or ''}"
            for evt in result.items
        ]


def _describe_pod(pod: Any) -> list[str]:
    lines: list[str] = []
    status = safe_get(pod, "status")
    if status is not None:
        lines.append(f"Status:       {status.phase or 'Unknown'}")
        if status.pod_ip:
            lines.append(f"IP:           {status.pod_ip}")
        if status.conditions:
            lines.append("")
            lines.append("Conditions:")
            lines.extend(f"  {c.type}: {c.status} ({c.reason or ''})" for c in status.conditions)
        if status.container_statuses:
            lines.append("")
            lines.append("Containers:")
            for cs in status.container_statuses:
                lines.append(f"  {cs.name}:")
                lines.append(f"    Image:    {cs.image}")
                lines.append(f"    Ready:    {str(cs.ready).lower()}")
                lines.append(f"    Restarts: {cs.restart_count}")
    node = safe_get(pod, "spec", "node_name")
    if node:
        lines.append("")
        lines.append(f"Node:         {node}")
    return lines


def _describe_pvc(pvc: Any) -> list[str]:
    lines: list[str] = []
    status = safe_get(pvc, "status")
    if status is not None:
        lines.append(f"Status:       {status.phase or 'Unknown'}")
        storage = (status.capacity or {}).get("storage")
        if storage:
            lines.append(f"Capacity:     {storage}")
    spec = safe_get(pvc, "spec")
    if spec is not None:
        if spec.volume_name:
            lines.append(f"Volume:       {spec.volume_name}")
        if spec.storage_class_name:
            lines.append(f"StorageClass: {spec.storage_class_name}")
        if spec.access_modes:
            lines.append(f"AccessModes:  {', '.join(spec.access_modes)}")
    return lines


def _describe_stateful_set(sts: Any) -> list[str]:
    lines: list[str] = []
    status = safe_get(sts, "status")
    if status is not None:
        lines.append(f"Replicas:     {status.replicas or 0}")
        lines.append(f"Ready:        {status.ready_replicas or 0}")
        lines.append(f"Updated:      {status.updated_replicas or 0}")
    spec = safe_get(sts, "spec")
    if spec is not None:
        if spec.replicas is not None:
            lines.append(f"Desired:      {spec.replicas}")
        lines.append(f"ServiceName:  {spec.service_name or '<none>'}")
    return lines
