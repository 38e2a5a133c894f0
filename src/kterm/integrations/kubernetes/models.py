"""Conversion of kubernetes SDK objects into dashboard rows."""

from __future__ import annotations

from datetime import UTC, datetime
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import yaml

from kterm.core.types import MISSING_VALUE, ResourceItem

UNKNOWN = "Unknown"

if TYPE_CHECKING:
    from kubernetes.client import ApiClient


def safe_get(obj: Any, *attrs: str, default: Any = None) -> Any:
    """Safely traverse nested attributes on kubernetes SDK objects."""
    current = obj
    for attr in attrs:
        if current is None:
            return default
        current = getattr(current, attr, None)
    return current if current is not None else default


def format_age(timestamp: datetime | None, now: datetime | None = None) -> str:
    """Render the time since ``timestamp`` the way kubectl does, two units at most.

    Examples: ``3d4h``, ``5h12m``, ``7m``, ``42s``. Timestamps in the future
    render as ``0s`` and a missing timestamp as ``<unknown>``.
    """
    if timestamp is None:
        return "<unknown>"
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    now = now or datetime.now(UTC)
    diff = int((now - timestamp).total_seconds())
    if diff < 0:
        return "0s"

    days, rem = divmod(diff, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, seconds = divmod(rem, 60)
    if days:
        return f"{days}d{hours}h"
    if hours:
        return f"{hours}h{minutes}m"
    if minutes:
        return f"{minutes}m"
    return f"{seconds}s"


@lru_cache(maxsize=1)
def _serializer() -> ApiClient:
    from kubernetes.client import ApiClient

    return ApiClient()


def to_plain_dict(obj: Any) -> dict[str, Any]:
    """Serialize an SDK object to a camelCase dict without managedFields."""
    data = _serializer().sanitize_for_serialization(obj)
    if not isinstance(data, dict):
        return {}
    metadata = data.get("metadata")
    if isinstance(metadata, dict):
        metadata.pop("managedFields", None)
    return data


def to_yaml(obj: Any) -> str:
    """Serialize an SDK object to YAML."""
    return yaml.safe_dump(to_plain_dict(obj), default_flow_style=False, sort_keys=False)


def _identity(obj: Any) -> tuple[str, str, str]:
    name = safe_get(obj, "metadata", "name", default="")
    namespace = safe_get(obj, "metadata", "namespace", default="")
    age = format_age(safe_get(obj, "metadata", "creation_timestamp"))
    return name, namespace, age


def pod_status(pod: Any) -> str:
    """First waiting reason (or "Terminated") of any container, else the phase."""
    phase = safe_get(pod, "status", "phase", default=UNKNOWN)
    for cs in safe_get(pod, "status", "container_statuses", default=[]):
        waiting = safe_get(cs, "state", "waiting")
        if waiting is not None:
            return getattr(waiting, "reason", None) or "Waiting"
        if safe_get(cs, "state", "terminated") is not None:
            return "Terminated"
    return phase


def pod_to_item(pod: Any) -> ResourceItem:
    """Convert a V1Pod into a table row."""
    name, namespace, age = _identity(pod)
    statuses = safe_get(pod, "status", "container_statuses", default=[])
    restarts = sum(getattr(cs, "restart_count", 0) or 0 for cs in statuses)
    node = safe_get(pod, "spec", "node_name", default=MISSING_VALUE)
    status = pod_status(pod) if safe_get(pod, "status") is not None else UNKNOWN

    return ResourceItem(
        name=name,
        namespace=namespace,
        status=status,
        age=age,
        extra=(("restarts", str(restarts)), ("node", node)),
        raw_definition=to_yaml(pod),
    )


def pvc_to_item(pvc: Any) -> ResourceItem:
    """Convert a V1PersistentVolumeClaim into a table row."""
    name, namespace, age = _identity(pvc)
    if safe_get(pvc, "status") is None:
        status, volume, capacity = UNKNOWN, MISSING_VALUE, MISSING_VALUE
    else:
        status = safe_get(pvc, "status", "phase", default=UNKNOWN)
        volume = safe_get(pvc, "spec", "volume_name", default=MISSING_VALUE)
        capacity = (safe_get(pvc, "status", "capacity") or {}).get("storage", MISSING_VALUE)

    return ResourceItem(
        name=name,
        namespace=namespace,
        status=status,
        age=age,
        extra=(("volume", volume), ("capacity", str(capacity))),
        raw_definition=to_yaml(pvc),
    )


def stateful_set_to_item(sts: Any) -> ResourceItem:
    """Convert a V1StatefulSet into a table row.

    Status is "Active" when every desired replica is ready, else "Updating".
    """
    name, namespace, age = _identity(sts)
    if safe_get(sts, "status") is None:
        status, ready = UNKNOWN, "0/0"
    else:
        desired = safe_get(sts, "spec", "replicas", default=0)
        ready_count = safe_get(sts, "status", "ready_replicas", default=0)
        ready = f"{ready_count}/{desired}"
        status = "Active" if ready_count == desired else "Updating"

    return ResourceItem(
        name=name,
        namespace=namespace,
        status=status,
        age=age,
        extra=(("ready", ready),),
        raw_definition=to_yaml(sts),
    )
