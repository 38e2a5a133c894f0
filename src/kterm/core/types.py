"""Domain types shared by the dashboard core, services and renderer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict

MISSING_VALUE = "<none>"

# Watch stream marker sent once the existing objects have been listed
WATCH_SYNCED = "SYNCED"


class ResourceType(Enum):
    """Resource kinds the dashboard can browse."""

    PODS = "Pods"
    PERSISTENT_VOLUME_CLAIMS = "PVCs"
    STATEFUL_SETS = "StatefulSets"

    @property
    def display_name(self) -> str:
        return self.value

    @property
    def kind(self) -> str:
        """API kind name, used in error messages."""
        return _KINDS[self]

    @property
    def column_headers(self) -> tuple[str, ...]:
        return tuple(header for header, _ in COLUMN_DEFS[self])

    def next(self) -> ResourceType:
        idx = RESOURCE_TYPE_ORDER.index(self)
        return RESOURCE_TYPE_ORDER[(idx + 1) % len(RESOURCE_TYPE_ORDER)]

    def prev(self) -> ResourceType:
        idx = RESOURCE_TYPE_ORDER.index(self)
        return RESOURCE_TYPE_ORDER[(idx - 1) % len(RESOURCE_TYPE_ORDER)]


# Ordered list for cycling through types
RESOURCE_TYPE_ORDER: list[ResourceType] = [
    ResourceType.PODS,
    ResourceType.PERSISTENT_VOLUME_CLAIMS,
    ResourceType.STATEFUL_SETS,
]

_KINDS: dict[ResourceType, str] = {
    ResourceType.PODS: "Pod",
    ResourceType.PERSISTENT_VOLUME_CLAIMS: "PersistentVolumeClaim",
    ResourceType.STATEFUL_SETS: "StatefulSet",
}

# (header, field) per column; fields other than the fixed ones are extra keys
COLUMN_DEFS: dict[ResourceType, list[tuple[str, str]]] = {
    ResourceType.PODS: [
        ("NAME", "name"),
        ("STATUS", "status"),
        ("AGE", "age"),
        ("RESTARTS", "restarts"),
        ("NODE", "node"),
    ],
    ResourceType.PERSISTENT_VOLUME_CLAIMS: [
        ("NAME", "name"),
        ("STATUS", "status"),
        ("VOLUME", "volume"),
        ("CAPACITY", "capacity"),
        ("AGE", "age"),
    ],
    ResourceType.STATEFUL_SETS: [
        ("NAME", "name"),
        ("READY", "ready"),
        ("AGE", "age"),
    ],
}

# Types that support log streaming
LOGGABLE_TYPES = frozenset({ResourceType.PODS})

# Types that support restart
RESTARTABLE_TYPES = frozenset({ResourceType.PODS, ResourceType.STATEFUL_SETS})


class Focus(Enum):
    """Widget receiving non-global keys in the list view."""

    CONTEXT_SELECTOR = "context"
    NAMESPACE_SELECTOR = "namespace"
    RESOURCE_TYPE_SELECTOR = "resource_type"
    RESOURCE_LIST = "resource_list"

    @property
    def is_selector(self) -> bool:
        return self is not Focus.RESOURCE_LIST

    def next(self) -> Focus:
        idx = FOCUS_ORDER.index(self)
        return FOCUS_ORDER[(idx + 1) % len(FOCUS_ORDER)]

    def prev(self) -> Focus:
        idx = FOCUS_ORDER.index(self)
        return FOCUS_ORDER[(idx - 1) % len(FOCUS_ORDER)]


FOCUS_ORDER: list[Focus] = [
    Focus.CONTEXT_SELECTOR,
    Focus.NAMESPACE_SELECTOR,
    Focus.RESOURCE_TYPE_SELECTOR,
    Focus.RESOURCE_LIST,
]


class ConfirmAction(Enum):
    """Action waiting on a y/n confirmation."""

    DELETE = "delete"
    RESTART = "restart"


# =============================================================================
# View modes
# =============================================================================


@dataclass(frozen=True)
class ListView:
    pass


@dataclass(frozen=True)
class DetailView:
    pass


@dataclass(frozen=True)
class LogsView:
    pass


@dataclass(frozen=True)
class SearchView:
    pass


@dataclass(frozen=True)
class ConfirmView:
    """Confirmation dialog; always carries the action it confirms."""

    action: ConfirmAction


ViewMode = ListView | DetailView | LogsView | SearchView | ConfirmView


# =============================================================================
# Resources
# =============================================================================


class ResourceItem(BaseModel):
    """One row of the resource table.

    ``extra`` holds the type specific columns as ordered key/value pairs
    (restarts and node for pods, for example).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str
    status: str
    age: str
    extra: tuple[tuple[str, str], ...] = ()
    raw_definition: str = ""

    @property
    def key(self) -> str:
        """Cache key, ``namespace/name``."""
        return f"{self.namespace}/{self.name}"

    def get_extra(self, key: str) -> str | None:
        for k, v in self.extra:
            if k == key:
                return v
        return None

    def columns(self, resource_type: ResourceType) -> list[str]:
        """Render this item as a table row for ``resource_type``."""
        fixed = {"name": self.name, "status": self.status, "age": self.age}
        row: list[str] = []
        for _, field in COLUMN_DEFS[resource_type]:
            if field in fixed:
                row.append(fixed[field])
            else:
                value = self.get_extra(field)
                row.append(MISSING_VALUE if value is None else value)
        return row


class SearchResult(BaseModel):
    """A resource found by cross-cluster search, tagged with its origin."""

    model_config = ConfigDict(frozen=True)

    resource: ResourceItem
    context: str
    resource_type: ResourceType

    @property
    def label(self) -> str:
        """Text the search query is matched against."""
        return self.resource.name
