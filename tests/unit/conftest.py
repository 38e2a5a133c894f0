"""Fakes shared by the dashboard core and TUI tests.

``FakeAccessor`` stands in for the cluster: contexts, namespaces and
resources are plain dicts, and every mutating call is recorded.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator, Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

import pytest
import pytest_asyncio

from kterm.core.bus import EventBus
from kterm.core.events import AppEvent
from kterm.core.types import WATCH_SYNCED, ResourceItem, ResourceType
from kterm.integrations.kubernetes.exceptions import KubernetesConnectionError, KubernetesError


def make_item(name: str, namespace: str = "default", status: str = "Running") -> ResourceItem:
    return ResourceItem(
        name=name,
        namespace=namespace,
        status=status,
        age="1m",
        extra=(("restarts", "0"), ("node", "node-a")),
        raw_definition=f"metadata:\n  name: {name}\n",
    )


@dataclass
class FakeClient:
    context: str


class FakeWatch:
    """Watch stream yielding fixed events, optionally blocking until stopped."""

    def __init__(self, events: list[tuple[str, ResourceItem]], block: bool = False) -> None:
        self._events = events
        self._block = block
        self._stopped = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def __iter__(self) -> Iterator[tuple[str, ResourceItem | None]]:
        yield from self._events
        yield WATCH_SYNCED, None
        if self._block:
            self._stopped.wait(timeout=5)

    def stop(self) -> None:
        self._stopped.set()


class FakeLines:
    def __init__(self, lines: list[str]) -> None:
        self._lines = lines
        self.closed = False

    def __iter__(self) -> Iterator[str]:
        yield from self._lines

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeAccessor:
    contexts: list[str] = field(default_factory=lambda: ["kind-dev", "prod"])
    current: str = "kind-dev"
    namespaces: dict[str, list[str]] = field(
        default_factory=lambda: {"kind-dev": ["apps", "default"], "prod": ["default", "web"]}
    )
    preferred_namespace: str = "default"
    # context -> resource type -> items
    resources: dict[str, dict[ResourceType, list[ResourceItem]]] = field(default_factory=dict)
    log_lines: list[str] = field(default_factory=lambda: ["line 1", "line 2"])
    fail_connect: set[str] = field(default_factory=set)
    fail_list: set[ResourceType] = field(default_factory=set)
    fail_namespaces: bool = False
    fail_mutations: bool = False
    block_watch: bool = False
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    watches: list[FakeWatch] = field(default_factory=list)
    log_streams: list[FakeLines] = field(default_factory=list)

    def list_contexts(self) -> list[str]:
        return list(self.contexts)

    def current_context(self) -> str:
        return self.current

    def current_namespace(self, context: str) -> str:
        return self.preferred_namespace

    def connect(self, context: str) -> FakeClient:
        if context in self.fail_connect:
            raise KubernetesConnectionError(f"cannot reach {context}")
        return FakeClient(context)

    def list_namespaces(self, client: FakeClient) -> list[str]:
        if self.fail_namespaces:
            raise KubernetesError("forbidden")
        return list(self.namespaces.get(client.context, []))

    def _items(self, client: FakeClient, resource_type: ResourceType) -> list[ResourceItem]:
        return list(self.resources.get(client.context, {}).get(resource_type, []))

    def watch(self, client: FakeClient, namespace: str, resource_type: ResourceType) -> FakeWatch:
        self.calls.append(("watch", client.context, namespace, resource_type))
        items = [item for item in self._items(client, resource_type) if item.namespace == namespace]
        stream = FakeWatch([("ADDED", item) for item in items], block=self.block_watch)
        self.watches.append(stream)
        return stream

    def list_all(self, client: FakeClient, resource_type: ResourceType) -> list[ResourceItem]:
        if resource_type in self.fail_list:
            raise KubernetesError(f"cannot list {resource_type.display_name}")
        return self._items(client, resource_type)

    def describe(
        self, client: FakeClient, namespace: str, name: str, resource_type: ResourceType
    ) -> str:
        return f"Name: {name}\nContext: {client.context}"

    def _mutate(self, *call: Any) -> None:
        if self.fail_mutations:
            raise KubernetesError("forbidden")
        self.calls.append(call)

    def delete(self, client: FakeClient, namespace: str, name: str, resource_type: ResourceType) -> None:
        self._mutate("delete", client.context, namespace, name, resource_type)

    def restart(self, client: FakeClient, namespace: str, name: str, resource_type: ResourceType) -> None:
        self._mutate("restart", client.context, namespace, name, resource_type)

    def apply(
        self,
        client: FakeClient,
        namespace: str,
        name: str,
        resource_type: ResourceType,
        definition: str,
    ) -> None:
        self._mutate("apply", client.context, namespace, name, resource_type, definition)

    def stream_logs(
        self,
        client: FakeClient,
        namespace: str,
        pod_name: str,
        container: str | None = None,
    ) -> FakeLines:
        self.calls.append(("logs", client.context, namespace, pod_name))
        stream = FakeLines(list(self.log_lines))
        self.log_streams.append(stream)
        return stream

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]


# ============================================================================
# Fixtures
# ============================================================================


class BusReader:
    """Reads events off a bus with a timeout so a broken test fails fast."""

    def __init__(self, bus: EventBus, timeout: float = 2.0) -> None:
        self._bus = bus
        self._timeout = timeout

    async def next(self) -> AppEvent:
        return await asyncio.wait_for(self._bus.next(), self._timeout)

    async def until(self, predicate: Callable[[AppEvent], bool]) -> list[AppEvent]:
        """Read events until one satisfies ``predicate``; return all of them."""
        events: list[AppEvent] = []
        while True:
            event = await self.next()
            events.append(event)
            if predicate(event):
                return events

    async def wait_for(self, predicate: Callable[[], bool]) -> None:
        async def _poll() -> None:
            while not predicate():
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_poll(), self._timeout)


@pytest.fixture
def item_factory() -> Callable[..., ResourceItem]:
    return make_item


@pytest.fixture
def accessor() -> FakeAccessor:
    return FakeAccessor(
        resources={
            "kind-dev": {
                ResourceType.PODS: [
                    make_item("op-geth-node-0", "apps"),
                    make_item("web-0", "apps"),
                    make_item("web-1", "default"),
                ],
                ResourceType.PERSISTENT_VOLUME_CLAIMS: [make_item("data-op-geth-node-0", "apps", "Bound")],
            },
            "prod": {
                ResourceType.PODS: [make_item("op-geth-node-0", "web")],
            },
        }
    )


@pytest_asyncio.fixture
async def bus() -> AsyncIterator[EventBus]:
    event_bus = EventBus(tick_interval=60)
    yield event_bus
    await event_bus.close()


@pytest.fixture
def reader(bus: EventBus) -> BusReader:
    return BusReader(bus)
