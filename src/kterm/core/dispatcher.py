"""Background cluster operations requested by the UI.

Every operation runs as its own asyncio task; blocking accessor calls run in
worker threads and every failure is turned into one :class:`ErrorEvent`.
Nothing raises into the runtime loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

import structlog

from kterm.core.events import (
    ContextsLoaded,
    ContextSwitchFailed,
    DetailLoaded,
    ErrorEvent,
    NamespacesLoaded,
)
from kterm.core.state import DEFAULT_NAMESPACE
from kterm.core.types import RESTARTABLE_TYPES, ResourceItem, ResourceType
from kterm.integrations.kubernetes.exceptions import UnsupportedActionError

if TYPE_CHECKING:
    from kterm.core.accessor import ClusterAccessor
    from kterm.core.bus import EventBus
    from kterm.core.watch import LogStreamManager

logger = structlog.get_logger()


class SharedClient:
    """The active cluster client, shared by every background task.

    The lock only guards reading and swapping the reference; it is never
    held while a cluster call is in flight.
    """

    def __init__(self, client: Any = None) -> None:
        self._client = client
        self._lock = asyncio.Lock()

    async def handle(self) -> Any:
        """Return the current client, or None when offline."""
        async with self._lock:
            return self._client

    async def replace(self, client: Any) -> Any:
        """Install ``client`` and return the previous one."""
        async with self._lock:
            old, self._client = self._client, client
        return old


class ActionDispatcher:
    """Spawns tasks for describe, mutations, context switches and bootstrap.

    Args:
        accessor: Cluster operations, called from worker threads.
        bus: Bus receiving the results.
        shared: Holder of the active client.
        logs: Manager of the single active log stream.
    """

    def __init__(
        self,
        accessor: ClusterAccessor,
        bus: EventBus,
        shared: SharedClient,
        logs: LogStreamManager,
    ) -> None:
        self._accessor = accessor
        self._bus = bus
        self._shared = shared
        self._logs = logs
        self._tasks: set[asyncio.Task[None]] = set()
        self._switch_task: asyncio.Task[None] | None = None
        self._active_context: str | None = None

    @property
    def shared(self) -> SharedClient:
        return self._shared

    @property
    def active_context(self) -> str | None:
        """Context of the client in ``shared``, None before the first connect."""
        return self._active_context

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _call(self, label: str, fn: Callable[..., Any], *args: Any) -> Any:
        """Run ``fn(client, *args)`` in a thread against the shared client.

        Returns None without calling when offline; failures become an
        ``ErrorEvent`` prefixed with ``label``.
        """
        client = await self._shared.handle()
        if client is None:
            logger.debug("operation_skipped_offline", operation=label)
            return None
        try:
            return await asyncio.to_thread(fn, client, *args)
        except Exception as e:
            logger.warning("operation_failed", operation=label, error=str(e))
            self._bus.send(ErrorEvent(f"{label} error: {e}"))
            return None

    async def cancel_all(self) -> None:
        """Cancel every task still in flight and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================================
    # Reads
    # =========================================================================

    def describe(self, item: ResourceItem, resource_type: ResourceType) -> None:
        """Load detail text for ``item`` into the detail view."""

        async def _run() -> None:
            text = await self._call(
                "Describe", self._accessor.describe, item.namespace, item.name, resource_type
            )
            if text is not None:
                self._bus.send(DetailLoaded(text))

        self._spawn(_run(), f"describe-{item.name}")

    def describe_in_context(
        self, context: str, item: ResourceItem, resource_type: ResourceType
    ) -> None:
        """Describe ``item`` using a throwaway client for ``context``."""

        async def _run() -> None:
            client = await self._connect_reporting(context)
            if client is None:
                return
            try:
                text = await asyncio.to_thread(
                    self._accessor.describe, client, item.namespace, item.name, resource_type
                )
            except Exception as e:
                logger.warning("describe_failed", context=context, name=item.name, error=str(e))
                self._bus.send(ErrorEvent(f"Describe error: {e}"))
                return
            self._bus.send(DetailLoaded(text))

        self._spawn(_run(), f"describe-{context}-{item.name}")

    async def list_all(self, resource_type: ResourceType) -> list[ResourceItem]:
        """Every object of ``resource_type`` in the active cluster."""
        items = await self._call("List", self._accessor.list_all, resource_type)
        return items or []

    def stream_logs(self, item: ResourceItem) -> int:
        """Follow ``item``'s logs with the shared client.

        Returns:
            Generation of the new log stream.
        """
        return self._logs.start(self._shared.handle, item.namespace, item.name)

    def stream_logs_in_context(self, context: str, item: ResourceItem) -> int:
        """Follow ``item``'s logs with a throwaway client for ``context``."""

        async def _client() -> Any:
            return await self._connect_reporting(context)

        return self._logs.start(_client, item.namespace, item.name)

    async def _connect_reporting(self, context: str) -> Any:
        try:
            return await asyncio.to_thread(self._accessor.connect, context)
        except Exception as e:
            logger.warning("connect_failed", context=context, error=str(e))
            self._bus.send(ErrorEvent(f"Connect to {context}: {e}"))
            return None

    # =========================================================================
    # Mutations
    # =========================================================================

    def delete(self, item: ResourceItem, resource_type: ResourceType) -> None:
        async def _run() -> None:
            await self._call("Delete", self._accessor.delete, item.namespace, item.name, resource_type)

        self._spawn(_run(), f"delete-{item.name}")

    def restart(self, item: ResourceItem, resource_type: ResourceType) -> None:
        """Restart ``item``; types that cannot restart are rejected up front."""
        if resource_type not in RESTARTABLE_TYPES:
            error = UnsupportedActionError("restarted", resource_type.display_name)
            self._bus.send(ErrorEvent(f"Restart error: {error}"))
            return

        async def _run() -> None:
            await self._call("Restart", self._accessor.restart, item.namespace, item.name, resource_type)

        self._spawn(_run(), f"restart-{item.name}")

    def apply(self, item: ResourceItem, resource_type: ResourceType, definition: str) -> None:
        """Replace ``item`` with the edited ``definition``."""

        async def _run() -> None:
            await self._call(
                "Apply", self._accessor.apply, item.namespace, item.name, resource_type, definition
            )

        self._spawn(_run(), f"apply-{item.name}")

    # =========================================================================
    # Contexts
    # =========================================================================

    def switch_context(self, context: str) -> None:
        """Connect to ``context``, make it active and reload its namespaces."""
        if self._switch_task is not None and not self._switch_task.done():
            self._switch_task.cancel()
        self._switch_task = self._spawn(self._switch(context), f"switch-{context}")

    async def _switch(self, context: str) -> None:
        log = logger.bind(context=context)
        try:
            client = await asyncio.to_thread(self._accessor.connect, context)
        except Exception as e:
            log.warning("context_switch_failed", error=str(e))
            self._bus.send(ErrorEvent(f"Failed to switch context: {e}"))
            self._bus.send(ContextSwitchFailed(self._active_context))
            return
        await self._shared.replace(client)
        self._active_context = context
        log.info("context_switched")
        await self._load_namespaces(client, context)

    async def _load_namespaces(self, client: Any, context: str) -> bool:
        try:
            namespaces = await asyncio.to_thread(self._accessor.list_namespaces, client)
            preferred = await asyncio.to_thread(self._accessor.current_namespace, context)
        except Exception as e:
            logger.warning("list_namespaces_failed", context=context, error=str(e))
            self._bus.send(ErrorEvent(f"Failed to list namespaces: {e}"))
            return False
        self._bus.send(NamespacesLoaded(tuple(namespaces), preferred=preferred))
        return True

    def bootstrap(self) -> None:
        """Discover contexts, connect to the current one and load namespaces."""
        self._spawn(self._bootstrap(), "bootstrap")

    async def _bootstrap(self) -> None:
        try:
            contexts = await asyncio.to_thread(self._accessor.list_contexts)
            current = await asyncio.to_thread(self._accessor.current_context)
            client = await asyncio.to_thread(self._accessor.connect, current)
        except Exception as e:
            logger.warning("bootstrap_offline", error=str(e))
            self._bus.send(
                ErrorEvent(f"Failed to connect to Kubernetes: {e}. Running in offline mode.")
            )
            self._bus.send(NamespacesLoaded((DEFAULT_NAMESPACE,)))
            return

        await self._shared.replace(client)
        self._active_context = current
        logger.info("connected", context=current, contexts=len(contexts))
        if not await self._load_namespaces(client, current):
            self._bus.send(NamespacesLoaded((DEFAULT_NAMESPACE,)))
        self._bus.send(ContextsLoaded(tuple(contexts), current))
