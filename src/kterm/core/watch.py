"""Live resource watches and log streams.

At most one watch and one log stream are active at a time. A start cancels
the previous task, and every cancel moves to a new generation number. The
events a task produces carry its generation so the state machine can drop
anything from a superseded subscription.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import structlog

from kterm.core.events import ErrorEvent, LogLine, LogStreamEnded, ResourcesUpdated
from kterm.core.types import WATCH_SYNCED

if TYPE_CHECKING:
    from kterm.core.accessor import ClusterAccessor
    from kterm.core.bus import EventBus
    from kterm.core.types import ResourceItem, ResourceType

logger = structlog.get_logger()

ClientSource = Callable[[], Awaitable[Any]]

_END = object()


class WatchCache:
    """Objects of one subscription keyed by ``namespace/name``."""

    def __init__(self) -> None:
        self._items: dict[str, ResourceItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    def apply(self, event_type: str, item: ResourceItem) -> None:
        """Insert or replace ``item``; remove it on a DELETED notification."""
        if event_type == "DELETED":
            self._items.pop(item.key, None)
        else:
            self._items[item.key] = item

    def snapshot(self) -> tuple[ResourceItem, ...]:
        """Current values ordered by key."""
        return tuple(self._items[key] for key in sorted(self._items))


class _SingleTaskManager:
    def __init__(self, accessor: ClusterAccessor, bus: EventBus) -> None:
        self._accessor = accessor
        self._bus = bus
        self._task: asyncio.Task[None] | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def _replace(self, coro_factory: Callable[[int], Awaitable[None]], name: str) -> int:
        self.cancel()
        generation = self._generation
        self._task = asyncio.create_task(coro_factory(generation), name=f"{name}-{generation}")
        return generation

    def cancel(self) -> None:
        """Abort the running task. Events it already sent become stale."""
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()


class WatchManager(_SingleTaskManager):
    """Owns the one active resource watch."""

    def start(self, client_source: ClientSource, namespace: str, resource_type: ResourceType) -> int:
        """Cancel the current watch and start one for ``namespace``/``resource_type``.

        Args:
            client_source: Coroutine function returning the client to use,
                or None when offline.
            namespace: Namespace to watch.
            resource_type: Resource type to watch.

        Returns:
            Generation tag carried by the new watch's events.
        """
        return self._replace(
            lambda generation: self._run(client_source, namespace, resource_type, generation),
            "watch",
        )

    async def _run(
        self,
        client_source: ClientSource,
        namespace: str,
        resource_type: ResourceType,
        generation: int,
    ) -> None:
        log = logger.bind(namespace=namespace, resource_type=resource_type.value, generation=generation)
        client = await client_source()
        if client is None:
            # Offline: show an empty list instead of loading forever
            self._bus.send(ResourcesUpdated((), generation))
            return

        cache = WatchCache()
        synced = False
        stream = None
        log.debug("watch_started")
        try:
            stream = await asyncio.to_thread(self._accessor.watch, client, namespace, resource_type)
            events = iter(stream)
            while True:
                event = await asyncio.to_thread(next, events, _END)
                if event is _END:
                    break
                event_type, item = event
                if event_type == WATCH_SYNCED:
                    synced = True
                else:
                    cache.apply(event_type, item)
                # Nothing is shown until the existing objects are all listed
                if synced:
                    self._bus.send(ResourcesUpdated(cache.snapshot(), generation))
            log.debug("watch_ended")
        except asyncio.CancelledError:
            log.debug("watch_cancelled")
            raise
        except Exception as e:
            log.warning("watch_error", error=str(e))
            self._bus.send(ErrorEvent(f"Watch error: {e}"))
        finally:
            if stream is not None:
                stream.stop()


class LogStreamManager(_SingleTaskManager):
    """Owns the one active pod log stream."""

    def start(
        self,
        client_source: ClientSource,
        namespace: str,
        pod_name: str,
        container: str | None = None,
    ) -> int:
        """Cancel the current stream and follow ``pod_name``'s logs.

        Returns:
            Generation tag carried by the new stream's events.
        """
        return self._replace(
            lambda generation: self._run(client_source, namespace, pod_name, container, generation),
            "logs",
        )

    async def _run(
        self,
        client_source: ClientSource,
        namespace: str,
        pod_name: str,
        container: str | None,
        generation: int,
    ) -> None:
        client = await client_source()
        if client is None:
            self._bus.send(LogStreamEnded(generation))
            return

        stream = None
        try:
            stream = await asyncio.to_thread(
                self._accessor.stream_logs, client, namespace, pod_name, container
            )
            lines = iter(stream)
            while True:
                line = await asyncio.to_thread(next, lines, _END)
                if line is _END:
                    break
                self._bus.send(LogLine(line, generation))
            self._bus.send(LogStreamEnded(generation))
        except asyncio.CancelledError:
            logger.debug("log_stream_cancelled", pod=pod_name, namespace=namespace)
            raise
        except Exception as e:
            logger.warning("log_stream_error", pod=pod_name, namespace=namespace, error=str(e))
            self._bus.send(ErrorEvent(f"Log stream error: {e}"))
        finally:
            if stream is not None:
                stream.close()
