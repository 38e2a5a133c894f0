"""Cross-cluster search: scatter one scan per context, gather batches on the bus."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from kterm.core.events import ErrorEvent, SearchResultsBatch, SearchScanComplete
from kterm.core.types import RESOURCE_TYPE_ORDER

if TYPE_CHECKING:
    from kterm.core.accessor import ClusterAccessor
    from kterm.core.bus import EventBus

logger = structlog.get_logger()


class SearchEngine:
    """Runs the scan behind the search view.

    Every context gets its own task. A task connects, lists each resource
    type across all namespaces in turn, sends one batch per type and always
    finishes with a completion event, even after errors.
    """

    def __init__(self, accessor: ClusterAccessor, bus: EventBus) -> None:
        self._accessor = accessor
        self._bus = bus
        self._tasks: list[asyncio.Task[None]] = []
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def running(self) -> int:
        """Number of context scans still in flight."""
        return sum(1 for task in self._tasks if not task.done())

    def start(self, contexts: list[str]) -> int:
        """Cancel any scan in progress and scan ``contexts``.

        Returns:
            Generation tag carried by this scan's events.
        """
        self.cancel()
        self._generation += 1
        generation = self._generation
        logger.debug("search_started", contexts=len(contexts), generation=generation)
        self._tasks = [
            asyncio.create_task(self._scan(context, generation), name=f"search-{context}")
            for context in contexts
        ]
        return generation

    def cancel(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()
        self._tasks = []

    async def _scan(self, context: str, generation: int) -> None:
        try:
            client = await asyncio.to_thread(self._accessor.connect, context)
        except Exception as e:
            logger.warning("search_connect_failed", context=context, error=str(e))
            self._bus.send(ErrorEvent(f"Connect to {context}: {e}"))
            self._bus.send(SearchScanComplete(context, generation))
            return

        for resource_type in RESOURCE_TYPE_ORDER:
            try:
                items = await asyncio.to_thread(self._accessor.list_all, client, resource_type)
            except Exception as e:
                logger.warning(
                    "search_list_failed",
                    context=context,
                    resource_type=resource_type.value,
                    error=str(e),
                )
                self._bus.send(ErrorEvent(f"Search {context}/{resource_type.display_name}: {e}"))
                continue
            self._bus.send(SearchResultsBatch(context, resource_type, tuple(items), generation))

        self._bus.send(SearchScanComplete(context, generation))
