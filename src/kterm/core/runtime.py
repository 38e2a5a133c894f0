"""The update/draw loop tying state, bus and background work together."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Protocol, TypeVar

import structlog

from kterm.core.bus import EventBus
from kterm.core.dispatcher import ActionDispatcher, SharedClient
from kterm.core.events import AppEvent, ContextSwitchFailed, KeyPress, NamespacesLoaded
from kterm.core.search import SearchEngine
from kterm.core.state import AppState, InputAction
from kterm.core.types import SearchView
from kterm.core.watch import LogStreamManager, WatchManager
from kterm.utils.editor import SubprocessLauncher

if TYPE_CHECKING:
    from kterm.core.accessor import ClusterAccessor
    from kterm.integrations.kubernetes.config import DashboardConfig

logger = structlog.get_logger()

T = TypeVar("T")


class TerminalHost(Protocol):
    """The UI side of the runtime: draws state and lends out the terminal."""

    def draw(self, state: AppState) -> None: ...

    def release_terminal(self) -> AbstractContextManager[None]: ...

    def exit(self) -> None: ...


class Runtime:
    """Owns the state and runs the single-consumer event loop.

    Each iteration draws, waits for one event and processes it to
    completion. Key presses go through :meth:`AppState.handle_input` and the
    returned action starts background work; every other event is folded in
    with :meth:`AppState.apply`.

    Args:
        accessor: Cluster operations.
        host: Terminal host drawing the UI.
        config: Dashboard configuration, used for the editor and pager.
        bus: Event bus; a new one is created when omitted.
        launcher: Editor/pager launcher; a new one is created when omitted.
    """

    def __init__(
        self,
        accessor: ClusterAccessor,
        host: TerminalHost,
        config: DashboardConfig | None = None,
        bus: EventBus | None = None,
        launcher: SubprocessLauncher | None = None,
    ) -> None:
        self.state = AppState()
        self.bus = bus or EventBus()
        self._host = host
        self._launcher = launcher or SubprocessLauncher(config)
        self._shared = SharedClient()
        self._watch = WatchManager(accessor, self.bus)
        self._logs = LogStreamManager(accessor, self.bus)
        self._search = SearchEngine(accessor, self.bus)
        self._dispatcher = ActionDispatcher(accessor, self.bus, self._shared, self._logs)
        self._handlers: dict[InputAction, Callable[[], None]] = {
            InputAction.CONTEXT_CHANGED: self._on_context_changed,
            InputAction.NAMESPACE_CHANGED: self._restart_watch,
            InputAction.RESOURCE_TYPE_CHANGED: self._restart_watch,
            InputAction.DESCRIBE: self._on_describe,
            InputAction.STREAM_LOGS: self._on_stream_logs,
            InputAction.STOP_LOGS: self._on_stop_logs,
            InputAction.DELETE: self._on_delete,
            InputAction.RESTART: self._on_restart,
            InputAction.EDIT: self._on_edit,
            InputAction.OPEN_LOGS_IN_EDITOR: lambda: self._on_view_logs(pager=False),
            InputAction.OPEN_LOGS_IN_PAGER: lambda: self._on_view_logs(pager=True),
            InputAction.START_SEARCH: self._on_start_search,
            InputAction.SEARCH_DESCRIBE: self._on_search_describe,
            InputAction.SEARCH_STREAM_LOGS: self._on_search_stream_logs,
        }

    @property
    def watch(self) -> WatchManager:
        return self._watch

    @property
    def logs(self) -> LogStreamManager:
        return self._logs

    @property
    def search(self) -> SearchEngine:
        return self._search

    @property
    def dispatcher(self) -> ActionDispatcher:
        return self._dispatcher

    async def run(self) -> None:
        """Run until the user quits, then release every background task."""
        logger.info("runtime_started")
        self.bus.start()
        self._dispatcher.bootstrap()
        try:
            while not self.state.should_quit:
                self._host.draw(self.state)
                event = await self.bus.next()
                self.handle_event(event)
        finally:
            await self.shutdown()
        logger.info("runtime_stopped")
        self._host.exit()

    async def shutdown(self) -> None:
        self._watch.cancel()
        self._logs.cancel()
        self._search.cancel()
        await self._dispatcher.cancel_all()
        await self.bus.close()

    # =========================================================================
    # Event handling
    # =========================================================================

    def handle_event(self, event: AppEvent) -> None:
        """Process one event to completion."""
        if isinstance(event, KeyPress):
            was_searching = isinstance(self.state.view_mode, SearchView)
            action = self.state.handle_input(event)
            self.perform(action)
            if was_searching and not self.state.in_search_flow():
                self._search.cancel()
            return

        self.state.apply(event)
        if isinstance(event, (NamespacesLoaded, ContextSwitchFailed)):
            self._restart_watch()

    def perform(self, action: InputAction) -> None:
        """Start the background work requested by ``action``."""
        handler = self._handlers.get(action)
        if handler is not None:
            logger.debug("input_action", action=action.value)
            handler()

    def _restart_watch(self) -> None:
        self._watch.cancel()
        self.state.begin_resource_reload()
        self.state.watch_generation = self._watch.start(
            self._shared.handle, self.state.current_namespace, self.state.resource_type
        )

    def _on_context_changed(self) -> None:
        self._watch.cancel()
        self.state.begin_resource_reload(self._watch.generation)
        self._dispatcher.switch_context(self.state.current_context)

    def _on_describe(self) -> None:
        item = self.state.selected_resource()
        if item is not None:
            self._dispatcher.describe(item, self.state.resource_type)

    def _on_stream_logs(self) -> None:
        item = self.state.selected_resource()
        if item is not None:
            self.state.begin_log_stream(self._dispatcher.stream_logs(item))

    def _on_stop_logs(self) -> None:
        self._logs.cancel()
        self.state.log_generation = self._logs.generation

    def _on_delete(self) -> None:
        item = self.state.selected_resource()
        if item is not None:
            self._dispatcher.delete(item, self.state.resource_type)

    def _on_restart(self) -> None:
        item = self.state.selected_resource()
        if item is not None:
            self._dispatcher.restart(item, self.state.resource_type)

    def _on_edit(self) -> None:
        item = self.state.selected_resource()
        if item is None:
            return
        resource_type = self.state.resource_type
        edited = self._hand_over_terminal(lambda: self._launcher.edit(item.raw_definition))
        if edited is None:
            logger.debug("edit_no_change", name=item.name)
            return
        self._dispatcher.apply(item, resource_type, edited)

    def _on_view_logs(self, pager: bool) -> None:
        if not self.state.log_lines:
            return
        lines = list(self.state.log_lines)
        self._hand_over_terminal(lambda: self._launcher.view(lines, pager=pager))

    def _on_start_search(self) -> None:
        if self.state.contexts:
            self.state.begin_search_scan(self._search.start(list(self.state.contexts)))

    def _on_search_describe(self) -> None:
        result = self.state.selected_search_result()
        if result is not None:
            self._dispatcher.describe_in_context(result.context, result.resource, result.resource_type)

    def _on_search_stream_logs(self) -> None:
        result = self.state.selected_search_result()
        if result is not None:
            generation = self._dispatcher.stream_logs_in_context(result.context, result.resource)
            self.state.begin_log_stream(generation)

    # =========================================================================
    # Terminal hand-over
    # =========================================================================

    def _hand_over_terminal(self, fn: Callable[[], T]) -> T:
        """Run ``fn`` while a child process owns the terminal.

        Terminal input is stopped and drained before the hand-over and
        drained again afterwards, so keys typed into the child never reach
        the dashboard.
        """
        self.bus.suspend()
        try:
            with self._host.release_terminal():
                return fn()
        finally:
            self.bus.resume()
