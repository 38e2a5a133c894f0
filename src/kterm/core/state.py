"""Dashboard state machine.

``AppState`` owns everything the renderer shows. It never performs I/O:
key presses come in through :meth:`AppState.handle_input`, which returns an
:class:`InputAction` telling the runtime which background operation to
start, and task results come in through :meth:`AppState.apply`.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from kterm.core.events import (
    AppEvent,
    ContextsLoaded,
    ContextSwitchFailed,
    DetailLoaded,
    ErrorEvent,
    KeyPress,
    LogLine,
    LogStreamEnded,
    NamespacesLoaded,
    Resize,
    ResourcesUpdated,
    SearchResultsBatch,
    SearchScanComplete,
    Tick,
)
from kterm.core.fuzzy import rank
from kterm.core.types import (
    LOGGABLE_TYPES,
    RESOURCE_TYPE_ORDER,
    ConfirmAction,
    ConfirmView,
    DetailView,
    Focus,
    ListView,
    LogsView,
    ResourceItem,
    ResourceType,
    SearchResult,
    SearchView,
    ViewMode,
)

# Must match the height of the detail/log content area in the renderer
DETAIL_VISIBLE_LINES = 10

# 20 ticks at 250ms keeps an error on screen for about five seconds
ERROR_DISMISS_TICKS = 20

DEFAULT_NAMESPACE = "default"


class InputAction(Enum):
    """Background work requested by a key press."""

    NONE = "none"
    CONTEXT_CHANGED = "context_changed"
    NAMESPACE_CHANGED = "namespace_changed"
    RESOURCE_TYPE_CHANGED = "resource_type_changed"
    DESCRIBE = "describe"
    STREAM_LOGS = "stream_logs"
    STOP_LOGS = "stop_logs"
    DELETE = "delete"
    RESTART = "restart"
    EDIT = "edit"
    OPEN_LOGS_IN_EDITOR = "open_logs_in_editor"
    OPEN_LOGS_IN_PAGER = "open_logs_in_pager"
    START_SEARCH = "start_search"
    SEARCH_DESCRIBE = "search_describe"
    SEARCH_STREAM_LOGS = "search_stream_logs"


_CONFIRM_RESULTS = {
    ConfirmAction.DELETE: InputAction.DELETE,
    ConfirmAction.RESTART: InputAction.RESTART,
}


def _wrap_next(index: int | None, length: int) -> int | None:
    if length == 0:
        return index
    return 0 if index is None else (index + 1) % length


def _wrap_prev(index: int | None, length: int) -> int | None:
    if length == 0:
        return index
    return 0 if index is None else (index - 1) % length


class AppState:
    """All UI-visible state plus the key handling that mutates it."""

    def __init__(self) -> None:
        # Navigation
        self.contexts: list[str] = []
        self.selected_context = 0
        self.namespaces: list[str] = [DEFAULT_NAMESPACE]
        self.selected_namespace = 0
        self.resource_type = ResourceType.PODS
        self.focus = Focus.CONTEXT_SELECTOR

        # Resource list
        self.resources: list[ResourceItem] = []
        self.selection: int | None = 0
        self.loading = False

        # Detail view
        self.detail_text = ""
        self.detail_scroll = 0

        # Logs view
        self.log_lines: list[str] = []
        self.log_scroll = 0
        self.log_follow = True

        self.view_mode: ViewMode = ListView()

        # Name filter for the resource list
        self.filter = ""
        self.filter_active = False

        # Error banner
        self.error_message: str | None = None
        self.error_ticks = 0

        # Selector dropdown
        self.dropdown_query = ""
        self.dropdown_filtered: list[int] = []
        self.dropdown_selected = 0

        # Cross-cluster search
        self.search_query = ""
        self.search_results: list[SearchResult] = []
        self.search_filtered: list[int] = []
        self.search_selection: int | None = None
        self.search_loading = False
        self.search_contexts_total = 0
        self.search_contexts_done = 0
        self.entered_from_search = False

        # Generations the state accepts from subscription-like producers
        self.watch_generation = 0
        self.log_generation = 0
        self.search_generation = 0

        self.terminal_size: tuple[int, int] | None = None
        self.should_quit = False

        self.dropdown_open()

    # =========================================================================
    # Derived values
    # =========================================================================

    @property
    def current_context(self) -> str:
        if 0 <= self.selected_context < len(self.contexts):
            return self.contexts[self.selected_context]
        return ""

    @property
    def current_namespace(self) -> str:
        if 0 <= self.selected_namespace < len(self.namespaces):
            return self.namespaces[self.selected_namespace]
        return ""

    def filtered_resources(self) -> list[ResourceItem]:
        """Resources whose name contains the filter, case-insensitively."""
        if not self.filter:
            return list(self.resources)
        needle = self.filter.lower()
        return [item for item in self.resources if needle in item.name.lower()]

    def selected_resource(self) -> ResourceItem | None:
        if self.selection is None:
            return None
        items = self.filtered_resources()
        if 0 <= self.selection < len(items):
            return items[self.selection]
        return None

    def selected_search_result(self) -> SearchResult | None:
        if self.search_selection is None:
            return None
        if not 0 <= self.search_selection < len(self.search_filtered):
            return None
        return self.search_results[self.search_filtered[self.search_selection]]

    def dropdown_items(self) -> list[str]:
        """Items of the focused selector."""
        if self.focus is Focus.CONTEXT_SELECTOR:
            return list(self.contexts)
        if self.focus is Focus.NAMESPACE_SELECTOR:
            return list(self.namespaces)
        if self.focus is Focus.RESOURCE_TYPE_SELECTOR:
            return [rt.display_name for rt in RESOURCE_TYPE_ORDER]
        return []

    def detail_line_count(self) -> int:
        return len(self.detail_text.splitlines())

    # =========================================================================
    # Mutators used by the runtime
    # =========================================================================

    def set_error(self, message: str) -> None:
        self.error_message = message
        self.error_ticks = 0

    def handle_tick(self) -> None:
        if self.error_message is None:
            return
        self.error_ticks += 1
        if self.error_ticks > ERROR_DISMISS_TICKS:
            self.error_message = None
            self.error_ticks = 0

    def begin_resource_reload(self, watch_generation: int | None = None) -> None:
        """Clear the list and show loading until a new snapshot arrives."""
        self.resources = []
        self.selection = 0
        self.loading = True
        if watch_generation is not None:
            self.watch_generation = watch_generation

    def begin_log_stream(self, generation: int) -> None:
        self.log_generation = generation
        self.loading = True

    def begin_search_scan(self, generation: int) -> None:
        self.search_generation = generation

    # =========================================================================
    # Event application
    # =========================================================================

    def apply(self, event: AppEvent) -> None:
        """Fold a non-key event into the state."""
        handler = self._event_handlers().get(type(event))
        if handler is not None:
            handler(event)

    def _event_handlers(self) -> dict[type, Callable[..., None]]:
        return {
            Tick: lambda _event: self.handle_tick(),
            Resize: self._on_resize,
            ResourcesUpdated: self._on_resources_updated,
            NamespacesLoaded: self._on_namespaces_loaded,
            DetailLoaded: self._on_detail_loaded,
            LogLine: self._on_log_line,
            LogStreamEnded: self._on_log_stream_ended,
            ContextsLoaded: self._on_contexts_loaded,
            ContextSwitchFailed: self._on_context_switch_failed,
            ErrorEvent: self._on_error,
            SearchResultsBatch: self._on_search_batch,
            SearchScanComplete: self._on_search_complete,
        }

    def _on_resize(self, event: Resize) -> None:
        self.terminal_size = (event.width, event.height)

    def _on_resources_updated(self, event: ResourcesUpdated) -> None:
        if event.generation != self.watch_generation:
            return
        self.resources = list(event.items)
        self.loading = False
        length = len(self.filtered_resources())
        if self.selection is None:
            return
        if length == 0:
            self.selection = 0
        elif self.selection >= length:
            self.selection = length - 1

    def _on_namespaces_loaded(self, event: NamespacesLoaded) -> None:
        self.namespaces = list(event.namespaces) or [DEFAULT_NAMESPACE]
        self.selected_namespace = 0
        if event.preferred in self.namespaces:
            self.selected_namespace = self.namespaces.index(event.preferred)
        self.loading = False
        if self.focus is Focus.NAMESPACE_SELECTOR:
            self.dropdown_open()

    def _on_detail_loaded(self, event: DetailLoaded) -> None:
        self.detail_text = event.text
        self.loading = False

    def _on_log_line(self, event: LogLine) -> None:
        if event.generation != self.log_generation:
            return
        self.log_lines.append(event.line)
        self.loading = False

    def _on_log_stream_ended(self, event: LogStreamEnded) -> None:
        if event.generation == self.log_generation:
            self.loading = False

    def _on_contexts_loaded(self, event: ContextsLoaded) -> None:
        self.contexts = list(event.contexts)
        if event.current in self.contexts:
            self.selected_context = self.contexts.index(event.current)
        if self.focus is Focus.CONTEXT_SELECTOR:
            self.dropdown_open()

    def _on_context_switch_failed(self, event: ContextSwitchFailed) -> None:
        if event.active in self.contexts:
            self.selected_context = self.contexts.index(event.active)
        self.loading = False

    def _on_error(self, event: ErrorEvent) -> None:
        self.set_error(event.message)
        self.loading = False

    def in_search_flow(self) -> bool:
        """True in the search overlay and in views opened from one of its results."""
        return isinstance(self.view_mode, SearchView) or self.entered_from_search

    def _on_search_batch(self, event: SearchResultsBatch) -> None:
        if not self.in_search_flow() or event.generation != self.search_generation:
            return
        self.search_results.extend(
            SearchResult(resource=item, context=event.context, resource_type=event.resource_type)
            for item in event.items
        )
        if isinstance(self.view_mode, SearchView):
            self.update_search_filter()
            return
        # A result's detail or logs is open; keep that result selected
        previous = self.selected_search_result()
        self.search_filtered = rank(
            self.search_query, [result.label for result in self.search_results]
        )
        if previous is None:
            return
        for position, index in enumerate(self.search_filtered):
            if self.search_results[index] is previous:
                self.search_selection = position
                break

    def _on_search_complete(self, event: SearchScanComplete) -> None:
        if not self.in_search_flow() or event.generation != self.search_generation:
            return
        self.search_contexts_done += 1
        if self.search_contexts_done >= self.search_contexts_total:
            self.search_loading = False

    # =========================================================================
    # Filters
    # =========================================================================

    def dropdown_open(self) -> None:
        """Reset the selector query when a selector gains focus."""
        self.dropdown_query = ""
        self.dropdown_selected = 0
        self.update_dropdown_filter()

    def update_dropdown_filter(self) -> None:
        self.dropdown_filtered = rank(self.dropdown_query, self.dropdown_items())
        if not self.dropdown_filtered:
            self.dropdown_selected = 0
        else:
            self.dropdown_selected = min(self.dropdown_selected, len(self.dropdown_filtered) - 1)

    def update_search_filter(self) -> None:
        self.search_filtered = rank(
            self.search_query, [result.label for result in self.search_results]
        )
        self.search_selection = 0 if self.search_filtered else None

    # =========================================================================
    # Input handling
    # =========================================================================

    def handle_input(self, key: KeyPress) -> InputAction:
        """Apply a key press and return the background work it requests."""
        if key.key == "ctrl+c":
            self.should_quit = True
            return InputAction.NONE

        if key.key == "ctrl+f" and isinstance(self.view_mode, ListView):
            return self._enter_search()

        if self.filter_active:
            return self._handle_filter_input(key)

        if isinstance(self.view_mode, ConfirmView):
            return self._handle_confirm_input(key, self.view_mode.action)

        if isinstance(self.view_mode, ListView):
            if self.focus is Focus.RESOURCE_LIST:
                return self._handle_resource_list_input(key)
            return self._handle_selector_input(key)
        if isinstance(self.view_mode, DetailView):
            if self.entered_from_search:
                return self._handle_search_detail_input(key)
            return self._handle_detail_input(key)
        if isinstance(self.view_mode, LogsView):
            return self._handle_logs_input(key)
        if isinstance(self.view_mode, SearchView):
            return self._handle_search_input(key)
        return InputAction.NONE

    def _enter_search(self) -> InputAction:
        self.view_mode = SearchView()
        self.filter_active = False
        self.search_query = ""
        self.search_results = []
        self.search_filtered = []
        self.search_selection = None
        self.search_contexts_total = len(self.contexts)
        self.search_contexts_done = 0
        self.search_loading = self.search_contexts_total > 0
        self.entered_from_search = False
        return InputAction.START_SEARCH

    def _handle_filter_input(self, key: KeyPress) -> InputAction:
        if key.key == "escape":
            self.filter_active = False
        elif key.key == "enter":
            self.filter_active = False
            self.selection = 0
        elif key.key == "backspace":
            self.filter = self.filter[:-1]
            self.selection = 0
        elif key.char is not None:
            self.filter += key.char
            self.selection = 0
        return InputAction.NONE

    def _handle_confirm_input(self, key: KeyPress, action: ConfirmAction) -> InputAction:
        self.view_mode = ListView()
        if key.char in ("y", "Y"):
            return _CONFIRM_RESULTS[action]
        return InputAction.NONE

    def _set_focus(self, focus: Focus) -> None:
        self.focus = focus
        if focus.is_selector:
            self.dropdown_open()

    # -- resource list --------------------------------------------------------

    def _handle_resource_list_input(self, key: KeyPress) -> InputAction:
        if key.key in ("down", "up") or key.char in ("j", "k"):
            length = len(self.filtered_resources())
            if key.key == "down" or key.char == "j":
                self.selection = _wrap_next(self.selection, length)
            else:
                self.selection = _wrap_prev(self.selection, length)
            return InputAction.NONE
        if key.key == "tab":
            self._set_focus(self.focus.next())
            return InputAction.NONE
        if key.key == "shift+tab":
            self._set_focus(self.focus.prev())
            return InputAction.NONE
        if key.key == "enter":
            if self.selected_resource() is None:
                return InputAction.NONE
            self._open_detail()
            return InputAction.DESCRIBE
        if key.char == "q":
            self.should_quit = True
            return InputAction.NONE
        if key.char == "/":
            self.filter_active = True
            self.filter = ""
            return InputAction.NONE
        return self._handle_resource_action_key(key)

    def _handle_resource_action_key(self, key: KeyPress) -> InputAction:
        """Keys shared by the list and the detail view: l, d, r and e."""
        if self.selected_resource() is None:
            return InputAction.NONE
        if key.char == "l":
            if self.resource_type not in LOGGABLE_TYPES:
                return InputAction.NONE
            self._open_logs()
            return InputAction.STREAM_LOGS
        if key.char == "d":
            self.view_mode = ConfirmView(ConfirmAction.DELETE)
        elif key.char == "r":
            self.view_mode = ConfirmView(ConfirmAction.RESTART)
        elif key.char == "e":
            return InputAction.EDIT
        return InputAction.NONE

    def _open_detail(self) -> None:
        self.view_mode = DetailView()
        self.detail_scroll = 0
        self.detail_text = ""
        self.loading = True

    def _open_logs(self) -> None:
        self.view_mode = LogsView()
        self.log_lines = []
        self.log_scroll = 0
        self.log_follow = True
        self.loading = True

    # -- selectors ------------------------------------------------------------

    def _handle_selector_input(self, key: KeyPress) -> InputAction:
        if key.key == "escape":
            self.focus = Focus.RESOURCE_LIST
        elif key.key in ("enter", "tab"):
            return self._dropdown_confirm()
        elif key.key == "shift+tab":
            self._set_focus(self.focus.prev())
        elif key.key == "down":
            if self.dropdown_filtered:
                self.dropdown_selected = (self.dropdown_selected + 1) % len(self.dropdown_filtered)
        elif key.key == "up":
            if self.dropdown_filtered:
                self.dropdown_selected = (self.dropdown_selected - 1) % len(self.dropdown_filtered)
        elif key.key in ("left", "right"):
            return self._cycle_selector(1 if key.key == "right" else -1)
        elif key.key == "backspace":
            self.dropdown_query = self.dropdown_query[:-1]
            self.dropdown_selected = 0
            self.update_dropdown_filter()
        elif key.char is not None:
            self.dropdown_query += key.char
            self.dropdown_selected = 0
            self.update_dropdown_filter()
        return InputAction.NONE

    def _current_selector_index(self) -> int:
        if self.focus is Focus.CONTEXT_SELECTOR:
            return self.selected_context
        if self.focus is Focus.NAMESPACE_SELECTOR:
            return self.selected_namespace
        return RESOURCE_TYPE_ORDER.index(self.resource_type)

    def _select_in_focused(self, index: int) -> InputAction:
        """Point the focused selector at ``index``; report only real changes."""
        if self.focus is Focus.CONTEXT_SELECTOR:
            if index == self.selected_context:
                return InputAction.NONE
            self.selected_context = index
            return InputAction.CONTEXT_CHANGED
        if self.focus is Focus.NAMESPACE_SELECTOR:
            if index == self.selected_namespace:
                return InputAction.NONE
            self.selected_namespace = index
            return InputAction.NAMESPACE_CHANGED
        if self.focus is Focus.RESOURCE_TYPE_SELECTOR:
            new_type = RESOURCE_TYPE_ORDER[index]
            if new_type is self.resource_type:
                return InputAction.NONE
            self.resource_type = new_type
            return InputAction.RESOURCE_TYPE_CHANGED
        return InputAction.NONE

    def _cycle_selector(self, step: int) -> InputAction:
        length = len(self.dropdown_items())
        if length == 0:
            return InputAction.NONE
        return self._select_in_focused((self._current_selector_index() + step) % length)

    def _dropdown_confirm(self) -> InputAction:
        action = InputAction.NONE
        if self.dropdown_selected < len(self.dropdown_filtered):
            action = self._select_in_focused(self.dropdown_filtered[self.dropdown_selected])
        self._set_focus(self.focus.next())
        return action

    # -- detail ---------------------------------------------------------------

    def _handle_detail_scroll(self, key: KeyPress) -> bool:
        if key.key == "down" or key.char == "j":
            self.detail_scroll += 1
        elif key.key == "up" or key.char == "k":
            self.detail_scroll = max(0, self.detail_scroll - 1)
        elif key.char == "G":
            self.detail_scroll = max(0, self.detail_line_count() - DETAIL_VISIBLE_LINES)
        elif key.char == "g":
            self.detail_scroll = 0
        else:
            return False
        return True

    def _handle_detail_input(self, key: KeyPress) -> InputAction:
        if key.key == "escape" or key.char == "q":
            self.view_mode = ListView()
            return InputAction.NONE
        if self._handle_detail_scroll(key):
            return InputAction.NONE
        return self._handle_resource_action_key(key)

    def _handle_search_detail_input(self, key: KeyPress) -> InputAction:
        if key.key == "escape" or key.char == "q":
            self.view_mode = SearchView()
            return InputAction.NONE
        if self._handle_detail_scroll(key):
            return InputAction.NONE
        if key.char == "l":
            result = self.selected_search_result()
            if result is not None and result.resource_type in LOGGABLE_TYPES:
                self._open_logs()
                return InputAction.SEARCH_STREAM_LOGS
        return InputAction.NONE

    # -- logs -----------------------------------------------------------------

    def _handle_logs_input(self, key: KeyPress) -> InputAction:
        if key.key == "escape" or key.char == "q":
            self.view_mode = SearchView() if self.entered_from_search else ListView()
            return InputAction.STOP_LOGS
        if key.char == "f":
            self.log_follow = not self.log_follow
        elif key.char == "o":
            return InputAction.OPEN_LOGS_IN_EDITOR
        elif key.char == "O":
            return InputAction.OPEN_LOGS_IN_PAGER
        elif key.char == "G":
            self.log_scroll = max(0, len(self.log_lines) - DETAIL_VISIBLE_LINES)
            self.log_follow = True
        elif key.char == "g":
            self.log_scroll = 0
            self.log_follow = False
        elif key.key == "down" or key.char == "j":
            self.log_scroll += 1
            self.log_follow = False
        elif key.key == "up" or key.char == "k":
            self.log_scroll = max(0, self.log_scroll - 1)
            self.log_follow = False
        return InputAction.NONE

    # -- search ---------------------------------------------------------------

    def _handle_search_input(self, key: KeyPress) -> InputAction:
        if key.key == "escape":
            self.view_mode = ListView()
            self.entered_from_search = False
        elif key.key == "backspace":
            self.search_query = self.search_query[:-1]
            self.update_search_filter()
        elif key.key in ("down", "tab"):
            self.search_selection = _wrap_next(self.search_selection, len(self.search_filtered))
        elif key.key in ("up", "shift+tab"):
            self.search_selection = _wrap_prev(self.search_selection, len(self.search_filtered))
        elif key.key == "enter":
            if self.selected_search_result() is None:
                return InputAction.NONE
            self._open_detail()
            self.entered_from_search = True
            return InputAction.SEARCH_DESCRIBE
        elif key.char is not None:
            self.search_query += key.char
            self.update_search_filter()
        return InputAction.NONE
