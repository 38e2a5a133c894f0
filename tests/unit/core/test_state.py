"""Unit tests for the dashboard state machine."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from kterm.core.events import (
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
from kterm.core.state import DETAIL_VISIBLE_LINES, ERROR_DISMISS_TICKS, AppState, InputAction
from kterm.core.types import (
    ConfirmAction,
    ConfirmView,
    DetailView,
    Focus,
    ListView,
    LogsView,
    ResourceItem,
    ResourceType,
    SearchView,
)

NAMED_KEYS = {"down", "up", "left", "right", "tab", "shift+tab", "enter", "escape", "backspace", "ctrl+c", "ctrl+f"}


def key(name: str) -> KeyPress:
    if name in NAMED_KEYS:
        return KeyPress(name)
    return KeyPress(name, name)


def press(state: AppState, *names: str) -> list[InputAction]:
    return [state.handle_input(key(name)) for name in names]


@pytest.fixture
def state() -> AppState:
    return AppState()


@pytest.fixture
def list_state(item_factory: Callable[..., ResourceItem]) -> AppState:
    """State with three pods and the resource list focused."""
    st = AppState()
    st.apply(ContextsLoaded(("kind-dev", "prod", "staging"), "kind-dev"))
    st.apply(NamespacesLoaded(("apps", "default")))
    st.apply(
        ResourcesUpdated(
            (item_factory("web-0", "apps"), item_factory("web-1", "apps"), item_factory("db-0", "apps"))
        )
    )
    st.focus = Focus.RESOURCE_LIST
    return st


# ============================================================================
# Initial state and derived values
# ============================================================================


class TestInitialState:
    """Tests for the initial state."""

    @pytest.mark.unit
    def test_defaults(self, state: AppState) -> None:
        assert state.view_mode == ListView()
        assert state.focus is Focus.CONTEXT_SELECTOR
        assert state.namespaces == ["default"]
        assert state.current_namespace == "default"
        assert state.current_context == ""
        assert state.resource_type is ResourceType.PODS
        assert state.selection == 0
        assert state.error_message is None
        assert not state.should_quit

    @pytest.mark.unit
    def test_resize_recorded(self, state: AppState) -> None:
        state.apply(Resize(120, 40))

        assert state.terminal_size == (120, 40)


# ============================================================================
# Focus and selectors
# ============================================================================


class TestFocusAndSelectors:
    """Tests for focus movement and the selector dropdowns."""

    @pytest.mark.unit
    def test_tab_cycles_four_focus_targets(self, state: AppState) -> None:
        seen = []
        for _ in range(4):
            state.handle_input(key("tab"))
            seen.append(state.focus)

        assert seen == [
            Focus.NAMESPACE_SELECTOR,
            Focus.RESOURCE_TYPE_SELECTOR,
            Focus.RESOURCE_LIST,
            Focus.CONTEXT_SELECTOR,
        ]

    @pytest.mark.unit
    def test_shift_tab_goes_back(self, state: AppState) -> None:
        state.handle_input(key("shift+tab"))

        assert state.focus is Focus.RESOURCE_LIST

    @pytest.mark.unit
    def test_escape_leaves_selector(self, state: AppState) -> None:
        state.handle_input(key("escape"))

        assert state.focus is Focus.RESOURCE_LIST

    @pytest.mark.unit
    def test_resource_type_cycles_three(self, state: AppState) -> None:
        state.focus = Focus.RESOURCE_TYPE_SELECTOR

        actions = press(state, "right", "right", "right")

        assert actions == [InputAction.RESOURCE_TYPE_CHANGED] * 3
        assert state.resource_type is ResourceType.PODS

    @pytest.mark.unit
    def test_left_cycles_backwards(self, state: AppState) -> None:
        state.focus = Focus.RESOURCE_TYPE_SELECTOR

        press(state, "left")

        assert state.resource_type is ResourceType.STATEFUL_SETS

    @pytest.mark.unit
    def test_dropdown_typing_filters(self, list_state: AppState) -> None:
        list_state.focus = Focus.CONTEXT_SELECTOR
        list_state.dropdown_open()

        press(list_state, "p", "r")

        assert list_state.dropdown_query == "pr"
        assert [list_state.contexts[i] for i in list_state.dropdown_filtered] == ["prod"]

    @pytest.mark.unit
    def test_dropdown_confirm_changes_context_and_advances(self, list_state: AppState) -> None:
        list_state.focus = Focus.CONTEXT_SELECTOR
        list_state.dropdown_open()

        actions = press(list_state, "s", "t", "enter")

        assert actions[-1] is InputAction.CONTEXT_CHANGED
        assert list_state.current_context == "staging"
        assert list_state.focus is Focus.NAMESPACE_SELECTOR
        assert list_state.dropdown_query == ""

    @pytest.mark.unit
    def test_confirming_current_value_is_no_change(self, list_state: AppState) -> None:
        list_state.focus = Focus.CONTEXT_SELECTOR
        list_state.dropdown_open()

        assert list_state.handle_input(key("enter")) is InputAction.NONE
        assert list_state.focus is Focus.NAMESPACE_SELECTOR

    @pytest.mark.unit
    def test_namespace_change(self, list_state: AppState) -> None:
        list_state.focus = Focus.NAMESPACE_SELECTOR
        list_state.dropdown_open()

        actions = press(list_state, "down", "enter")

        assert actions[-1] is InputAction.NAMESPACE_CHANGED
        assert list_state.current_namespace == "default"

    @pytest.mark.unit
    def test_dropdown_navigation_wraps(self, list_state: AppState) -> None:
        list_state.focus = Focus.CONTEXT_SELECTOR
        list_state.dropdown_open()

        press(list_state, "up")

        assert list_state.dropdown_selected == 2

    @pytest.mark.unit
    def test_backspace_widens_filter(self, list_state: AppState) -> None:
        list_state.focus = Focus.CONTEXT_SELECTOR
        list_state.dropdown_open()

        press(list_state, "x", "x")
        assert list_state.dropdown_filtered == []
        press(list_state, "backspace", "backspace")

        assert list_state.dropdown_filtered == [0, 1, 2]


# ============================================================================
# Resource list
# ============================================================================


class TestResourceList:
    """Tests for list navigation and actions."""

    @pytest.mark.unit
    def test_down_wraps_after_three(self, list_state: AppState) -> None:
        seen = []
        for _ in range(3):
            list_state.handle_input(key("down"))
            seen.append(list_state.selection)

        assert seen == [1, 2, 0]

    @pytest.mark.unit
    def test_up_wraps_to_last(self, list_state: AppState) -> None:
        press(list_state, "k")

        assert list_state.selection == 2

    @pytest.mark.unit
    def test_navigation_on_empty_list(self, state: AppState) -> None:
        state.focus = Focus.RESOURCE_LIST

        press(state, "down", "up", "j")

        assert state.selection == 0
        assert state.selected_resource() is None

    @pytest.mark.unit
    def test_enter_opens_detail(self, list_state: AppState) -> None:
        assert list_state.handle_input(key("enter")) is InputAction.DESCRIBE
        assert list_state.view_mode == DetailView()
        assert list_state.loading

        list_state.apply(DetailLoaded("Name: web-0"))

        assert list_state.detail_text == "Name: web-0"
        assert not list_state.loading

    @pytest.mark.unit
    def test_enter_on_empty_list_does_nothing(self, state: AppState) -> None:
        state.focus = Focus.RESOURCE_LIST

        assert state.handle_input(key("enter")) is InputAction.NONE
        assert state.view_mode == ListView()

    @pytest.mark.unit
    def test_delete_confirmed(self, list_state: AppState) -> None:
        assert list_state.handle_input(key("d")) is InputAction.NONE
        assert list_state.view_mode == ConfirmView(ConfirmAction.DELETE)

        assert list_state.handle_input(key("y")) is InputAction.DELETE
        assert list_state.view_mode == ListView()

    @pytest.mark.unit
    def test_delete_cancelled_by_other_key(self, list_state: AppState) -> None:
        actions = press(list_state, "d", "n")

        assert actions == [InputAction.NONE, InputAction.NONE]
        assert list_state.view_mode == ListView()

    @pytest.mark.unit
    def test_restart_confirmed_with_uppercase(self, list_state: AppState) -> None:
        actions = press(list_state, "r", "Y")

        assert actions[-1] is InputAction.RESTART

    @pytest.mark.unit
    def test_edit(self, list_state: AppState) -> None:
        assert list_state.handle_input(key("e")) is InputAction.EDIT
        assert list_state.view_mode == ListView()

    @pytest.mark.unit
    def test_logs_for_pods(self, list_state: AppState) -> None:
        list_state.log_lines = ["old"]

        assert list_state.handle_input(key("l")) is InputAction.STREAM_LOGS
        assert list_state.view_mode == LogsView()
        assert list_state.log_lines == []
        assert list_state.log_follow

    @pytest.mark.unit
    def test_no_logs_for_pvcs(self, list_state: AppState) -> None:
        list_state.resource_type = ResourceType.PERSISTENT_VOLUME_CLAIMS

        assert list_state.handle_input(key("l")) is InputAction.NONE
        assert list_state.view_mode == ListView()

    @pytest.mark.unit
    def test_q_quits_from_list(self, list_state: AppState) -> None:
        press(list_state, "q")

        assert list_state.should_quit

    @pytest.mark.unit
    def test_ctrl_c_quits_anywhere(self, list_state: AppState) -> None:
        press(list_state, "d", "ctrl+c")

        assert list_state.should_quit

    @pytest.mark.unit
    def test_update_clamps_selection(
        self, list_state: AppState, item_factory: Callable[..., ResourceItem]
    ) -> None:
        list_state.selection = 2

        list_state.apply(ResourcesUpdated((item_factory("web-0", "apps"),)))

        assert list_state.selection == 0

    @pytest.mark.unit
    def test_empty_update_resets_selection(self, list_state: AppState) -> None:
        list_state.selection = 2

        list_state.apply(ResourcesUpdated(()))

        assert list_state.selection == 0
        assert list_state.selected_resource() is None


# ============================================================================
# Filter
# ============================================================================


class TestFilter:
    """Tests for the name filter."""

    @pytest.mark.unit
    def test_typing_filters_case_insensitively(self, list_state: AppState) -> None:
        press(list_state, "/", "W", "E")

        assert list_state.filter_active
        assert list_state.filter == "WE"
        assert [item.name for item in list_state.filtered_resources()] == ["web-0", "web-1"]

    @pytest.mark.unit
    def test_filter_captures_action_keys(self, list_state: AppState) -> None:
        actions = press(list_state, "/", "d", "q")

        assert actions == [InputAction.NONE] * 3
        assert list_state.view_mode == ListView()
        assert not list_state.should_quit
        assert list_state.filter == "dq"

    @pytest.mark.unit
    def test_enter_keeps_filter_and_resets_selection(self, list_state: AppState) -> None:
        list_state.selection = 2

        press(list_state, "/", "d", "b", "enter")

        assert not list_state.filter_active
        assert list_state.filter == "db"
        assert list_state.selection == 0
        assert list_state.selected_resource().name == "db-0"

    @pytest.mark.unit
    def test_backspace(self, list_state: AppState) -> None:
        press(list_state, "/", "d", "b", "backspace")

        assert list_state.filter == "d"

    @pytest.mark.unit
    def test_slash_starts_a_new_filter(self, list_state: AppState) -> None:
        press(list_state, "/", "d", "escape", "/")

        assert list_state.filter == ""


# ============================================================================
# Detail and logs
# ============================================================================


class TestDetailView:
    """Tests for the detail view."""

    @pytest.mark.unit
    def test_scrolling(self, list_state: AppState) -> None:
        press(list_state, "enter")
        list_state.apply(DetailLoaded("\n".join(f"line {i}" for i in range(25))))

        press(list_state, "j", "j", "k")
        assert list_state.detail_scroll == 1

        press(list_state, "G")
        assert list_state.detail_scroll == 25 - DETAIL_VISIBLE_LINES

        press(list_state, "g", "up")
        assert list_state.detail_scroll == 0

    @pytest.mark.unit
    def test_escape_returns_to_list(self, list_state: AppState) -> None:
        press(list_state, "enter", "escape")

        assert list_state.view_mode == ListView()

    @pytest.mark.unit
    def test_actions_from_detail(self, list_state: AppState) -> None:
        press(list_state, "enter")

        assert list_state.handle_input(key("d")) is InputAction.NONE
        assert list_state.view_mode == ConfirmView(ConfirmAction.DELETE)


class TestLogsView:
    """Tests for the logs view."""

    @pytest.fixture
    def logs_state(self, list_state: AppState) -> AppState:
        press(list_state, "l")
        list_state.begin_log_stream(3)
        for i in range(30):
            list_state.apply(LogLine(f"line {i}", generation=3))
        return list_state

    @pytest.mark.unit
    def test_lines_appended(self, logs_state: AppState) -> None:
        assert len(logs_state.log_lines) == 30
        assert not logs_state.loading

    @pytest.mark.unit
    def test_stale_lines_dropped(self, logs_state: AppState) -> None:
        logs_state.apply(LogLine("old stream", generation=2))
        logs_state.apply(LogStreamEnded(generation=2))

        assert logs_state.log_lines[-1] == "line 29"

    @pytest.mark.unit
    def test_follow_toggle_and_scroll(self, logs_state: AppState) -> None:
        press(logs_state, "f")
        assert not logs_state.log_follow

        press(logs_state, "G")
        assert logs_state.log_follow
        assert logs_state.log_scroll == 30 - DETAIL_VISIBLE_LINES

        press(logs_state, "k")
        assert not logs_state.log_follow
        assert logs_state.log_scroll == 30 - DETAIL_VISIBLE_LINES - 1

        press(logs_state, "g")
        assert logs_state.log_scroll == 0

    @pytest.mark.unit
    def test_open_in_editor_and_pager(self, logs_state: AppState) -> None:
        assert press(logs_state, "o", "O") == [
            InputAction.OPEN_LOGS_IN_EDITOR,
            InputAction.OPEN_LOGS_IN_PAGER,
        ]

    @pytest.mark.unit
    def test_escape_stops_stream(self, logs_state: AppState) -> None:
        assert logs_state.handle_input(key("escape")) is InputAction.STOP_LOGS
        assert logs_state.view_mode == ListView()


# ============================================================================
# Events from background tasks
# ============================================================================


class TestEvents:
    """Tests for applying task results."""

    @pytest.mark.unit
    def test_stale_resources_dropped(
        self, state: AppState, item_factory: Callable[..., ResourceItem]
    ) -> None:
        state.begin_resource_reload(watch_generation=2)

        state.apply(ResourcesUpdated((item_factory("old"),), generation=1))
        assert state.resources == []
        assert state.loading

        state.apply(ResourcesUpdated((item_factory("new"),), generation=2))
        assert [item.name for item in state.resources] == ["new"]
        assert not state.loading

    @pytest.mark.unit
    def test_namespaces_loaded_selects_preferred(self, state: AppState) -> None:
        state.apply(NamespacesLoaded(("apps", "default", "web"), preferred="web"))

        assert state.current_namespace == "web"

    @pytest.mark.unit
    def test_empty_namespaces_fall_back_to_default(self, state: AppState) -> None:
        state.apply(NamespacesLoaded(()))

        assert state.namespaces == ["default"]

    @pytest.mark.unit
    def test_contexts_loaded_refreshes_dropdown(self, state: AppState) -> None:
        state.apply(ContextsLoaded(("a", "b"), "b"))

        assert state.current_context == "b"
        assert state.dropdown_filtered == [0, 1]

    @pytest.mark.unit
    def test_failed_switch_restores_context(self, state: AppState) -> None:
        state.apply(ContextsLoaded(("a", "b"), "a"))
        state.selected_context = 1
        state.loading = True

        state.apply(ContextSwitchFailed("a"))

        assert state.current_context == "a"
        assert not state.loading

    @pytest.mark.unit
    def test_error_visible_for_twenty_ticks(self, state: AppState) -> None:
        state.apply(ErrorEvent("Watch error: boom"))

        for _ in range(ERROR_DISMISS_TICKS):
            state.apply(Tick())
        assert state.error_message == "Watch error: boom"

        state.apply(Tick())
        assert state.error_message is None

    @pytest.mark.unit
    def test_new_error_restarts_countdown(self, state: AppState) -> None:
        state.apply(ErrorEvent("first"))
        for _ in range(ERROR_DISMISS_TICKS):
            state.apply(Tick())

        state.apply(ErrorEvent("second"))
        state.apply(Tick())

        assert state.error_message == "second"


# ============================================================================
# Search
# ============================================================================


class TestSearch:
    """Tests for cross-cluster search."""

    @pytest.fixture
    def search_state(self, list_state: AppState, item_factory: Callable[..., ResourceItem]) -> AppState:
        assert list_state.handle_input(key("ctrl+f")) is InputAction.START_SEARCH
        list_state.begin_search_scan(1)
        list_state.apply(
            SearchResultsBatch(
                "kind-dev",
                ResourceType.PODS,
                (item_factory("op-geth-node-0", "apps"), item_factory("web-0", "apps")),
                generation=1,
            )
        )
        list_state.apply(
            SearchResultsBatch(
                "prod",
                ResourceType.PERSISTENT_VOLUME_CLAIMS,
                (item_factory("data-op-geth-node-0", "web", "Bound"),),
                generation=1,
            )
        )
        return list_state

    @pytest.mark.unit
    def test_enter_search(self, list_state: AppState) -> None:
        list_state.handle_input(key("ctrl+f"))

        assert list_state.view_mode == SearchView()
        assert list_state.search_loading
        assert list_state.search_contexts_total == 3
        assert list_state.search_selection is None

    @pytest.mark.unit
    def test_results_accumulate(self, search_state: AppState) -> None:
        assert len(search_state.search_results) == 3
        assert search_state.search_selection == 0

    @pytest.mark.unit
    def test_stale_batch_dropped(
        self, search_state: AppState, item_factory: Callable[..., ResourceItem]
    ) -> None:
        search_state.apply(SearchResultsBatch("prod", ResourceType.PODS, (item_factory("x"),), generation=0))

        assert len(search_state.search_results) == 3

    @pytest.mark.unit
    def test_query_ranks_results(self, search_state: AppState) -> None:
        press(search_state, "g", "e", "t", "h")

        ranked = [search_state.search_results[i].resource.name for i in search_state.search_filtered]
        assert ranked == ["op-geth-node-0", "data-op-geth-node-0"]

    @pytest.mark.unit
    def test_search_captures_action_keys(self, search_state: AppState) -> None:
        press(search_state, "q", "d")

        assert search_state.search_query == "qd"
        assert not search_state.should_quit

    @pytest.mark.unit
    def test_scan_completion(self, search_state: AppState) -> None:
        for context in ("kind-dev", "prod"):
            search_state.apply(SearchScanComplete(context, generation=1))
        assert search_state.search_loading

        search_state.apply(SearchScanComplete("staging", generation=1))
        assert not search_state.search_loading

    @pytest.mark.unit
    def test_navigation_wraps(self, search_state: AppState) -> None:
        press(search_state, "up")
        assert search_state.search_selection == 2

        press(search_state, "tab")
        assert search_state.search_selection == 0

    @pytest.mark.unit
    def test_describe_and_back(self, search_state: AppState) -> None:
        assert search_state.handle_input(key("enter")) is InputAction.SEARCH_DESCRIBE
        assert search_state.view_mode == DetailView()
        assert search_state.entered_from_search

        press(search_state, "escape")
        assert search_state.view_mode == SearchView()

    @pytest.mark.unit
    def test_logs_from_search_detail(self, search_state: AppState) -> None:
        press(search_state, "enter")

        assert search_state.handle_input(key("l")) is InputAction.SEARCH_STREAM_LOGS
        assert search_state.view_mode == LogsView()
        assert search_state.handle_input(key("escape")) is InputAction.STOP_LOGS
        assert search_state.view_mode == SearchView()

    @pytest.mark.unit
    def test_no_logs_for_pvc_result(self, search_state: AppState) -> None:
        press(search_state, "up", "enter")

        assert search_state.handle_input(key("l")) is InputAction.NONE
        assert search_state.view_mode == DetailView()

    @pytest.mark.unit
    def test_escape_returns_to_list(self, search_state: AppState) -> None:
        press(search_state, "escape")

        assert search_state.view_mode == ListView()
        assert not search_state.entered_from_search

    @pytest.mark.unit
    def test_results_ignored_after_leaving_search(
        self, search_state: AppState, item_factory: Callable[..., ResourceItem]
    ) -> None:
        press(search_state, "escape")

        search_state.apply(SearchResultsBatch("staging", ResourceType.PODS, (item_factory("x"),), generation=1))
        search_state.apply(SearchScanComplete("staging", generation=1))

        assert len(search_state.search_results) == 3
        assert search_state.search_contexts_done == 0

    @pytest.mark.unit
    def test_scan_finishes_while_result_detail_open(
        self, search_state: AppState, item_factory: Callable[..., ResourceItem]
    ) -> None:
        press(search_state, "g", "e", "t", "h", "down", "enter")
        assert search_state.view_mode == DetailView()
        assert search_state.selected_search_result().resource.name == "data-op-geth-node-0"

        search_state.apply(
            SearchResultsBatch("staging", ResourceType.PODS, (item_factory("geth", "apps"),), generation=1)
        )
        for context in ("kind-dev", "prod", "staging"):
            search_state.apply(SearchScanComplete(context, generation=1))

        # The better match ranks first, but the open result stays selected
        assert search_state.selected_search_result().resource.name == "data-op-geth-node-0"
        assert not search_state.search_loading

        press(search_state, "escape")
        assert search_state.view_mode == SearchView()
        assert len(search_state.search_results) == 4
        ranked = [search_state.search_results[i].resource.name for i in search_state.search_filtered]
        assert ranked == ["geth", "op-geth-node-0", "data-op-geth-node-0"]
