"""Rich renderables for each part of the dashboard.

Everything here is a pure function of :class:`AppState`; the Textual host
redraws the whole dashboard from :func:`render_dashboard` after every event.
"""

from __future__ import annotations

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from kterm.core.state import DETAIL_VISIBLE_LINES, AppState
from kterm.core.types import (
    MISSING_VALUE,
    ConfirmAction,
    ConfirmView,
    DetailView,
    Focus,
    ListView,
    LogsView,
    ResourceType,
    SearchView,
)
from kterm.tui.theme import Colors, log_line_style, status_color

CURSOR = "█"
HIGHLIGHT_SYMBOL = "▶ "
DEFAULT_TERMINAL_HEIGHT = 24

# Header (3) + footer (1) + table borders and heading (3)
_CHROME_ROWS = 7
_DROPDOWN_ROWS = 8

LIST_WIDTH_RATIO = 35
DETAIL_WIDTH_RATIO = 65

# Relative column widths per resource type
COLUMN_RATIOS: dict[ResourceType, tuple[int, ...]] = {
    ResourceType.PODS: (30, 15, 15, 15, 25),
    ResourceType.PERSISTENT_VOLUME_CLAIMS: (25, 15, 25, 15, 20),
    ResourceType.STATEFUL_SETS: (40, 30, 30),
}

SEARCH_COLUMNS = (("NAME", 35), ("TYPE", 15), ("NAMESPACE", 25), ("CLUSTER", 25))

LIST_HINTS = (
    "q:Quit  Tab:Selector  j/k:Nav  Enter:Detail  l:Logs  d:Delete  r:Restart  "
    "e:Edit  /:Filter  Ctrl+F:Search"
)
FILTER_HINTS = "Esc:Cancel  Enter:Apply  Type to filter..."
SELECTOR_HINTS = "Esc:Close  Enter:Select  Up/Down:Nav  Left/Right:Cycle  Type to filter..."
DETAIL_HINTS = "Esc:Back  j/k:Scroll  e:Edit  l:Logs  d:Delete  r:Restart  g/G:Top/Bottom"
SEARCH_DETAIL_HINTS = "Esc:Back to search  j/k:Scroll  l:Logs  g/G:Top/Bottom"
LOGS_HINTS = "Esc:Back  f:Follow  j/k:Scroll  g/G:Top/Bottom  o:Editor  O:Pager"
SEARCH_LOGS_HINTS = "Esc:Back to search  f:Follow  j/k:Scroll  g/G:Top/Bottom  o:Editor  O:Pager"
CONFIRM_HINTS = "y:Confirm  Any other key:Cancel"
SEARCH_HINTS = "Esc:Back  Down/Up:Nav  Enter:Detail  Type to search..."


def _border(focused: bool) -> str:
    return Colors.BORDER_FOCUSED if focused else Colors.BORDER


# =============================================================================
# Header and dropdown
# =============================================================================


def _selector_panel(title: str, value: str, query: str | None) -> Panel:
    if query is not None:
        body = Text(f"{query}{CURSOR}")
    else:
        body = Text(value or MISSING_VALUE, style="dim", justify="center")
    return Panel(
        body,
        title=Text(f" {title} "),
        border_style=_border(query is not None),
        height=3,
    )


def render_header(state: AppState) -> Table:
    """Context, namespace and type selectors side by side."""
    query = state.dropdown_query if isinstance(state.view_mode, ListView) else None
    selectors = (
        ("Context", state.current_context, Focus.CONTEXT_SELECTOR),
        ("Namespace", state.current_namespace, Focus.NAMESPACE_SELECTOR),
        ("Type", state.resource_type.display_name, Focus.RESOURCE_TYPE_SELECTOR),
    )
    grid = Table.grid(expand=True)
    for ratio in (33, 34, 33):
        grid.add_column(ratio=ratio)
    grid.add_row(
        *(
            _selector_panel(title, value, query if state.focus is focus else None)
            for title, value, focus in selectors
        )
    )
    return grid


def dropdown_visible(state: AppState) -> bool:
    return isinstance(state.view_mode, ListView) and state.focus.is_selector and not state.filter_active


def render_dropdown(state: AppState) -> Panel:
    """Filtered items of the focused selector with the highlighted one marked."""
    items = state.dropdown_items()
    lines = Text()
    for position, index in enumerate(state.dropdown_filtered):
        name = items[index] if index < len(items) else "?"
        if position == state.dropdown_selected:
            lines.append(f"{HIGHLIGHT_SYMBOL}{name}", style="bold reverse")
        else:
            lines.append(f"  {name}")
        lines.append("\n")
    lines.rstrip()

    count = len(state.dropdown_filtered)
    title = f" {count} items " if not state.dropdown_query else f" {count} matching "
    return Panel(lines, title=Text(title), border_style=Colors.BORDER_FOCUSED)


# =============================================================================
# Resource list
# =============================================================================


def _visible_rows(state: AppState) -> int:
    height = state.terminal_size[1] if state.terminal_size else DEFAULT_TERMINAL_HEIGHT
    rows = height - _CHROME_ROWS
    if dropdown_visible(state):
        rows -= _DROPDOWN_ROWS
    return max(1, rows)


def _window_start(selection: int | None, total: int, visible: int) -> int:
    """First row to show so that ``selection`` stays on screen."""
    if selection is None or total <= visible:
        return 0
    return min(max(0, selection - visible + 1), total - visible)


def render_resource_table(state: AppState) -> Table:
    """Table of the filtered resources with the selection highlighted."""
    resource_type = state.resource_type
    title = f" {resource_type.display_name} "
    if state.filter:
        title = f" {resource_type.display_name} [filter: {state.filter}] "
    if state.filter_active:
        title = f" {resource_type.display_name} [filter: {state.filter}{CURSOR}] "

    table = Table(
        title=Text(title),
        expand=True,
        border_style=_border(state.focus is Focus.RESOURCE_LIST),
        header_style="bold yellow",
        show_edge=True,
    )
    for header, ratio in zip(resource_type.column_headers, COLUMN_RATIOS[resource_type], strict=True):
        table.add_column(header, ratio=ratio, no_wrap=True)

    items = state.filtered_resources()
    visible = _visible_rows(state)
    start = _window_start(state.selection, len(items), visible)
    for index, item in enumerate(items[start : start + visible], start=start):
        cells = [Text(value) for value in item.columns(resource_type)]
        if len(cells) > 1 and resource_type is not ResourceType.STATEFUL_SETS:
            cells[1].stylize(status_color(cells[1].plain))
        selected = index == state.selection
        if selected:
            cells[0] = Text(HIGHLIGHT_SYMBOL) + cells[0]
        table.add_row(*cells, style="bold reverse" if selected else None)

    if not items:
        message = "Loading..." if state.loading else "No resources"
        table.caption = message
    return table


# =============================================================================
# Detail, logs and confirm
# =============================================================================


def render_detail(state: AppState) -> Panel:
    """Scrolled window of the detail text."""
    resource = state.selected_resource()
    if isinstance(state.view_mode, DetailView) and state.entered_from_search:
        result = state.selected_search_result()
        resource = result.resource if result is not None else None
    title = f" {resource.name} " if resource is not None else " Detail "

    if not state.detail_text:
        body = Text("Loading..." if state.loading else "Press Enter on a resource to view details")
    else:
        lines = state.detail_text.splitlines()
        body = Text("\n".join(lines[state.detail_scroll : state.detail_scroll + DETAIL_VISIBLE_LINES]))
    return Panel(body, title=Text(title), border_style=Colors.BORDER)


def visible_log_lines(state: AppState) -> list[str]:
    """Log lines inside the window; follow mode pins the window to the end."""
    if state.log_follow:
        return state.log_lines[-DETAIL_VISIBLE_LINES:]
    return state.log_lines[state.log_scroll : state.log_scroll + DETAIL_VISIBLE_LINES]


def render_logs(state: AppState) -> Panel:
    follow = " [FOLLOW]" if state.log_follow else ""
    title = f" Logs{follow} ({len(state.log_lines)} lines) "

    if not state.log_lines:
        body = Text("Waiting for logs..." if state.loading else "No log output")
    else:
        body = Text()
        for line in visible_log_lines(state):
            body.append(line, style=log_line_style(line))
            body.append("\n")
        body.rstrip()
    return Panel(body, title=Text(title), border_style=Colors.BORDER)


def confirm_text(action: ConfirmAction) -> str:
    return (
        f"Are you sure you want to {action.value.lower()} this resource?\n\n"
        "Press 'y' to confirm, any other key to cancel."
    )


def render_confirm(action: ConfirmAction) -> Panel:
    return Panel(
        Text(confirm_text(action)),
        title=Text(f" Confirm {action.value.capitalize()} "),
        border_style=Colors.CONFIRM,
        expand=False,
        width=60,
    )


def _side_by_side(left: RenderableType, right: RenderableType) -> Table:
    grid = Table.grid(expand=True)
    grid.add_column(ratio=LIST_WIDTH_RATIO)
    grid.add_column(ratio=DETAIL_WIDTH_RATIO)
    grid.add_row(left, right)
    return grid


# =============================================================================
# Search
# =============================================================================


def render_search(state: AppState) -> Group:
    """Query input above the ranked cross-cluster results."""
    search_input = Panel(
        Text(f"{state.search_query}{CURSOR}"),
        title=Text(" Search (Ctrl+F) "),
        border_style=Colors.BORDER_FOCUSED,
        height=3,
    )

    found = len(state.search_filtered)
    if state.search_loading:
        title = (
            f" Results ({found} found, scanning "
            f"{state.search_contexts_done}/{state.search_contexts_total} clusters...) "
        )
    else:
        title = f" Results ({found} found) "

    table = Table(title=Text(title), expand=True, border_style=Colors.BORDER, header_style="bold yellow")
    for header, ratio in SEARCH_COLUMNS:
        table.add_column(header, ratio=ratio, no_wrap=True)

    visible = _visible_rows(state) - 3
    start = _window_start(state.search_selection, found, max(1, visible))
    for position, index in enumerate(state.search_filtered[start : start + max(1, visible)], start=start):
        result = state.search_results[index]
        selected = position == state.search_selection
        name = f"{HIGHLIGHT_SYMBOL}{result.resource.name}" if selected else result.resource.name
        table.add_row(
            Text(name),
            Text(result.resource_type.display_name),
            Text(result.resource.namespace),
            Text(result.context),
            style="bold reverse" if selected else None,
        )
    return Group(search_input, table)


# =============================================================================
# Footer
# =============================================================================


def footer_hints(state: AppState) -> str:
    """Key hints for the current view, focus and filter mode."""
    view = state.view_mode
    if isinstance(view, ListView):
        if state.filter_active:
            return FILTER_HINTS
        if state.focus.is_selector:
            return SELECTOR_HINTS
        return LIST_HINTS
    if isinstance(view, DetailView):
        return SEARCH_DETAIL_HINTS if state.entered_from_search else DETAIL_HINTS
    if isinstance(view, LogsView):
        return SEARCH_LOGS_HINTS if state.entered_from_search else LOGS_HINTS
    if isinstance(view, ConfirmView):
        return CONFIRM_HINTS
    return SEARCH_HINTS


def render_footer(state: AppState) -> Text:
    footer = Text(footer_hints(state), style="dim", no_wrap=True, overflow="ellipsis")
    if state.error_message:
        footer.append("  ")
        footer.append(state.error_message, style="bold red")
    return footer


# =============================================================================
# Dashboard
# =============================================================================


def render_main(state: AppState) -> RenderableType:
    """Main content area for the current view."""
    view = state.view_mode
    if isinstance(view, SearchView):
        return render_search(state)
    if isinstance(view, DetailView):
        return _side_by_side(render_resource_table(state), render_detail(state))
    if isinstance(view, ConfirmView):
        return Group(
            _side_by_side(render_resource_table(state), render_detail(state)),
            render_confirm(view.action),
        )
    if isinstance(view, LogsView):
        return _side_by_side(render_resource_table(state), render_logs(state))

    parts: list[RenderableType] = []
    if dropdown_visible(state):
        parts.append(render_dropdown(state))
    parts.append(render_resource_table(state))
    return Group(*parts)


def render_dashboard(state: AppState) -> Group:
    """Whole dashboard: header, main area and footer."""
    return Group(render_header(state), render_main(state), render_footer(state))
