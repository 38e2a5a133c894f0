"""Theme constants and style utilities for the dashboard.

Usage:
    from kterm.tui.theme import Colors, status_color

    DEFAULT_CSS = f'''
    DashboardView {{ background: {Colors.SURFACE}; }}
    '''

    cell.stylize(status_color("Running"))
"""

from __future__ import annotations


class Colors:
    """Color constants for the dashboard.

    ``SURFACE`` is a Textual CSS variable; the rest are Rich color names
    used when building renderables.
    """

    SURFACE = "$surface"

    BORDER = "bright_black"
    BORDER_FOCUSED = "cyan"
    LOG_ERROR = "red"
    LOG_WARN = "yellow"
    CONFIRM = "red"


# Resource status -> Rich color
STATUS_COLOR_MAP: dict[str, str] = {
    "Running": "green",
    "Bound": "green",
    "Active": "green",
    "Pending": "yellow",
    "ContainerCreating": "yellow",
    "Updating": "yellow",
    "Failed": "red",
    "Error": "red",
    "CrashLoopBackOff": "red",
    "Lost": "red",
    "Terminating": "magenta",
    "Succeeded": "blue",
    "Completed": "blue",
}


def status_color(status: str) -> str:
    """Rich color for a resource status; "default" when unmapped."""
    return STATUS_COLOR_MAP.get(status, "default")


def log_line_style(line: str) -> str:
    """Rich style for a log line based on its severity keywords."""
    if "ERROR" in line or "error" in line:
        return Colors.LOG_ERROR
    if "WARN" in line or "warn" in line:
        return Colors.LOG_WARN
    return ""
