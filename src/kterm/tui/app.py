"""Textual application hosting the dashboard runtime.

The app is a thin terminal host: it forwards keys and resizes to the
runtime's event bus, redraws a single widget from the state after every
event and lends the terminal to child processes via ``App.suspend()``.
All behaviour lives in :mod:`kterm.core`.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import TYPE_CHECKING

import structlog
from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Static

from kterm.core.accessor import KubernetesAccessor
from kterm.core.events import KeyPress, Resize
from kterm.core.runtime import Runtime
from kterm.tui.render import render_dashboard
from kterm.tui.theme import Colors

if TYPE_CHECKING:
    from kterm.core.accessor import ClusterAccessor
    from kterm.core.state import AppState
    from kterm.integrations.kubernetes.config import DashboardConfig
    from kterm.utils.editor import SubprocessLauncher

logger = structlog.get_logger()


class DashboardView(Static):
    """The one widget: the whole dashboard rendered by Rich."""

    DEFAULT_CSS = f"""
    DashboardView {{
        width: 100%;
        height: 100%;
        background: {Colors.SURFACE};
    }}
    """


class KtermApp(App[None]):
    """Terminal host for the dashboard.

    Args:
        config: Dashboard configuration.
        accessor: Cluster accessor; a :class:`KubernetesAccessor` over
            ``config`` when omitted.
        launcher: Editor/pager launcher override.
    """

    TITLE = "kterm"
    ENABLE_COMMAND_PALETTE = False

    def __init__(
        self,
        config: DashboardConfig | None = None,
        accessor: ClusterAccessor | None = None,
        launcher: SubprocessLauncher | None = None,
    ) -> None:
        super().__init__()
        self._view = DashboardView()
        self.runtime = Runtime(
            accessor or KubernetesAccessor(config),
            host=self,
            config=config,
            launcher=launcher,
        )

    def compose(self) -> ComposeResult:
        yield self._view

    def on_mount(self) -> None:
        """Report the initial size and start the runtime loop."""
        self._feed(Resize(self.size.width, self.size.height))
        self.run_worker(self.runtime.run(), name="kterm-runtime", exclusive=True)

    async def on_event(self, event: events.Event) -> None:
        # Keys go to the runtime only; no Textual bindings apply
        if isinstance(event, events.Key):
            event.stop()
            self._feed(KeyPress(event.key, event.character))
            return
        await super().on_event(event)

    def on_resize(self, event: events.Resize) -> None:
        self._feed(Resize(event.size.width, event.size.height))

    def _feed(self, event: KeyPress | Resize) -> None:
        self.runtime.bus.terminal_input.feed(event)

    # =========================================================================
    # TerminalHost
    # =========================================================================

    def draw(self, state: AppState) -> None:
        self._view.update(render_dashboard(state))

    def release_terminal(self) -> AbstractContextManager[None]:
        return self.suspend()
