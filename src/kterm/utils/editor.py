"""Editor and pager resolution and the subprocess launcher.

The launcher only runs the child process. Handing the terminal over to it
(stopping input, suspending the UI) is the caller's job.
"""

from __future__ import annotations

import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from kterm.integrations.kubernetes.config import DashboardConfig

logger = structlog.get_logger()

DEFAULT_EDITOR = "vi"
DEFAULT_PAGER = "less"


def get_editor(config: DashboardConfig | None = None) -> str:
    """Get the configured editor command.

    Priority order:
    1. DashboardConfig.editor (set from KTERM_EDITOR or the CLI)
    2. KTERM_EDITOR environment variable
    3. EDITOR environment variable
    4. VISUAL environment variable
    5. "vi" fallback

    Returns:
        Editor command string (e.g., "vim", "code --wait", "nano").
    """
    if config is not None and config.editor:
        return config.editor
    return (
        os.environ.get("KTERM_EDITOR")
        or os.environ.get("EDITOR")
        or os.environ.get("VISUAL")
        or DEFAULT_EDITOR
    )


def get_pager(config: DashboardConfig | None = None) -> str:
    """Get the configured pager command: config, KTERM_PAGER, PAGER, then "less"."""
    if config is not None and config.pager:
        return config.pager
    return os.environ.get("KTERM_PAGER") or os.environ.get("PAGER") or DEFAULT_PAGER


def pager_command(pager: str, path: str) -> list[str]:
    """Build the pager argv; ``less`` opens in follow mode."""
    argv = shlex.split(pager)
    if argv and Path(argv[0]).name == "less":
        argv.append("+F")
    return [*argv, path]


class SubprocessLauncher:
    """Runs the editor or pager on temporary files.

    Args:
        config: Source of the editor and pager overrides.
    """

    def __init__(self, config: DashboardConfig | None = None) -> None:
        self._config = config

    def _run(self, argv: list[str]) -> int | None:
        try:
            return subprocess.run(argv, check=False).returncode
        except OSError as e:
            logger.debug("subprocess_failed", command=argv[0], error=str(e))
            return None

    def edit(self, text: str, suffix: str = ".yaml") -> str | None:
        """Open ``text`` in the editor.

        Args:
            text: Initial file content.
            suffix: Temp file suffix, used by editors for highlighting.

        Returns:
            The edited content, or None when the editor failed, exited
            non-zero or left the content unchanged.
        """
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=suffix, prefix="kterm-", delete=False
        ) as f:
            f.write(text)
            temp_path = f.name

        try:
            editor = get_editor(self._config)
            returncode = self._run([*shlex.split(editor), temp_path])
            if returncode != 0:
                logger.debug("edit_cancelled", editor=editor, returncode=returncode)
                return None

            edited = Path(temp_path).read_text()
            if edited == text:
                logger.debug("edit_unchanged")
                return None
            return edited
        finally:
            Path(temp_path).unlink(missing_ok=True)

    def view(self, lines: list[str], pager: bool = False) -> None:
        """Show log ``lines`` in the editor, or in the pager when ``pager`` is set."""
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=".log", prefix="kterm-logs-", delete=False
        ) as f:
            f.write("\n".join(lines))
            if lines:
                f.write("\n")
            temp_path = f.name

        try:
            if pager:
                argv = pager_command(get_pager(self._config), temp_path)
            else:
                argv = [*shlex.split(get_editor(self._config)), temp_path]
            returncode = self._run(argv)
            logger.debug("log_view_closed", command=argv[0], returncode=returncode)
        finally:
            Path(temp_path).unlink(missing_ok=True)
