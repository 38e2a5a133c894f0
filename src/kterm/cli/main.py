"""Main CLI entry point using Typer."""

from __future__ import annotations

import typer
from rich.console import Console

from kterm import __version__
from kterm.integrations.kubernetes.config import DashboardConfig
from kterm.logging.config import configure_logging, get_logger

app = typer.Typer(
    name="kterm",
    help="Terminal dashboard for Kubernetes pods, PVCs and StatefulSets.",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"kterm version {__version__}")
        raise typer.Exit()


def build_config(
    context: str | None = None,
    namespace: str | None = None,
    kubeconfig: str | None = None,
) -> DashboardConfig:
    """Load configuration from the environment; CLI options take precedence."""
    values = DashboardConfig.from_env().model_dump()
    overrides = {"context": context, "namespace": namespace, "kubeconfig": kubeconfig}
    values.update({key: value for key, value in overrides.items() if value is not None})
    return DashboardConfig(**values)


@app.command()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging.",
    ),
    context: str | None = typer.Option(
        None,
        "--context",
        help="Kubeconfig context to select at startup.",
    ),
    namespace: str | None = typer.Option(
        None,
        "--namespace",
        "-n",
        help="Namespace to select at startup.",
    ),
    kubeconfig: str | None = typer.Option(
        None,
        "--kubeconfig",
        help="Path to the kubeconfig file.",
    ),
) -> None:
    """Browse and manage Kubernetes resources across contexts."""
    configure_logging(verbose=verbose, debug=debug)
    logger = get_logger(__name__)

    try:
        config = build_config(context=context, namespace=namespace, kubeconfig=kubeconfig)
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    from kterm.tui.app import KtermApp

    logger.info("starting", context=config.context, namespace=config.namespace)
    try:
        KtermApp(config).run()
    except OSError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


if __name__ == "__main__":
    app()
