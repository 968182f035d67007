"""Main Typer application — registers all CLI commands.

Entry point: ``stepforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from stepforge.cli.commands.graph import graph_cmd
from stepforge.cli.commands.run import run_cmd
from stepforge.config import ForgeSettings

app = typer.Typer(
    name="stepforge",
    help="stepforge: build and publish images by reconciling a graph of steps.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="run", help="Run a pipeline to convergence.")(run_cmd)
app.command(name="graph", help="Show the dependency layers of a pipeline.")(graph_cmd)


@app.callback()
def configure(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to STEPFORGE_LOG_LEVEL).",
    ),
) -> None:
    """Configure logging before any command runs."""
    level = (log_level or ForgeSettings().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
