"""Rich terminal rendering of run reports and step graphs.

Color scheme
------------
- green     : SUCCEEDED
- cyan      : SKIPPED (already done)
- red       : FAILED
- bold red  : BLOCKED
- yellow    : RUNNING / CANCELLED
- dim       : PENDING
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from stepforge.models.steps import RunReport, StepState

if TYPE_CHECKING:
    from stepforge.core.step_graph import StepGraph


_STATE_STYLES: dict[StepState, str] = {
    StepState.SUCCEEDED: "bold green",
    StepState.SKIPPED: "cyan",
    StepState.FAILED: "bold red",
    StepState.BLOCKED: "bold red",
    StepState.RUNNING: "bold yellow",
    StepState.CANCELLED: "yellow",
    StepState.PENDING: "dim",
}

_STATE_LABELS: dict[StepState, str] = {
    StepState.SUCCEEDED: "[green]SUCCEEDED[/green]",
    StepState.SKIPPED: "[cyan]DONE[/cyan]",
    StepState.FAILED: "[bold red]FAILED[/bold red]",
    StepState.BLOCKED: "[bold red]BLOCKED[/bold red]",
    StepState.RUNNING: "[yellow]RUNNING[/yellow]",
    StepState.CANCELLED: "[yellow]CANCELLED[/yellow]",
    StepState.PENDING: "[dim]PENDING[/dim]",
}


class ReportRenderer:
    """Renders ``RunReport`` and ``StepGraph`` as Rich renderables.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Run report
    # ------------------------------------------------------------------

    def render_report(self, report: RunReport) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Step", min_width=20)
        table.add_column("State", min_width=11, justify="center")
        table.add_column("Details", min_width=20)
        table.add_column("Time", justify="right", width=8)

        for i, result in enumerate(report.results):
            style = _STATE_STYLES.get(result.state, "")
            if result.error:
                details = f"[red]{result.operation}: {escape(result.error)}[/red]"
            else:
                details = f"[dim]{escape(result.description)}[/dim]"
            duration = result.duration_seconds
            table.add_row(
                str(i),
                f"[{style}]{escape(result.name)}[/{style}]",
                _STATE_LABELS.get(result.state, result.state.value),
                details,
                f"{duration:.2f}s" if duration is not None else "[dim]-[/dim]",
            )

        outcome = (
            "[green]succeeded[/green]" if report.succeeded else "[bold red]failed[/bold red]"
        )
        summary = "  |  ".join(
            [
                f"[bold]Run:[/bold] {escape(report.run_id)}",
                f"[bold]Namespace:[/bold] {escape(report.namespace)}",
                f"[bold]Outcome:[/bold] {outcome}",
                f"[bold]Done:[/bold] {report.count(StepState.SKIPPED)}",
                f"[bold]Failed:[/bold] {report.count(StepState.FAILED)}",
            ]
        )
        title = "[bold]stepforge run[/bold]"
        if report.dry_run:
            title += " [yellow](dry run)[/yellow]"
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title=title,
            border_style="green" if report.succeeded else "red",
            padding=(1, 2),
        )

    def render_parameters(self, parameters: dict[str, str]) -> Table:
        table = Table(title="Parameters", header_style="bold cyan")
        table.add_column("Name", style="cyan")
        table.add_column("Value")
        for name, value in sorted(parameters.items()):
            table.add_row(name, escape(value))
        return table

    # ------------------------------------------------------------------
    # Step graph
    # ------------------------------------------------------------------

    def render_graph(self, graph: StepGraph) -> Table:
        """One row per step, grouped by dependency layer."""
        table = Table(title="Step graph", header_style="bold cyan", show_lines=False)
        table.add_column("Layer", justify="right", style="dim")
        table.add_column("Step", style="cyan")
        table.add_column("Depends on")
        for depth, layer in enumerate(graph.layers()):
            for name in layer:
                prereqs = graph.get_prerequisites(name)
                table.add_row(
                    str(depth),
                    escape(name),
                    escape(", ".join(prereqs)) if prereqs else "[dim]-[/dim]",
                )
        return table

    # ------------------------------------------------------------------
    # Standalone print
    # ------------------------------------------------------------------

    def print_report(self, report: RunReport) -> None:
        self.console.print(self.render_report(report))
        if report.parameters:
            self.console.print(self.render_parameters(report.parameters))

    def print_graph(self, graph: StepGraph) -> None:
        self.console.print(self.render_graph(graph))
