"""``stepforge graph CONFIG`` — show the dependency layers of a pipeline."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from stepforge.config import ForgeSettings
from stepforge.core.parameters import DeferredParameters
from stepforge.core.pipeline import PipelineConfigError, build_steps, load_pipeline_config
from stepforge.core.step_graph import GraphError, StepGraph
from stepforge.models.config import RunContext
from stepforge.monitor.renderer import ReportRenderer
from stepforge.store.memory import InMemoryImageStore

console = Console()


def graph_cmd(
    config_path: Path = typer.Argument(
        ...,
        help="Pipeline configuration file (.toml or .json).",
    ),
    namespace: str = typer.Option(
        None,
        "--namespace",
        "-n",
        help="Namespace of the run (defaults to STEPFORGE_NAMESPACE).",
    ),
) -> None:
    """Validate a pipeline and print its steps by dependency layer."""
    settings = ForgeSettings()
    context = RunContext(namespace=namespace or settings.namespace)
    try:
        config = load_pipeline_config(config_path)
    except PipelineConfigError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    # Nothing is executed; the store only satisfies the step constructors.
    store = InMemoryImageStore()
    steps = build_steps(
        config,
        context,
        store.image_stream_tags,
        store.image_streams,
        params=DeferredParameters(),
    )
    try:
        graph = StepGraph(steps)
    except GraphError as exc:
        console.print(f"[bold red]Invalid step graph:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    ReportRenderer(console=console).print_graph(graph)
