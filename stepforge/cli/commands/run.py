"""``stepforge run CONFIG`` — execute a pipeline to convergence.

Builds the steps described by CONFIG against an in-memory image store
(optionally seeded from a JSON state file), runs them in dependency
order and prints the run report. Exits with code 1 when the
configuration is invalid or any step fails.
"""

from __future__ import annotations

import threading
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from stepforge.config import ForgeSettings
from stepforge.core.parameters import DeferredParameters
from stepforge.core.pipeline import PipelineConfigError, build_steps, load_pipeline_config
from stepforge.core.retry import RetryPolicy
from stepforge.core.runner import PipelineFailedError, PipelineRunner
from stepforge.core.step_graph import GraphError
from stepforge.models.config import RunContext
from stepforge.monitor.renderer import ReportRenderer
from stepforge.store.memory import InMemoryImageStore

console = Console()


def run_cmd(
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
    run_id: str = typer.Option(
        None,
        "--run-id",
        help="Identifier of the run (generated when omitted).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Print the resources that would be written instead of writing them.",
    ),
    state: Path = typer.Option(
        None,
        "--state",
        "-s",
        help="JSON file seeding the in-memory image store.",
    ),
    max_workers: int = typer.Option(
        None,
        "--max-workers",
        "-j",
        min=1,
        help="Maximum number of steps executing at once.",
    ),
    dump_state: Path = typer.Option(
        None,
        "--dump-state",
        help="Write the image store contents to this JSON file after the run.",
    ),
) -> None:
    """Run every step of a pipeline, skipping steps that are already done.

    Ctrl-C cancels the run: queued steps are not started and the steps
    already executing are allowed to finish.
    """
    settings = ForgeSettings()
    context_fields = {"namespace": namespace or settings.namespace}
    if run_id:
        context_fields["run_id"] = run_id
    context = RunContext(**context_fields)

    try:
        config = load_pipeline_config(config_path)
    except PipelineConfigError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    store = InMemoryImageStore(
        internal_registry=settings.internal_registry,
        public_registry=settings.public_registry,
    )
    if state is not None:
        try:
            store.load_state(state)
        except (OSError, ValidationError) as exc:
            console.print(f"[bold red]Could not load state:[/bold red] {escape(str(exc))}")
            raise typer.Exit(code=1)

    cancel = threading.Event()
    params = DeferredParameters()
    steps = build_steps(
        config,
        context,
        store.image_stream_tags,
        store.image_streams,
        params=params,
        retry=RetryPolicy(settings.backoff(), cancel=cancel),
    )

    try:
        runner = PipelineRunner(
            steps,
            context,
            params=params,
            dry_run=dry_run,
            max_workers=max_workers or settings.max_workers,
            cancel=cancel,
        )
    except GraphError as exc:
        console.print(f"[bold red]Invalid step graph:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    renderer = ReportRenderer(console=console)
    try:
        report = runner.run()
    except PipelineFailedError as exc:
        _write_state(store, dump_state)
        renderer.print_report(exc.report)
        for err in exc.errors:
            console.print(f"[red]- {escape(str(err))}[/red]")
        raise typer.Exit(code=1)

    _write_state(store, dump_state)
    renderer.print_report(report)
    if not report.succeeded:
        raise typer.Exit(code=1)


def _write_state(store: InMemoryImageStore, path: Path | None) -> None:
    if path is None:
        return
    path.write_text(store.dump_state() + "\n", encoding="utf-8")
    console.print(f"Store state written to {escape(str(path))}")
