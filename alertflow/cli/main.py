# -*- coding: utf-8 -*-
"""
AlertFlow CLI
=============

``alertflow <job> [args]`` runs one headless job and exits:

    - fail [--expect-failure]: smoke test; exits 0, or 1 with the flag
    - export-json <input.xlsx> <output.json> [--merge-mode MODE]
    - convert-xml <input.xml> <output.json> [--merge-mode MODE]
    - jobs: list the available jobs

An unknown job prints the job list and exits 1. A document that cannot be
loaded prints its error code and message and exits 1.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import click
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from typer.core import TyperGroup

from alertflow._version import __version__
from alertflow.config import get_config, parse_merge_mode
from alertflow.exceptions import AlertFlowException, JobError
from alertflow.models import MergeMode
from alertflow.setup import AlertFlowService

JOBS: Dict[str, str] = {
    "fail": "Smoke test; exits 0, or 1 with --expect-failure",
    "export-json": "Convert a delivery-flow workbook to a JSON delivery-flow document",
    "convert-xml": "Convert rule-engine XML to a JSON delivery-flow document",
    "jobs": "List the available jobs",
}

console = Console()
err_console = Console(stderr=True)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Install a Rich handler on the ``alertflow`` logger."""
    logger = logging.getLogger("alertflow")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()
    rich_handler = RichHandler(
        console=err_console,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(rich_handler)
    return logger


def print_jobs() -> None:
    table = Table(title="Jobs")
    table.add_column("Job", style="cyan")
    table.add_column("Description")
    for name, description in JOBS.items():
        table.add_row(name, description)
    console.print(table)


class JobGroup(TyperGroup):
    """Reports unknown jobs with the job list instead of a usage error."""

    def resolve_command(self, ctx: click.Context, args: List[str]):
        name = args[0] if args else None
        if name and not name.startswith("-") and self.get_command(ctx, name) is None:
            console.print(f"[red]Unknown job:[/red] {escape(name)}")
            print_jobs()
            raise typer.Exit(1)
        return super().resolve_command(ctx, args)


app = typer.Typer(
    name="alertflow",
    help="AlertFlow: rule-engine XML to delivery-flow converter",
    cls=JobGroup,
    add_completion=False,
)


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    AlertFlow - headless delivery-flow jobs
    """
    if version:
        console.print(f"AlertFlow v{__version__}")
        raise typer.Exit(0)
    setup_logging("DEBUG" if verbose else get_config().log_level)
    if ctx.invoked_subcommand is None:
        print_jobs()


def _usage_error(job: str, usage: str) -> None:
    error = JobError(message=f"Usage: alertflow {job} {usage}", job_name=job)
    console.print(f"[red]{escape(error.message)}[/red]")
    raise typer.Exit(1)


def _fail(exc: AlertFlowException) -> None:
    console.print(f"[red]Error {escape(exc.error_code)}:[/red] {escape(exc.message)}")
    file_path = exc.context.get("file_path")
    if file_path:
        console.print(f"  File: {escape(str(file_path))}")
    raise typer.Exit(1)


def _merge_mode(value: Optional[str]) -> Optional[MergeMode]:
    if value is None:
        return None
    try:
        return parse_merge_mode(value)
    except AlertFlowException as exc:
        _fail(exc)
    return None


_ARITY_SETTINGS = {"allow_extra_args": True}


@app.command()
def fail(
    expect_failure: bool = typer.Option(
        False, "--expect-failure", "-f", help="Exit with status 1",
    ),
):
    """Smoke-test job."""
    if expect_failure:
        console.print("fail: exiting with status 1")
        raise typer.Exit(1)
    console.print("fail: ok")


@app.command("export-json", context_settings=_ARITY_SETTINGS)
def export_json(
    ctx: typer.Context,
    input_path: Optional[Path] = typer.Argument(None, help="Delivery-flow workbook"),
    output_path: Optional[Path] = typer.Argument(None, help="JSON file to write"),
    merge_mode: Optional[str] = typer.Option(
        None, "--merge-mode", "-m",
        help="none, merge_all or merge_by_config_group",
    ),
):
    """Convert a delivery-flow workbook to JSON."""
    if input_path is None or output_path is None or ctx.args:
        _usage_error("export-json", "<input.xlsx> <output.json> [--merge-mode MODE]")
    mode = _merge_mode(merge_mode)
    service = AlertFlowService()
    try:
        result = service.load_workbook(input_path)
        document = service.export_json(output_path, merge_mode=mode)
    except AlertFlowException as exc:
        _fail(exc)
    console.print(escape(result.summary))
    console.print(
        f"[green]Wrote {len(document['deliveryFlows'])} delivery flows to[/green] "
        f"{escape(str(output_path))}"
    )


@app.command("convert-xml", context_settings=_ARITY_SETTINGS)
def convert_xml(
    ctx: typer.Context,
    input_path: Optional[Path] = typer.Argument(None, help="Rule-engine XML"),
    output_path: Optional[Path] = typer.Argument(None, help="JSON file to write"),
    merge_mode: Optional[str] = typer.Option(
        None, "--merge-mode", "-m",
        help="none, merge_all or merge_by_config_group",
    ),
):
    """Convert rule-engine XML to JSON."""
    if input_path is None or output_path is None or ctx.args:
        _usage_error("convert-xml", "<input.xml> <output.json> [--merge-mode MODE]")
    mode = _merge_mode(merge_mode)
    service = AlertFlowService()
    try:
        result = service.load_xml(input_path)
        document = service.export_json(output_path, merge_mode=mode)
    except AlertFlowException as exc:
        _fail(exc)
    console.print(escape(result.summary))
    if result.unresolved_views:
        console.print(
            f"[yellow]Unresolved views:[/yellow] {escape(', '.join(result.unresolved_views))}"
        )
    console.print(
        f"[green]Wrote {len(document['deliveryFlows'])} delivery flows to[/green] "
        f"{escape(str(output_path))}"
    )


@app.command()
def jobs():
    """List the available jobs."""
    print_jobs()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
