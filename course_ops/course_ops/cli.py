"""Command-line entry points."""

from __future__ import annotations

import logging

import typer
from pydantic import ValidationError
from typing_extensions import Annotated

from . import pipeline
from .errors import PipelineError
from .models import RunReport
from .settings import Settings

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="course-ops",
    help="Build and publish the single-cell RNA-seq course book.",
    no_args_is_help=True,
)

Verbose = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable verbose logging."),
]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
        force=True,
    )


def _load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        logger.error("Invalid configuration:\n%s", exc)
        raise typer.Exit(code=2) from exc


@app.command()
def publish(
    skip_cleanup: Annotated[
        bool,
        typer.Option(
            "--skip-cleanup",
            help="Keep the build directory after a successful run.",
        ),
    ] = False,
    verbose: Verbose = False,
) -> None:
    """Stage, fetch, render and publish the course, then clear the workspace."""
    _configure_logging(verbose)
    settings = _load_settings()
    report = RunReport()
    try:
        pipeline.publish(settings, report=report, cleanup=not skip_cleanup)
    except PipelineError as exc:
        pipeline.log_summary(report)
        raise typer.Exit(code=exc.exit_code) from exc
    pipeline.log_summary(report)


@app.command()
def render(verbose: Verbose = False) -> None:
    """Render the course locally without touching object storage."""
    _configure_logging(verbose)
    settings = _load_settings()
    report = RunReport()
    try:
        site = pipeline.render_local(settings, report=report)
    except PipelineError as exc:
        pipeline.log_summary(report)
        raise typer.Exit(code=exc.exit_code) from exc
    pipeline.log_summary(report)
    typer.echo(str(site))


@app.command()
def plan() -> None:
    """Print the steps and commands publish would run, without running them."""
    _configure_logging(False)
    settings = _load_settings()
    try:
        steps = pipeline.plan(settings)
    except PipelineError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=exc.exit_code) from exc
    for index, planned in enumerate(steps, start=1):
        typer.echo(f"{index}. {planned.step.value}: {planned.description}")
        for command in planned.commands:
            typer.echo(f"     $ {command}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
