"""The publish workflow: reset, stage, fetch, render, publish, reset."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

from ._utils import ensure, format_command
from .book import load_book_config
from .errors import PipelineError
from .models import STEP_TRANSITIONS, RunReport, Step, StepResult
from .render import render_book, render_command
from .settings import Settings
from .storage import download, sync_command, upload
from .workspace import check_layout, materialize_build_dir, reset_workspace

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PlannedStep:
    step: Step
    description: str
    commands: tuple[str, ...] = ()


def _run_step(report: RunReport, step: Step, action: Callable[[], T]) -> T:
    logger.info("==> %s", step.value)
    started = time.monotonic()
    try:
        result = action()
    except PipelineError as exc:
        if exc.step is None:
            exc.step = step
        report.failed_step = step
        report.steps.append(
            StepResult(
                step=step,
                duration_seconds=time.monotonic() - started,
                ok=False,
                detail=str(exc),
            )
        )
        logger.error("Step %s failed: %s", step.value, exc)
        raise

    report.steps.append(
        StepResult(step=step, duration_seconds=time.monotonic() - started, ok=True)
    )
    report.states.append(STEP_TRANSITIONS[step])
    return result


def _skip_step(report: RunReport, step: Step, reason: str) -> None:
    logger.info("==> %s (skipped: %s)", step.value, reason)
    report.steps.append(
        StepResult(step=step, duration_seconds=0.0, ok=True, skipped=True, detail=reason)
    )


def log_summary(report: RunReport) -> None:
    for result in report.steps:
        status = "skipped" if result.skipped else ("ok" if result.ok else "FAILED")
        logger.info("  %-22s %-8s %6.1fs", result.step.value, status, result.duration_seconds)
    if report.failed_step is not None:
        logger.error("Run failed at %s (state: %s)", report.failed_step.value, report.state.value)
    else:
        logger.info("Run finished in state %s", report.state.value)


def _reset(settings: Settings) -> int:
    layout = settings.layout()
    check_layout(layout, settings.source_dir)
    return reset_workspace(layout.workspace)


def _fetch_inputs(settings: Settings) -> None:
    layout = settings.layout()
    download(settings, settings.location(settings.data_prefix), layout.data)
    download(settings, settings.location(settings.cache_prefix), layout.cache)


def _publish_outputs(settings: Settings, website_dir: Path) -> None:
    layout = settings.layout()
    # Website first: a failed cache upload must not hold back the fresh site.
    upload(
        settings,
        website_dir,
        settings.location(settings.website_prefix),
        public_read=True,
        replace=True,
    )
    upload(settings, layout.cache, settings.location(settings.cache_prefix))


def publish(
    settings: Settings,
    *,
    report: RunReport | None = None,
    cleanup: bool = True,
) -> RunReport:
    """Run the full publish pipeline. Any step failure aborts the run."""
    ensure([settings.aws_cli, settings.rscript])
    run = report if report is not None else RunReport()
    layout = settings.layout()

    _run_step(run, Step.RESET, lambda: _reset(settings))
    _run_step(run, Step.STAGE, lambda: materialize_build_dir(layout, settings.source_dir))
    _run_step(run, Step.FETCH, lambda: _fetch_inputs(settings))
    website_dir = _run_step(run, Step.RENDER, lambda: render_book(settings, layout.build))
    _run_step(run, Step.PUBLISH, lambda: _publish_outputs(settings, website_dir))

    if cleanup:
        _run_step(
            run,
            Step.CLEANUP,
            lambda: reset_workspace(layout.workspace, step=Step.CLEANUP),
        )
    else:
        _skip_step(run, Step.CLEANUP, "--skip-cleanup")
    return run


def render_local(settings: Settings, *, report: RunReport | None = None) -> Path:
    """Stage and render without touching object storage; the build is kept."""
    ensure([settings.rscript])
    run = report if report is not None else RunReport()
    layout = settings.layout()

    _run_step(run, Step.RESET, lambda: _reset(settings))
    _run_step(run, Step.STAGE, lambda: materialize_build_dir(layout, settings.source_dir))
    _skip_step(run, Step.FETCH, "local render")
    return _run_step(run, Step.RENDER, lambda: render_book(settings, layout.build))


def plan(settings: Settings) -> list[PlannedStep]:
    """Describe what publish would do, with the external commands it would run."""
    layout = settings.layout()
    secrets = settings.secret_values()
    book = load_book_config(settings.source_dir)
    website_dir = layout.build / book.output_dir

    def show(cmd: list[str]) -> str:
        return format_command(cmd, secrets)

    data = settings.location(settings.data_prefix)
    cache = settings.location(settings.cache_prefix)
    website = settings.location(settings.website_prefix)
    return [
        PlannedStep(Step.RESET, f"remove everything inside {layout.workspace}"),
        PlannedStep(
            Step.STAGE,
            f"create {layout.data} and {layout.cache}; copy {settings.source_dir} into {layout.build}",
        ),
        PlannedStep(
            Step.FETCH,
            "download datasets and render cache",
            (
                show(sync_command(settings, data.uri, str(layout.data))),
                show(sync_command(settings, cache.uri, str(layout.cache))),
            ),
        ),
        PlannedStep(
            Step.RENDER,
            f"render {settings.entry_document} in {layout.build}",
            (show(render_command(settings)),),
        ),
        PlannedStep(
            Step.PUBLISH,
            "replace website (public-read), then upload render cache",
            (
                show(sync_command(settings, str(website_dir), website.uri, public_read=True, delete=True)),
                show(sync_command(settings, str(layout.cache), cache.uri)),
            ),
        ),
        PlannedStep(Step.CLEANUP, f"remove everything inside {layout.workspace}"),
    ]
