from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from ._utils import run_logged
from .book import load_book_config, validate_book
from .errors import RenderError
from .models import Step
from .settings import Settings

logger = logging.getLogger(__name__)


def _r_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def render_expression(entry_document: str, output_format: str) -> str:
    return f"bookdown::render_book({_r_string(entry_document)}, {_r_string(output_format)})"


def render_command(settings: Settings) -> list[str]:
    return [
        settings.rscript,
        "-e",
        render_expression(settings.entry_document, settings.output_format),
    ]


def render_book(settings: Settings, book_dir: Path) -> Path:
    """Render the staged book in book_dir and return the rendered site directory.

    The renderer decides on its own which documents its cache lets it skip.
    """
    config = load_book_config(book_dir)
    validate_book(book_dir, config, settings.entry_document)

    cmd = render_command(settings)
    logger.info("Rendering %s as %s", settings.entry_document, settings.output_format)
    try:
        run_logged(cmd, capture_output=False, cwd=str(book_dir))
    except subprocess.CalledProcessError as exc:
        raise RenderError(
            f"Renderer exited with code {exc.returncode}", step=Step.RENDER
        ) from exc
    except OSError as exc:
        raise RenderError(f"Could not run {cmd[0]}: {exc}", step=Step.RENDER) from exc

    output_dir = book_dir / config.output_dir
    if not output_dir.is_dir():
        raise RenderError(
            f"Renderer succeeded but produced no output at {output_dir}", step=Step.RENDER
        )

    logger.info("Rendered site at %s", output_dir)
    return output_dir
