"""Reading and checking the bookdown project that makes up the course."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .errors import RenderError
from .models import BookConfig, Step

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "_bookdown.yml"
DOCUMENT_SUFFIX = ".rmd"


def _select_rmd_files(value: Any) -> list[str]:
    # rmd_files may be split per output family: {html: [...], latex: [...]}
    if isinstance(value, dict):
        value = value.get("html") or []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    return []


def load_book_config(book_dir: Path) -> BookConfig:
    """Load ``_bookdown.yml`` from book_dir; a missing file yields bookdown's defaults.

    Args:
        book_dir: Directory holding the book sources

    Returns:
        Parsed configuration
    """
    config_path = book_dir / CONFIG_FILENAME
    if not config_path.exists():
        logger.debug("No %s in %s; using bookdown defaults", CONFIG_FILENAME, book_dir)
        return BookConfig()

    try:
        raw = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise RenderError(f"Cannot read {config_path}: {exc}", step=Step.RENDER) from exc

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise RenderError(f"Invalid {config_path}: {exc}", step=Step.RENDER) from exc

    if not isinstance(data, dict):
        raise RenderError(
            f"{config_path} must contain a mapping, got {type(data).__name__}",
            step=Step.RENDER,
        )

    payload: dict[str, Any] = {"rmd_files": _select_rmd_files(data.get("rmd_files"))}
    if data.get("output_dir"):
        payload["output_dir"] = str(data["output_dir"])
    if data.get("book_filename"):
        payload["book_filename"] = str(data["book_filename"])

    try:
        return BookConfig(**payload)
    except ValidationError as exc:
        raise RenderError(f"Invalid {config_path}: {exc}", step=Step.RENDER) from exc


def document_order(book_dir: Path, config: BookConfig, entry_document: str) -> list[str]:
    """Documents in the order bookdown merges them."""
    if config.rmd_files:
        return list(config.rmd_files)

    candidates = sorted(
        path.name
        for path in book_dir.iterdir()
        if path.is_file()
        and path.suffix.lower() == DOCUMENT_SUFFIX
        and not path.name.startswith("_")
    )
    if entry_document in candidates:
        candidates.remove(entry_document)
        candidates.insert(0, entry_document)
    return candidates


def validate_book(book_dir: Path, config: BookConfig, entry_document: str) -> list[str]:
    """Check that the staged book can be handed to the renderer.

    Returns the documents in render order.
    """
    if not (book_dir / entry_document).is_file():
        raise RenderError(
            f"Entry document {entry_document} not found in {book_dir}", step=Step.RENDER
        )

    documents = document_order(book_dir, config, entry_document)
    missing = [name for name in documents if not (book_dir / name).is_file()]
    if missing:
        raise RenderError(
            f"Documents listed in {CONFIG_FILENAME} are missing: {', '.join(missing)}",
            step=Step.RENDER,
        )

    logger.info("Book has %d documents; output goes to %s", len(documents), config.output_dir)
    return documents
