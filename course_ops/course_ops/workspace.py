from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .errors import WorkspaceError
from .models import BuildLayout, Step

logger = logging.getLogger(__name__)


def _is_within(path: Path, parent: Path) -> bool:
    try:
        path.relative_to(parent)
    except ValueError:
        return False
    return True


def check_layout(layout: BuildLayout, source_dir: Path) -> None:
    source = source_dir.resolve()
    if _is_within(source, layout.workspace) or _is_within(layout.workspace, source):
        raise WorkspaceError(
            f"Source documents {source} overlap the working area {layout.workspace}; "
            "resetting the workspace would destroy them.",
        )
    if not _is_within(layout.build, layout.workspace) or layout.build == layout.workspace:
        raise WorkspaceError(
            f"Build directory {layout.build} must be a subdirectory of the working "
            f"area {layout.workspace}.",
        )


def reset_workspace(workspace: Path, *, step: Step = Step.RESET) -> int:
    """Remove every entry inside workspace, creating it if needed.

    Returns the number of top-level entries removed.
    """
    removed = 0
    try:
        workspace.mkdir(parents=True, exist_ok=True)
        for entry in workspace.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
    except OSError as exc:
        raise WorkspaceError(f"Failed to reset {workspace}: {exc}", step=step) from exc

    logger.info("Cleared %d entries from %s", removed, workspace)
    return removed


def _copy_entry(source: Path, destination: Path) -> None:
    if source.is_dir():
        shutil.copytree(source, destination, dirs_exist_ok=True)
    else:
        shutil.copy2(source, destination)


def materialize_build_dir(layout: BuildLayout, source_dir: Path) -> list[Path]:
    """Create the build tree and copy the source document set into it."""
    if not source_dir.is_dir():
        raise WorkspaceError(
            f"Source directory not found: {source_dir}", step=Step.STAGE
        )

    copied: list[Path] = []
    try:
        for directory in (layout.build, layout.data, layout.cache):
            directory.mkdir(parents=True, exist_ok=True)
        for entry in sorted(source_dir.iterdir()):
            destination = layout.build / entry.name
            _copy_entry(entry, destination)
            copied.append(destination)
    except OSError as exc:
        raise WorkspaceError(
            f"Failed to stage {source_dir} into {layout.build}: {exc}",
            step=Step.STAGE,
        ) from exc

    logger.info("Staged %d entries from %s into %s", len(copied), source_dir, layout.build)
    return copied
