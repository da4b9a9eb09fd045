from __future__ import annotations

from .models import Step


class PipelineError(Exception):
    """Base class for failures that abort a publish run."""

    exit_code = 2

    def __init__(self, message: str, *, step: Step | None = None) -> None:
        super().__init__(message)
        self.step = step


class WorkspaceError(PipelineError):
    """Raised when the working area cannot be reset or the build dir staged."""

    exit_code = 3


class TransferError(PipelineError):
    """Raised when a sync against object storage fails."""

    exit_code = 4


class TransientTransferError(TransferError):
    """Raised for storage failures worth another attempt (network, throttling, 5xx)."""


class RenderError(PipelineError):
    """Raised when the book cannot be rendered."""

    exit_code = 5
