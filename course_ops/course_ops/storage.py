from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ._utils import process_output, run_logged
from .errors import TransferError, TransientTransferError
from .models import StorageLocation, Step
from .settings import Settings

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 4

_TRANSIENT_MARKERS = (
    "could not connect to the endpoint url",
    "connect timeout on endpoint url",
    "read timeout on endpoint url",
    "connection was closed",
    "connection reset by peer",
    "connection refused",
    "temporary failure in name resolution",
    "slowdown",
    "requesttimeout",
    "serviceunavailable",
    "service unavailable",
    "internalerror",
    "we encountered an internal error",
    "error occurred (500)",
    "error occurred (503)",
)

_FATAL_MARKERS = (
    "invalidaccesskeyid",
    "signaturedoesnotmatch",
    "accessdenied",
    "nosuchbucket",
    "unable to locate credentials",
)


def is_transient(exc: subprocess.CalledProcessError) -> bool:
    lowered = process_output(exc).lower()
    if any(marker in lowered for marker in _FATAL_MARKERS):
        return False
    return any(marker in lowered for marker in _TRANSIENT_MARKERS)


def _log_transfer_retry(retry_state: RetryCallState) -> None:
    attempt = retry_state.attempt_number
    sleep_for = (
        f"; waiting {retry_state.next_action.sleep:.0f}s"
        if retry_state.next_action and retry_state.next_action.sleep is not None
        else ""
    )
    logger.warning(
        "S3 sync: retrying after transient storage error (attempt %d/%d)%s",
        attempt,
        MAX_ATTEMPTS,
        sleep_for,
    )


def sync_command(
    settings: Settings,
    source: str,
    destination: str,
    *,
    public_read: bool = False,
    delete: bool = False,
) -> list[str]:
    # Downloads never pass --delete: local files absent remotely are left alone.
    cmd = [settings.aws_cli, "s3", "sync", source, destination]
    if settings.s3_endpoint_url:
        cmd.extend(["--endpoint-url", settings.s3_endpoint_url])
    if public_read:
        cmd.extend(["--acl", "public-read"])
    if delete:
        cmd.append("--delete")
    return cmd


@retry(
    reraise=True,
    retry=retry_if_exception_type(TransientTransferError),
    stop=stop_after_attempt(MAX_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    before_sleep=_log_transfer_retry,
)
def _run_sync(cmd: list[str], settings: Settings, step: Step) -> None:
    try:
        run_logged(
            cmd,
            capture_output=True,
            echo="always",
            secrets=settings.secret_values(),
            env=settings.aws_environment(dict(os.environ)),
        )
    except subprocess.CalledProcessError as exc:
        message = f"{cmd[2]} {cmd[3]} -> {cmd[4]} failed with exit code {exc.returncode}"
        if is_transient(exc):
            raise TransientTransferError(message, step=step) from exc
        raise TransferError(message, step=step) from exc
    except OSError as exc:
        raise TransferError(f"Could not run {cmd[0]}: {exc}", step=step) from exc


def download(
    settings: Settings, location: StorageLocation, destination: Path, *, step: Step = Step.FETCH
) -> None:
    """Mirror location into destination (remote -> local)."""
    logger.info("Syncing %s -> %s", location.uri, destination)
    _run_sync(sync_command(settings, location.uri, str(destination)), settings, step)


def upload(
    settings: Settings,
    source: Path,
    location: StorageLocation,
    *,
    public_read: bool = False,
    replace: bool = False,
    step: Step = Step.PUBLISH,
) -> None:
    """Mirror source into location (local -> remote).

    With replace, remote objects missing from source are removed so the prefix
    matches source exactly.
    """
    if not source.is_dir():
        raise TransferError(f"Nothing to upload: {source} does not exist", step=step)
    visibility = "public-read" if public_read else "private"
    logger.info("Syncing %s -> %s (%s)", source, location.uri, visibility)
    _run_sync(
        sync_command(
            settings, str(source), location.uri, public_read=public_read, delete=replace
        ),
        settings,
        step,
    )
