from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import sys
from typing import Iterable, Literal, Sequence

logger = logging.getLogger(__name__)

REDACTED = "***"


def redact(cmd: Sequence[str], secrets: Iterable[str | None] = ()) -> list[str]:
    """Return a copy of cmd with every occurrence of a secret value masked."""
    values = [value for value in secrets if value]
    redacted: list[str] = []
    for part in cmd:
        for value in values:
            if value in part:
                part = part.replace(value, REDACTED)
        redacted.append(part)
    return redacted


def format_command(cmd: Sequence[str], secrets: Iterable[str | None] = ()) -> str:
    return shlex.join(redact(cmd, secrets))


def run_logged(
    cmd: Iterable[str],
    *,
    capture_output: bool = False,
    text: bool = True,
    check: bool = True,
    echo: Literal["always", "on_error", "never"] = "always",
    secrets: Iterable[str | None] = (),
    **kwargs: object,
) -> subprocess.CompletedProcess[str]:
    """
    Run a subprocess, mirroring stdout/stderr to the caller even on failure.
    Returns the CompletedProcess; raises CalledProcessError when check=True.
    """
    cmd_list = list(cmd)
    logger.debug("$ %s", format_command(cmd_list, secrets))
    result = subprocess.run(
        cmd_list,
        capture_output=capture_output,
        text=text,
        **kwargs,  # type: ignore[arg-type]
    )
    if capture_output and (
        echo == "always" or (echo == "on_error" and result.returncode != 0)
    ):
        if result.stdout:
            sys.stdout.write(result.stdout)
        if result.stderr:
            sys.stderr.write(result.stderr)
    if check and result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, result.args, output=result.stdout, stderr=result.stderr
        )
    return result


def missing_commands(commands: Iterable[str]) -> list[str]:
    return [name for name in commands if shutil.which(name) is None]


def ensure(commands: Iterable[str]) -> None:
    for name in missing_commands(commands):
        sys.stderr.write(f"missing dependency: {name}\n")
        sys.exit(1)


def process_output(exc: subprocess.CalledProcessError) -> str:
    return (exc.stderr or "") + (exc.output or "")
