"""Blocking subprocess helper shared by the git and cargo wrappers."""

from __future__ import annotations

import subprocess
from pathlib import Path

import structlog

from cargo_fork.exceptions import CommandError

log = structlog.get_logger("cargo_fork.process")


def run(
    cmd: list[str],
    *,
    cwd: Path | None = None,
    error_cls: type[CommandError] = CommandError,
    allowed_returncodes: tuple[int, ...] = (0,),
) -> subprocess.CompletedProcess[str]:
    """Run *cmd* and return the completed process.

    Raises *error_cls* when the exit status is not in *allowed_returncodes*,
    or when the executable cannot be started at all.
    """
    log.debug("process.run", cmd=cmd, cwd=str(cwd) if cwd else None)
    try:
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise error_cls(cmd, -1, str(exc)) from exc
    if proc.returncode not in allowed_returncodes:
        raise error_cls(cmd, proc.returncode, proc.stderr.strip())
    return proc
