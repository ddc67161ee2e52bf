"""Running external commands (npm, yarn) as asyncio subprocesses."""

from __future__ import annotations

import asyncio
import shutil
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from extravsix.exceptions import ExternalCommandError
from extravsix.logging import logger


@dataclass(frozen=True)
class CommandResult:
    """Captured result of an external command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""


CommandRunner = Callable[[list[str], Path], Awaitable[CommandResult]]


def resolve_executable(name: str) -> str:
    """Resolve an executable on PATH (npm.cmd on Windows)."""
    path = shutil.which(name)
    if not path:
        raise ExternalCommandError([name], f"{name} not found in PATH")
    return path


async def run_command(args: list[str], cwd: Path) -> CommandResult:
    """Run a command to completion and capture its output."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ExternalCommandError(args, f"Failed to run {args[0]}: {e}") from e
    out, err = await proc.communicate()
    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=out.decode("utf-8", errors="replace"),
        stderr=err.decode("utf-8", errors="replace"),
    )


async def run_and_forward(
    command: list[str],
    cwd: Path,
    *,
    description: str,
    runner: CommandRunner | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> CommandResult:
    """Run a command, forward its output verbatim, and fail on non-zero exit.

    When no runner is given the executable (first argument) is resolved on
    PATH and the command runs as a subprocess.

    Raises:
        ExternalCommandError: If the command cannot start or exits non-zero.
    """
    if runner is None:
        command = [resolve_executable(command[0]), *command[1:]]
        runner = run_command

    logger.debug(f"Running {' '.join(command)} in {cwd}")
    result = await runner(command, cwd)

    (stdout or sys.stdout).write(result.stdout)
    (stderr or sys.stderr).write(result.stderr)

    if result.returncode != 0:
        detail = result.stderr.strip() or f"exit code {result.returncode}"
        raise ExternalCommandError(
            command,
            f"{description} failed: {detail}",
            returncode=result.returncode,
        )
    return result
