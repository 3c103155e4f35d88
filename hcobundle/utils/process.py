"""
Subprocess helpers.

Thin async wrapper around asyncio subprocesses used for the descriptor
generators and for skopeo.
"""
from __future__ import annotations

import asyncio
import logging
import shlex
from collections.abc import Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a finished command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(
    args: Sequence[str],
    *,
    timeout: float | None = None,
) -> CommandResult:
    """
    Run a command and capture its output.

    Args:
        args: Program and arguments (no shell)
        timeout: Seconds to wait before killing the process; None waits forever

    Returns:
        CommandResult with decoded stdout/stderr

    Raises:
        FileNotFoundError: If the program does not exist
        TimeoutError: If the timeout expires
    """
    args = tuple(str(a) for a in args)
    logger.debug(f"Running: {shlex.join(args)}")

    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise TimeoutError(f"Command timed out after {timeout}s: {shlex.join(args)}")

    return CommandResult(
        args=args,
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
