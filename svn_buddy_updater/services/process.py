"""
Async subprocess execution with timeouts.

Every external command (git, build tools) goes through `run_command`, which
captures output and raises CommandError instead of returning exit codes.
"""

import asyncio
import logging
import shlex
from pathlib import Path
from typing import Sequence

from svn_buddy_updater.exceptions import CommandError
from svn_buddy_updater.utils import cut_string

__all__ = ("run_command", "format_command")
logger = logging.getLogger(__name__)


def format_command(command: Sequence[str]) -> str:
    """
    Human-readable command (for logs and errors)

    >>> format_command(["git", "log", "--format=%H %ct"])
    "git log '--format=%H %ct'"

    """
    return shlex.join(command)


async def run_command(
    command: Sequence[str],
    cwd: Path | None = None,
    timeout: float | None = None,
    env: dict[str, str] | None = None,
) -> str:
    """
    Runs command and returns its stdout.

    :param command: Command with arguments
    :param cwd: Working directory for the command
    :param timeout: Maximum seconds to wait (the process is killed after that)
    :param env: Environment variables (current env is used if None)
    :raises CommandError: nonzero exit, timeout or unavailable executable
    """
    command_str = format_command(command)
    logger.debug("[CMD] Running: %s (cwd: %s)", command_str, cwd or ".")
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.error("[CMD] Unable to start %s: %r", command_str, exc)
        raise CommandError(f"Unable to start '{command_str}': {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except (asyncio.TimeoutError, asyncio.CancelledError) as exc:
        process.kill()
        await process.wait()
        if isinstance(exc, asyncio.CancelledError):
            logger.warning("[CMD] Cancelled: %s", command_str)
            raise

        logger.error("[CMD] Timed out after %ss: %s", timeout, command_str)
        raise CommandError(f"'{command_str}' timed out after {timeout}s") from exc

    output = stdout.decode(errors="replace")
    if process.returncode != 0:
        error_output = stderr.decode(errors="replace").strip() or output.strip()
        logger.error(
            "[CMD] %s failed (exit %i): %s",
            command_str,
            process.returncode,
            cut_string(error_output, max_length=512),
        )
        raise CommandError(
            f"'{command_str}' failed (exit {process.returncode}): {cut_string(error_output)}",
            returncode=process.returncode or -1,
            output=error_output,
        )

    logger.debug("[CMD] Finished: %s", command_str)
    return output
