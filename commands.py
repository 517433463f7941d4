"""
MacClean - Subprocess runner for launchctl, osascript, ps and elevated file operations.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from typing import Optional, Sequence

from models import ExecutionContext

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 60


def _quote(args: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in args)


def needs_sudo() -> bool:
    """True unless we already run as root."""
    try:
        return os.geteuid() != 0
    except AttributeError:
        return False


def run_command(
    args: Sequence[str],
    ctx: Optional[ExecutionContext] = None,
    elevated: bool = False,
    mutating: bool = False,
    timeout: int = DEFAULT_TIMEOUT_S,
) -> subprocess.CompletedProcess:
    """
    Run a command and return its CompletedProcess, never raising.

    Args:
        args: Command and arguments.
        ctx: Execution context; mutating commands are not run in dry-run mode.
        elevated: Prefix with sudo (may prompt for a password on the terminal).
        mutating: The command changes system state.
        timeout: Seconds before the command is abandoned.

    Returns:
        CompletedProcess; a non-zero returncode covers every failure, including
        a missing binary (127), a timeout (124) and refused elevation (126).
    """
    ctx = ctx or ExecutionContext()
    args = list(args)

    if elevated and needs_sudo():
        if not ctx.allow_elevation:
            logger.warning("Elevation disabled, not running: %s", _quote(args))
            return subprocess.CompletedProcess(args, 126, "", "elevation disabled")
        args = ["sudo"] + args

    if mutating and ctx.dry_run:
        logger.info("DRY RUN: %s", _quote(args))
        return subprocess.CompletedProcess(args, 0, "", "")

    logger.debug("Executing: %s", _quote(args))
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out after %ss: %s", timeout, _quote(args))
        return subprocess.CompletedProcess(args, 124, "", "timed out")
    except (OSError, PermissionError) as exc:
        logger.warning("Could not run %s: %s", _quote(args), exc)
        return subprocess.CompletedProcess(args, 127, "", str(exc))

    if result.returncode != 0:
        logger.debug("Command returned non-zero exit code %d: %s",
                     result.returncode, (result.stderr or "").strip())
    return result


def osascript(script: str, ctx: Optional[ExecutionContext] = None,
              mutating: bool = False, timeout: int = 15) -> subprocess.CompletedProcess:
    """Run an AppleScript passed as a single -e argument."""
    return run_command(["osascript", "-e", script], ctx=ctx, mutating=mutating, timeout=timeout)


def applescript_string(value: str) -> str:
    """Quote a value for embedding in an AppleScript string literal."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
