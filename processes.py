"""
MacClean - Process liveness guard: make sure the app is not running before we
pull its files out from under it.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Tuple

from commands import applescript_string, osascript, run_command
from fsutil import is_within
from models import ApplicationIdentity, Decision, ExecutionContext

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.5


class ProcessInspector:
    """Lists running processes through ps."""

    def running_executables(self) -> List[Tuple[int, str]]:
        """(pid, executable path) for every process we can see."""
        result = run_command(["ps", "-axww", "-o", "pid=,comm="], timeout=15)
        if result.returncode != 0:
            logger.warning("Could not list running processes: %s", (result.stderr or "").strip())
            return []
        processes = []
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            pid_text, _, command = line.partition(" ")
            try:
                processes.append((int(pid_text), command.strip()))
            except ValueError:
                continue
        return processes


class ApplicationController:
    """Asks applications to quit through AppleScript."""

    def __init__(self, ctx: Optional[ExecutionContext] = None):
        self.ctx = ctx or ExecutionContext()

    def quit(self, name: str) -> bool:
        script = f"tell application {applescript_string(name)} to quit"
        return osascript(script, ctx=self.ctx, mutating=True).returncode == 0


def running_pids(identity: ApplicationIdentity, inspector: ProcessInspector) -> List[int]:
    """PIDs whose executable lives inside the application bundle."""
    return [pid for pid, exe in inspector.running_executables()
            if exe and is_within(exe, identity.bundle_path)]


def wait_until_stopped(
    identity: ApplicationIdentity,
    inspector: ProcessInspector,
    timeout_s: float,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    deadline = time.monotonic() + timeout_s
    while True:
        if not running_pids(identity, inspector):
            return True
        if time.monotonic() >= deadline:
            return False
        sleep(POLL_INTERVAL_S)


def ensure_stopped(
    identity: ApplicationIdentity,
    inspector: ProcessInspector,
    controller: ApplicationController,
    prompter,
    ctx: ExecutionContext,
    timeout_s: float = 10.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Decision:
    """
    Return PROCEED when the app is not running (or the user accepts the risk).

    A running app gets a graceful quit request; if that fails or is declined,
    the user must explicitly choose to continue.
    """
    pids = running_pids(identity, inspector)
    if not pids:
        return Decision.PROCEED

    logger.warning("Application '%s' appears to be running (pid %s).",
                   identity.display_name, ", ".join(str(p) for p in pids))

    if prompter.confirm("Attempt to quit the application?", default=True):
        if ctx.dry_run:
            logger.info("DRY RUN: would ask %s to quit", identity.display_name)
            return Decision.PROCEED
        if controller.quit(identity.display_name) and wait_until_stopped(
                identity, inspector, timeout_s, sleep=sleep):
            logger.info("%s has quit.", identity.display_name)
            return Decision.PROCEED
        logger.warning("Failed to quit the application. Try closing it manually.")

    if prompter.confirm("Continue anyway? (may cause incomplete removal)", default=False):
        logger.warning("Continuing while %s is still running.", identity.display_name)
        return Decision.PROCEED
    return Decision.ABORT
