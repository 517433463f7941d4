"""
MacClean - Login items registered with System Events.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from commands import applescript_string, osascript
from models import ActionStatus, ExecutionContext, LoginItemEntry, RemovalSession

logger = logging.getLogger(__name__)

STAGE = "login-items"

# One name per line; names may contain commas.
LIST_SCRIPT = """\
tell application "System Events" to set itemNames to name of every login item
set AppleScript's text item delimiters to linefeed
return itemNames as text"""


class SystemEventsLoginItems:
    """Reads and deletes login items through AppleScript."""

    def __init__(self, ctx: Optional[ExecutionContext] = None):
        self.ctx = ctx or ExecutionContext()

    def list_items(self) -> List[LoginItemEntry]:
        result = osascript(LIST_SCRIPT, ctx=self.ctx)
        if result.returncode != 0:
            logger.warning("Could not read login items: %s", (result.stderr or "").strip())
            return []
        names = [n.strip() for n in result.stdout.splitlines()]
        return [LoginItemEntry(name=n) for n in names if n]

    def delete(self, name: str) -> bool:
        script = f"tell application \"System Events\" to delete login item {applescript_string(name)}"
        return osascript(script, ctx=self.ctx, mutating=True).returncode == 0


def find_login_item(display_name: str, items: List[LoginItemEntry]) -> Optional[LoginItemEntry]:
    wanted = display_name.strip().lower()
    for item in items:
        if item.name.strip().lower() == wanted:
            return item
    return None


def remove_if_present(
    display_name: str,
    registry: SystemEventsLoginItems,
    session: RemovalSession,
    prompter,
    ctx: ExecutionContext,
) -> bool:
    """
    Delete the login item named after the app, if there is one.

    Returns:
        True if the login item was removed (or would be, in dry-run mode).
    """
    items = registry.list_items()
    session.login_items = items

    entry = find_login_item(display_name, items)
    if entry is None:
        logger.info("Application not found in login items.")
        return False

    logger.info("Found '%s' in login items.", entry.name)
    if not prompter.confirm(f"Remove '{entry.name}' from login items?", default=True):
        session.record(STAGE, "remove-login-item", entry.name, ActionStatus.SKIPPED, "declined")
        return False

    if ctx.dry_run:
        session.record(STAGE, "remove-login-item", entry.name, ActionStatus.DRY_RUN)
        return True

    if registry.delete(entry.name):
        logger.info("Removed '%s' from login items.", entry.name)
        session.record(STAGE, "remove-login-item", entry.name)
        return True

    logger.warning("Failed to remove '%s' from login items.", entry.name)
    session.record(STAGE, "remove-login-item", entry.name, ActionStatus.FAILED,
                   "System Events refused the deletion")
    return False
