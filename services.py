"""
MacClean - Launch agents and daemons registered by an application.

Descriptors are found by file name, their Label is read from the plist, and
launchctl tells us whether the job is loaded. Removal is backup, unload,
delete; a failed unload is only a warning.
"""

from __future__ import annotations

import logging
import os
import plistlib
from typing import List, Optional
from xml.parsers.expat import ExpatError

from commands import run_command
from config import Locations
from fsutil import list_entries
from models import (
    ActionStatus,
    ApplicationIdentity,
    ExecutionContext,
    ServiceDescriptor,
    ServiceScope,
)

logger = logging.getLogger(__name__)

STAGE = "launch-services"


class LaunchctlRegistry:
    """The launchd job registry, user or system domain depending on scope."""

    def __init__(self, ctx: Optional[ExecutionContext] = None):
        self.ctx = ctx or ExecutionContext()

    def is_loaded(self, label: str, scope: ServiceScope) -> bool:
        result = run_command(["launchctl", "list", label], ctx=self.ctx, elevated=scope.is_system)
        return result.returncode == 0

    def unload(self, descriptor: ServiceDescriptor) -> bool:
        result = run_command(
            ["launchctl", "unload", "-w", descriptor.descriptor_path],
            ctx=self.ctx,
            elevated=descriptor.scope.is_system,
            mutating=True,
        )
        return result.returncode == 0


def scoped_dirs(locations: Locations):
    return [
        (ServiceScope.USER_AGENT, locations.user_agents),
        (ServiceScope.SYSTEM_AGENT, locations.system_agents),
        (ServiceScope.SYSTEM_DAEMON, locations.system_daemons),
    ]


def read_label(plist_path: str) -> Optional[str]:
    try:
        with open(plist_path, "rb") as fp:
            data = plistlib.load(fp)
    except (OSError, ValueError, ExpatError) as exc:
        logger.debug("Cannot read label from %s: %s", plist_path, exc)
        return None
    label = data.get("Label") if isinstance(data, dict) else None
    return label if isinstance(label, str) and label else None


def descriptor_matches(identity: ApplicationIdentity, filename: str) -> bool:
    lowered = filename.lower()
    if not lowered.endswith(".plist"):
        return False
    needles = [identity.display_name.lower()]
    if identity.bundle_identifier:
        needles.append(identity.bundle_identifier.lower())
    return any(n and n in lowered for n in needles)


def find_descriptors(
    identity: ApplicationIdentity,
    locations: Locations,
    registry: LaunchctlRegistry,
) -> List[ServiceDescriptor]:
    """Service descriptors whose file name carries the app name or bundle id."""
    found: List[ServiceDescriptor] = []
    for scope, directory in scoped_dirs(locations):
        for entry in list_entries(directory):
            if not entry.is_file(follow_symlinks=False) and not entry.is_symlink():
                continue
            if not descriptor_matches(identity, entry.name):
                continue
            label = read_label(entry.path)
            loaded = registry.is_loaded(label, scope) if label else False
            found.append(ServiceDescriptor(
                descriptor_path=entry.path,
                label=label,
                scope=scope,
                loaded=loaded,
            ))
    return sorted(found, key=lambda d: d.descriptor_path)


def remove_descriptor(
    descriptor: ServiceDescriptor,
    registry: LaunchctlRegistry,
    remover,
) -> bool:
    """
    Back up, unload (if loaded), then delete one descriptor.

    Returns:
        True if the descriptor file is gone (or would be, in dry-run mode).
    """
    session = remover.session
    record = remover.backup(descriptor.descriptor_path, STAGE)
    target = descriptor.label or os.path.basename(descriptor.descriptor_path)

    if descriptor.loaded:
        logger.info("Unloading: %s", target)
        if remover.ctx.dry_run:
            session.record(STAGE, "unload", target, ActionStatus.DRY_RUN)
        elif registry.unload(descriptor):
            descriptor.loaded = False
            session.record(STAGE, "unload", target)
        else:
            logger.warning("Failed to unload %s; removing the descriptor anyway.", target)
            session.record(STAGE, "unload", target, ActionStatus.WARNING, "unload failed")

    logger.info("Removing: %s", descriptor.descriptor_path)
    return remover.delete(descriptor.descriptor_path, STAGE, record)
