"""
MacClean - Error taxonomy for the removal engine.

Only BundleNotFound is fatal; everything else is caught where it happens and
recorded in the removal session.
"""

from __future__ import annotations


class MacCleanError(Exception):
    """Base class for all engine errors."""


class BundleNotFound(MacCleanError):
    """The selected application bundle does not exist or is not a bundle."""

    def __init__(self, path: str):
        super().__init__(f"Application bundle not found: {path}")
        self.path = path


class IdentityUnresolvable(MacCleanError):
    """The bundle descriptor is missing or cannot be parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read bundle descriptor {path}: {reason}")
        self.path = path
        self.reason = reason


class BackupFailed(MacCleanError):
    """No usable backup of an entry could be written."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Backup of {path} failed: {reason}")
        self.path = path
        self.reason = reason


class PermissionDenied(MacCleanError):
    """A deletion or a service registry change was refused by the OS."""

    def __init__(self, target: str, reason: str = "permission denied"):
        super().__init__(f"{target}: {reason}")
        self.target = target
        self.reason = reason


class UserCancelled(MacCleanError):
    """The user backed out of the current stage."""
