"""
MacClean - Deletion engine: backup first, then delete, and log every step.
"""

from __future__ import annotations

import csv
import logging
import os
import shutil
import stat
import sys
from typing import List, Optional

from backup import BackupManager
from commands import run_command
from config import ExclusionConfig, Locations, is_protected
from errors import PermissionDenied
from models import ActionStatus, BackupRecord, ExecutionContext, RemovalSession

logger = logging.getLogger(__name__)


class Remover:
    """Removes filesystem entries for one session, always backing up first."""

    def __init__(
        self,
        session: RemovalSession,
        backups: BackupManager,
        prompter,
        ctx: ExecutionContext,
        locations: Optional[Locations] = None,
        exclusions: Optional[ExclusionConfig] = None,
    ):
        self.session = session
        self.backups = backups
        self.prompter = prompter
        self.ctx = ctx
        self.locations = locations or Locations()
        self.exclusions = exclusions

    def remove(self, path: str, stage: str) -> bool:
        """Back up and delete `path`. Returns True if it is gone (or would be)."""
        record = self.backup(path, stage)
        return self.delete(path, stage, record)

    def backup(self, path: str, stage: str) -> BackupRecord:
        record = self.backups.backup(path)
        self.session.record_backup(stage, record)
        return record

    def delete(self, path: str, stage: str, record: BackupRecord) -> bool:
        """
        Delete `path` after its backup attempt `record`.

        A failed backup blocks the delete unless the context allows it or
        the user explicitly overrides.
        """
        if record.original_path != path:
            raise ValueError(f"backup record for {record.original_path} used to delete {path}")

        if is_protected(path, self.locations, self.exclusions):
            logger.warning("SAFETY BLOCKED: Item protected: %s", path)
            self.session.record(stage, "delete", path, ActionStatus.SKIPPED, "protected path")
            return False

        if not os.path.lexists(path):
            self.session.record(stage, "delete", path, ActionStatus.SKIPPED, "already gone")
            return True

        if not record.succeeded and not self._backup_override(path):
            self.session.record(stage, "delete", path, ActionStatus.SKIPPED,
                                f"backup failed: {record.error}")
            return False

        if self.ctx.dry_run:
            logger.info("DRY RUN: would remove %s", path)
            self.session.record(stage, "delete", path, ActionStatus.DRY_RUN)
            return True

        try:
            self._unlink(path)
        except PermissionDenied as exc:
            logger.warning("Could not remove %s: %s", path, exc.reason)
            self.session.record(stage, "delete", path, ActionStatus.FAILED, exc.reason)
            return False

        logger.info("Removed: %s", path)
        self.session.record(stage, "delete", path)
        return True

    def _backup_override(self, path: str) -> bool:
        if self.ctx.proceed_on_backup_failure:
            logger.warning("Backup of %s failed; deleting anyway (override enabled).", path)
            return True
        return self.prompter.confirm(
            f"Backup of '{path}' failed. Delete it anyway? (cannot be restored)",
            default=False,
        )

    def _unlink(self, path: str) -> None:
        """Delete directly, then with elevation; raise PermissionDenied if it survives."""
        if os.path.isdir(path) and not os.path.islink(path):
            ok = _delete_directory(path)
        else:
            ok = _delete_file(path)
        if ok:
            return

        if not self.ctx.allow_elevation:
            raise PermissionDenied(path, "permission denied (elevation disabled)")

        result = run_command(["rm", "-rf", path], ctx=self.ctx, elevated=True, mutating=True)
        if result.returncode != 0 or os.path.lexists(path):
            reason = (result.stderr or "").strip() or "permission denied"
            raise PermissionDenied(path, reason)


def _delete_file(path: str) -> bool:
    """Delete a single file or symlink, handling read-only permissions."""
    if not os.path.lexists(path):
        return True  # Already gone

    try:
        if not os.path.islink(path):
            os.chmod(path, os.stat(path).st_mode | stat.S_IWUSR)
        os.remove(path)
        return True
    except (OSError, PermissionError):
        return False


def _delete_directory(path: str) -> bool:
    """Delete an entire directory tree."""
    if not os.path.isdir(path):
        return True  # Already gone

    try:
        if sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=_on_rm_error)
        else:
            shutil.rmtree(path, onerror=_on_rm_error)
        return not os.path.exists(path)
    except (OSError, PermissionError):
        return False


def _on_rm_error(func, path, _exc):
    """Error handler for shutil.rmtree - make the entry writable and retry."""
    try:
        os.chmod(path, stat.S_IRWXU)
        parent = os.path.dirname(path)
        os.chmod(parent, os.stat(parent).st_mode | stat.S_IRWXU)
        func(path)
    except (OSError, PermissionError):
        pass


# ── Session log ──────────────────────────────────────────────────────────────

LOG_FIELDS = ["timestamp", "stage", "action", "target", "status", "detail"]


def write_session_log(session: RemovalSession, log_dir: str = ".") -> str:
    """
    Write every session action as CSV.

    Returns:
        Path of the log file, or "" if nothing was written.
    """
    if not session.actions:
        return ""

    timestamp = session.started_at.strftime("%Y%m%d_%H%M%S")
    log_path = os.path.join(log_dir, f"removal_log_{timestamp}.csv")
    rows: List[dict] = [
        {
            "timestamp": a.timestamp.isoformat(),
            "stage": a.stage,
            "action": a.action,
            "target": a.target,
            "status": a.status.value,
            "detail": a.detail,
        }
        for a in session.actions
    ]
    try:
        os.makedirs(log_dir, exist_ok=True)
        with open(log_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=LOG_FIELDS)
            writer.writeheader()
            writer.writerows(rows)
    except (OSError, PermissionError) as exc:
        logger.warning("Could not write removal log %s: %s", log_path, exc)
        return ""
    return log_path
