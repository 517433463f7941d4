"""
MacClean - Best-effort backups taken before anything is deleted.

Directories are archived as .tar.gz under the session backup root, mirroring
the original parent path; if archiving fails a raw recursive copy is tried.
Files are copied with their metadata. A failed backup is reported in the
returned record and never raised.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
from datetime import datetime
from typing import Optional

from errors import BackupFailed
from models import BackupMethod, BackupRecord, ExecutionContext

logger = logging.getLogger(__name__)


class BackupManager:
    """Writes backups for one removal session under `backup_root`."""

    def __init__(self, backup_root: str, ctx: Optional[ExecutionContext] = None):
        self.backup_root = backup_root
        self.ctx = ctx or ExecutionContext()

    def backup(self, path: str) -> BackupRecord:
        """Back up `path`; the record says whether it worked."""
        if not os.path.lexists(path):
            logger.debug("Skipping backup of non-existent item: %s", path)
            return BackupRecord(original_path=path, backup_path=None,
                                method=BackupMethod.NONE, succeeded=True)

        if self.ctx.dry_run:
            logger.info("DRY RUN: would back up %s", path)
            return BackupRecord(original_path=path, backup_path=None,
                                method=BackupMethod.NONE, succeeded=True)

        logger.info("Backing up %s", path)
        try:
            target_dir = self._target_dir(path)
            if os.path.isdir(path) and not os.path.islink(path):
                return self._backup_directory(path, target_dir)
            return self._backup_file(path, target_dir)
        except BackupFailed as exc:
            logger.warning("Failed to backup '%s': %s", path, exc.reason)
            return BackupRecord(original_path=path, backup_path=None, method=BackupMethod.NONE,
                                created_at=datetime.now(), succeeded=False, error=exc.reason)

    # ── internals ────────────────────────────────────────────────────────

    def _target_dir(self, path: str) -> str:
        parent = os.path.dirname(os.path.abspath(path))
        mirrored = os.path.join(self.backup_root, parent.lstrip(os.sep))
        try:
            os.makedirs(mirrored, exist_ok=True)
            return mirrored
        except OSError as exc:
            logger.warning("Failed to create backup directory at %s (%s). Trying alternate location.",
                           mirrored, exc)
        fallback = os.path.join(self.backup_root, "fallback")
        try:
            os.makedirs(fallback, exist_ok=True)
        except OSError as exc:
            raise BackupFailed(path, f"cannot create backup directory: {exc}") from exc
        return fallback

    def _backup_directory(self, path: str, target_dir: str) -> BackupRecord:
        name = os.path.basename(os.path.normpath(path))
        archive = _unique_path(os.path.join(target_dir, f"{name}.tar.gz"))
        logger.debug("Compressing directory for backup: %s -> %s", path, archive)
        try:
            with tarfile.open(archive, "w:gz") as tar:
                tar.add(path, arcname=name)
            return BackupRecord(original_path=path, backup_path=archive,
                                method=BackupMethod.ARCHIVE)
        except (OSError, tarfile.TarError) as exc:
            logger.warning("Failed to compress backup of '%s' (%s). Attempting direct copy.", path, exc)
            _discard(archive)

        copy_dest = _unique_path(os.path.join(target_dir, name))
        try:
            shutil.copytree(path, copy_dest, symlinks=True)
            return BackupRecord(original_path=path, backup_path=copy_dest,
                                method=BackupMethod.RAW_COPY)
        except (OSError, shutil.Error) as exc:
            _discard(copy_dest)
            raise BackupFailed(path, str(exc)) from exc

    def _backup_file(self, path: str, target_dir: str) -> BackupRecord:
        dest = _unique_path(os.path.join(target_dir, os.path.basename(path)))
        try:
            shutil.copy2(path, dest, follow_symlinks=False)
            return BackupRecord(original_path=path, backup_path=dest,
                                method=BackupMethod.RAW_COPY)
        except OSError as exc:
            raise BackupFailed(path, str(exc)) from exc


def _unique_path(path: str) -> str:
    """Append -1, -2, ... until `path` does not exist yet."""
    if not os.path.lexists(path):
        return path
    if path.endswith(".tar.gz"):
        base, ext = path[:-7], ".tar.gz"
    else:
        base, ext = os.path.splitext(path)
    n = 1
    while os.path.lexists(f"{base}-{n}{ext}"):
        n += 1
    return f"{base}-{n}{ext}"


def _discard(path: str) -> None:
    try:
        if os.path.isdir(path):
            shutil.rmtree(path)
        elif os.path.lexists(path):
            os.remove(path)
    except OSError:
        pass
