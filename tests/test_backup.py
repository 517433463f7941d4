"""Tests for backup.py - best-effort backups before deletion."""

from __future__ import annotations

import os
import tarfile

import backup
from backup import BackupManager, _unique_path
from conftest import touch
from models import BackupMethod, ExecutionContext


def test_directory_is_archived_under_mirrored_parent(tmp_path):
    source = str(tmp_path / "data" / "Spotify")
    touch(os.path.join(source, "PersistentCache", "index.dat"), "cache")
    root = str(tmp_path / "backups")

    record = BackupManager(root).backup(source)

    assert record.succeeded
    assert record.method is BackupMethod.ARCHIVE
    expected_dir = os.path.join(root, str(tmp_path / "data").lstrip(os.sep))
    assert record.backup_path == os.path.join(expected_dir, "Spotify.tar.gz")
    with tarfile.open(record.backup_path, "r:gz") as tar:
        assert "Spotify/PersistentCache/index.dat" in tar.getnames()
    assert os.path.isdir(source)


def test_file_is_copied_with_metadata(tmp_path):
    source = touch(str(tmp_path / "prefs" / "com.spotify.client.plist"), "<plist/>")
    os.utime(source, (1_600_000_000, 1_600_000_000))

    record = BackupManager(str(tmp_path / "backups")).backup(source)

    assert record.succeeded
    assert record.method is BackupMethod.RAW_COPY
    with open(record.backup_path, encoding="utf-8") as f:
        assert f.read() == "<plist/>"
    assert int(os.stat(record.backup_path).st_mtime) == 1_600_000_000


def test_missing_path_is_a_noop_success(tmp_path):
    record = BackupManager(str(tmp_path / "backups")).backup(str(tmp_path / "gone"))

    assert record.succeeded
    assert record.method is BackupMethod.NONE
    assert record.backup_path is None
    assert not os.path.exists(tmp_path / "backups")


def test_dry_run_writes_nothing(tmp_path):
    source = touch(str(tmp_path / "data" / "file.txt"))
    manager = BackupManager(str(tmp_path / "backups"), ExecutionContext(dry_run=True))

    record = manager.backup(source)

    assert record.succeeded
    assert record.method is BackupMethod.NONE
    assert not os.path.exists(tmp_path / "backups")


def test_archive_failure_falls_back_to_raw_copy(tmp_path, monkeypatch):
    source = str(tmp_path / "data" / "Spotify")
    touch(os.path.join(source, "a.txt"), "hello")

    def broken_open(*args, **kwargs):
        raise tarfile.TarError("compression failed")

    monkeypatch.setattr(backup.tarfile, "open", broken_open)

    record = BackupManager(str(tmp_path / "backups")).backup(source)

    assert record.succeeded
    assert record.method is BackupMethod.RAW_COPY
    with open(os.path.join(record.backup_path, "a.txt"), encoding="utf-8") as f:
        assert f.read() == "hello"


def test_failed_backup_is_reported_not_raised(tmp_path, monkeypatch):
    source = str(tmp_path / "data" / "Spotify")
    touch(os.path.join(source, "a.txt"))

    def broken_open(*args, **kwargs):
        raise OSError("disk full")

    def broken_copytree(*args, **kwargs):
        raise OSError("disk still full")

    monkeypatch.setattr(backup.tarfile, "open", broken_open)
    monkeypatch.setattr(backup.shutil, "copytree", broken_copytree)

    record = BackupManager(str(tmp_path / "backups")).backup(source)

    assert not record.succeeded
    assert record.backup_path is None
    assert "disk still full" in record.error
    assert os.path.isdir(source)


def test_repeated_backups_do_not_overwrite(tmp_path):
    source = touch(str(tmp_path / "data" / "notes.txt"), "one")
    manager = BackupManager(str(tmp_path / "backups"))

    first = manager.backup(source)
    touch(source, "two")
    second = manager.backup(source)

    assert first.backup_path != second.backup_path
    assert second.backup_path.endswith("notes-1.txt")


def test_unique_path_keeps_double_extension(tmp_path):
    archive = touch(str(tmp_path / "Spotify.tar.gz"))
    assert _unique_path(archive) == str(tmp_path / "Spotify-1.tar.gz")
    assert _unique_path(str(tmp_path / "fresh.tar.gz")) == str(tmp_path / "fresh.tar.gz")
