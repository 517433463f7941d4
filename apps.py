"""
MacClean - Installed application discovery: listing, unused apps, broken bundles.
"""

from __future__ import annotations

import os
import plistlib
import shutil
import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from xml.parsers.expat import ExpatError

from config import SYSTEM_APPS, Locations
from fsutil import get_dir_size, list_entries
from models import _format_size


@dataclass
class InstalledApp:
    path: str
    last_accessed: float    # epoch seconds

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def last_accessed_str(self) -> str:
        return datetime.fromtimestamp(self.last_accessed).strftime("%Y-%m-%d %H:%M:%S")

    @property
    def size_human(self) -> str:
        return _format_size(get_dir_size(self.path))


def list_installed_apps(locations: Locations) -> List[str]:
    """User-installed .app bundles up to two levels deep, built-in apps excluded."""
    system_root = os.path.join(locations.root, "Applications")
    apps = []
    for folder in locations.application_dirs:
        for entry in list_entries(folder):
            if not entry.is_dir(follow_symlinks=False):
                continue
            if folder == system_root and entry.name in SYSTEM_APPS:
                continue
            if entry.name.endswith(".app"):
                apps.append(entry.path)
                continue
            # One level down (e.g. /Applications/Adobe Photoshop 2024/...)
            for sub in list_entries(entry.path):
                if sub.name.endswith(".app") and sub.is_dir(follow_symlinks=False):
                    apps.append(sub.path)
    return sorted(apps, key=lambda p: os.path.basename(p).lower())


def last_accessed(path: str) -> float:
    try:
        return os.stat(path).st_atime
    except OSError:
        return 0.0


def find_unused_apps(locations: Locations, days: int = 30,
                     now: Optional[float] = None) -> List[InstalledApp]:
    """Applications not accessed in `days` days, oldest first."""
    now = time.time() if now is None else now
    cutoff = now - days * 86400
    unused = [InstalledApp(path=p, last_accessed=last_accessed(p))
              for p in list_installed_apps(locations)]
    unused = [a for a in unused if a.last_accessed < cutoff]
    return sorted(unused, key=lambda a: a.last_accessed)


def bundle_problem(app_path: str) -> Optional[str]:
    """Why a bundle looks broken, or None if it looks fine."""
    contents = os.path.join(app_path, "Contents")
    info = os.path.join(contents, "Info.plist")
    if not (os.path.isdir(contents) and os.path.isdir(os.path.join(contents, "MacOS"))
            and os.path.isfile(info)):
        return "Missing essential components"

    try:
        with open(info, "rb") as fp:
            descriptor = plistlib.load(fp)
    except (OSError, ValueError, ExpatError):
        return "Invalid Info.plist"

    exec_name = descriptor.get("CFBundleExecutable") if isinstance(descriptor, dict) else None
    if exec_name and not os.path.isfile(os.path.join(contents, "MacOS", exec_name)):
        return f"Missing main executable: {exec_name}"
    return None


def check_broken_apps(locations: Locations) -> List[tuple]:
    """(path, problem) for every installed bundle that looks broken."""
    broken = []
    for app in list_installed_apps(locations):
        problem = bundle_problem(app)
        if problem:
            broken.append((app, problem))
    return broken


def free_space_mb(path: str) -> int:
    try:
        return shutil.disk_usage(path).free // (1024 * 1024)
    except OSError:
        return -1
