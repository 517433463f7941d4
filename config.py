"""
MacClean - Search locations, protected paths, and persistent settings.

Provides:
  - Locations: every directory the engine searches, rooted at a home and a
    system root so the whole layout can be relocated (tests use a temp tree)
  - Exclusion patterns (paths/globs that should never be deleted)
  - Persistent config loading/saving from JSON
"""

from __future__ import annotations

import fnmatch
import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Set

CONFIG_DIR = os.path.expanduser("~/Library/Application Support/MacClean")
CONFIG_FILE = os.path.join(CONFIG_DIR, "config.json")
EXCLUSIONS_FILE = os.path.join(CONFIG_DIR, "exclusions.json")

DEFAULT_BACKUP_BASE = os.path.expanduser("~/Documents/clean_script_backups")
DEFAULT_LOG_FILE = os.path.expanduser("~/Library/Logs/macclean.log")

# Apple applications that ship with macOS and are never offered for removal.
SYSTEM_APPS = frozenset({
    "Safari.app", "Mail.app", "App Store.app", "System Preferences.app",
    "System Settings.app", "Utilities", "Photos.app", "Messages.app",
    "FaceTime.app", "Contacts.app", "Calendar.app", "Reminders.app",
    "Notes.app", "Books.app", "Preview.app", "Music.app", "TV.app",
    "Podcasts.app", "Maps.app", "News.app", "Voice Memos.app", "Home.app",
    "Stocks.app", "Siri.app", "QuickTime Player.app", "TextEdit.app",
    "Dictionary.app", "Calculator.app", "Stickies.app", "Image Capture.app",
    "Automator.app", "Console.app", "Script Editor.app", "Terminal.app",
    "Activity Monitor.app", "System Information.app",
    "Boot Camp Assistant.app", "Migration Assistant.app",
    "VoiceOver Utility.app", "ColorSync Utility.app", "Time Machine.app",
    "Chess.app", "Clock.app",
})


# ── Locations ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Locations:
    """All filesystem roots the engine looks at."""
    home: str = os.path.expanduser("~")
    root: str = "/"

    def user_lib(self, *parts: str) -> str:
        return os.path.join(self.home, "Library", *parts)

    def system_lib(self, *parts: str) -> str:
        return os.path.join(self.root, "Library", *parts)

    @property
    def application_dirs(self) -> List[str]:
        return [
            os.path.join(self.root, "Applications"),
            os.path.join(self.home, "Applications"),
        ]

    @property
    def application_support(self) -> str:
        return self.user_lib("Application Support")

    @property
    def user_agents(self) -> str:
        return self.user_lib("LaunchAgents")

    @property
    def system_agents(self) -> str:
        return self.system_lib("LaunchAgents")

    @property
    def system_daemons(self) -> str:
        return self.system_lib("LaunchDaemons")

    @property
    def launch_dirs(self) -> List[str]:
        return [self.user_agents, self.system_agents, self.system_daemons]

    @property
    def search_roots(self) -> List[str]:
        """Ordered roots scanned by the classifier and the leftover sweep."""
        return [
            self.user_lib("Preferences"),
            self.user_lib("Application Support"),
            self.user_lib("Caches"),
            self.user_lib("Logs"),
            self.user_lib("Saved Application State"),
            self.user_lib("WebKit"),
            self.user_lib("HTTPStorages"),
            self.user_lib("Cookies"),
            self.system_lib("Preferences"),
            self.system_lib("Application Support"),
            self.system_lib("Caches"),
            self.system_lib("Logs"),
            self.system_agents,
            self.user_agents,
            self.system_daemons,
            self.user_lib("Containers"),
            self.user_lib("Group Containers"),
        ]

    @property
    def known_app_data_roots(self) -> List[str]:
        """Roots where a folder named after an app is conventionally that app's data."""
        return [
            self.user_lib("Application Support"),
            self.user_lib("Caches"),
            self.user_lib("Saved Application State"),
            self.user_lib("WebKit"),
            self.user_lib("HTTPStorages"),
            self.user_lib("Containers"),
            self.user_lib("Group Containers"),
            self.system_lib("Application Support"),
            self.system_lib("Caches"),
        ]

    @property
    def receipts_dir(self) -> str:
        return self.system_lib("Application Support", "App Store", "receipts")

    @property
    def protected_paths(self) -> Set[str]:
        """Paths that must never be deleted, whatever matched them."""
        paths = {
            self.home,
            os.path.join(self.home, "Desktop"),
            os.path.join(self.home, "Documents"),
            os.path.join(self.home, "Downloads"),
            os.path.join(self.home, "Library"),
            os.path.join(self.root, "Library"),
            os.path.join(self.root, "System"),
        }
        paths.update(self.application_dirs)
        paths.update(self.search_roots)
        return {os.path.normpath(p) for p in paths}


# ── Exclusion List ───────────────────────────────────────────────────────────

@dataclass
class ExclusionConfig:
    """Paths and patterns that should be excluded from removal."""
    # Exact paths to exclude (case-insensitive, APFS default)
    paths: Set[str] = field(default_factory=set)
    # Glob patterns to exclude (e.g., "*/Application Support/Google*")
    patterns: List[str] = field(default_factory=list)


def load_exclusions() -> ExclusionConfig:
    """Load exclusion config from disk, or return defaults."""
    config = ExclusionConfig()
    try:
        if os.path.isfile(EXCLUSIONS_FILE):
            with open(EXCLUSIONS_FILE, "r", encoding="utf-8") as f:
                data = json.load(f)
            config.paths = set(data.get("paths", []))
            config.patterns = data.get("patterns", [])
    except (json.JSONDecodeError, OSError, PermissionError, AttributeError, TypeError):
        pass
    return config


def save_exclusions(config: ExclusionConfig) -> None:
    """Save exclusion config to disk."""
    try:
        os.makedirs(CONFIG_DIR, exist_ok=True)
        data = {
            "paths": sorted(config.paths),
            "patterns": config.patterns,
        }
        with open(EXCLUSIONS_FILE, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    except (OSError, PermissionError):
        pass


def is_excluded(path: str, exclusions: ExclusionConfig) -> bool:
    """Check if a path matches any exclusion rule."""
    path_lower = os.path.normpath(path).lower()

    for excl in exclusions.paths:
        if os.path.normpath(excl).lower() == path_lower:
            return True

    for pattern in exclusions.patterns:
        if fnmatch.fnmatch(path_lower, pattern.lower()):
            return True

    return False


def is_protected(path: str, locations: Locations, exclusions: ExclusionConfig = None) -> bool:
    """True for built-in protected paths and user exclusions."""
    if os.path.normpath(path) in locations.protected_paths:
        return True
    if exclusions is not None and is_excluded(path, exclusions):
        return True
    return False


# ── General Config ───────────────────────────────────────────────────────────

@dataclass
class AppConfig:
    """Application-wide configuration."""
    backup_base: str = DEFAULT_BACKUP_BASE
    log_dir: str = os.path.expanduser("~/Library/Logs")
    dry_run: bool = False
    allow_elevation: bool = True
    proceed_on_backup_failure: bool = False   # Delete even when the backup failed
    quit_timeout_s: float = 10.0               # Wait for a graceful quit
    min_free_space_mb: int = 500

    def session_backup_dir(self, when: datetime = None) -> str:
        """One backup directory per session, named after its start time."""
        when = when or datetime.now()
        return os.path.join(self.backup_base, when.strftime("%Y%m%d_%H%M%S"))


def load_config() -> AppConfig:
    """Load app config from disk, or return defaults."""
    config = AppConfig()
    try:
        if os.path.isfile(CONFIG_FILE):
            with open(CONFIG_FILE, "r", encoding="utf-8") as f:
                data = json.load(f)
            config.backup_base = data.get("backup_base", config.backup_base)
            config.log_dir = data.get("log_dir", config.log_dir)
            config.dry_run = data.get("dry_run", False)
            config.allow_elevation = data.get("allow_elevation", True)
            config.proceed_on_backup_failure = data.get("proceed_on_backup_failure", False)
            config.quit_timeout_s = float(data.get("quit_timeout_s", config.quit_timeout_s))
            config.min_free_space_mb = int(data.get("min_free_space_mb", config.min_free_space_mb))
    except (json.JSONDecodeError, OSError, PermissionError, AttributeError, TypeError, ValueError):
        pass
    return config


def save_config(config: AppConfig) -> None:
    """Save app config to disk."""
    try:
        os.makedirs(CONFIG_DIR, exist_ok=True)
        data = {
            "backup_base": config.backup_base,
            "log_dir": config.log_dir,
            "dry_run": config.dry_run,
            "allow_elevation": config.allow_elevation,
            "proceed_on_backup_failure": config.proceed_on_backup_failure,
            "quit_timeout_s": config.quit_timeout_s,
            "min_free_space_mb": config.min_free_space_mb,
        }
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    except (OSError, PermissionError):
        pass
