"""
MacClean - Per-site storage an app left inside web browser profiles.

Apps that wrap a web service (Spotify, Slack, Notion...) often leave IndexedDB,
Local Storage and Service Worker partitions behind in the user's browsers.
"""

from __future__ import annotations

import os
from typing import Dict, List, Optional

from config import ExclusionConfig, Locations, is_protected
from fsutil import list_entries
from leftovers import relaxed_match
from models import (
    ApplicationIdentity,
    ArtifactCandidate,
    Confidence,
    ItemKind,
    MatchTier,
)

# Chromium-family user data roots, relative to ~/Library/Application Support
CHROMIUM_ROOTS = [
    os.path.join("Google", "Chrome"),
    os.path.join("Google", "Chrome Beta"),
    "Chromium",
    "Microsoft Edge",
    os.path.join("BraveSoftware", "Brave-Browser"),
    "Vivaldi",
    "com.operasoftware.Opera",  # Opera
    os.path.join("Arc", "User Data"),
]

# Web storage partitions inside a Chromium profile
CHROMIUM_PARTITIONS = [
    "IndexedDB",
    "Local Storage",
    os.path.join("Local Storage", "leveldb"),
    "Service Worker",
    os.path.join("Service Worker", "CacheStorage"),
    os.path.join("Service Worker", "ScriptCache"),
]

FIREFOX_PROFILES = os.path.join("Firefox", "Profiles")
FIREFOX_PARTITIONS = [
    os.path.join("storage", "default"),
    os.path.join("storage", "permanent"),
    os.path.join("storage", "temporary"),
]


def chromium_profiles(user_data: str) -> List[str]:
    """Profile directories under a Chromium user data root."""
    profiles = []
    if os.path.isdir(os.path.join(user_data, "IndexedDB")):
        profiles.append(user_data)  # Opera keeps a single profile at the root
    for entry in list_entries(user_data):
        if entry.is_dir(follow_symlinks=False) and (
                entry.name == "Default" or entry.name.startswith("Profile ")):
            profiles.append(entry.path)
    return profiles


def firefox_profiles(locations: Locations) -> List[str]:
    root = os.path.join(locations.application_support, FIREFOX_PROFILES)
    return [e.path for e in list_entries(root) if e.is_dir(follow_symlinks=False)]


def storage_partitions(locations: Locations) -> List[str]:
    """Every existing partition directory across all known browsers."""
    partitions = []
    for rel in CHROMIUM_ROOTS:
        user_data = os.path.join(locations.application_support, rel)
        for profile in chromium_profiles(user_data):
            for part in CHROMIUM_PARTITIONS:
                path = os.path.join(profile, part)
                if os.path.isdir(path):
                    partitions.append(path)
    for profile in firefox_profiles(locations):
        for part in FIREFOX_PARTITIONS:
            path = os.path.join(profile, part)
            if os.path.isdir(path):
                partitions.append(path)
    return partitions


def find_browser_storage(
    identity: ApplicationIdentity,
    locations: Locations,
    exclusions: Optional[ExclusionConfig] = None,
) -> List[ArtifactCandidate]:
    """Origin entries in browser storage partitions named after the app."""
    found: Dict[str, ArtifactCandidate] = {}
    for partition in storage_partitions(locations):
        for entry in list_entries(partition):
            if entry.path in found or not relaxed_match(identity, entry.name):
                continue
            if is_protected(entry.path, locations, exclusions):
                continue
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue
            found[entry.path] = ArtifactCandidate(
                path=entry.path,
                kind=ItemKind.DIRECTORY if is_dir else ItemKind.FILE,
                tier=MatchTier.KNOWN_LOCATION_SUBSTRING,
                confidence=Confidence.BROAD,
                source="browser-storage",
            )
    return [found[p] for p in sorted(found)]
