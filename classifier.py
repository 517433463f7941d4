"""
MacClean - Artifact classifier: finds the files and folders an application
left behind in the standard Library locations.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, Dict, List, Optional

import rules
from config import ExclusionConfig, Locations, is_protected
from fsutil import is_within, list_entries
from models import (
    ApplicationIdentity,
    ArtifactCandidate,
    Confidence,
    ItemKind,
    MatchTier,
)

logger = logging.getLogger(__name__)

ProgressCallback = Optional[Callable[[str, int, int], None]]
# callback(root_label, current_index, total_roots)


def find_candidates(
    identity: ApplicationIdentity,
    locations: Locations,
    exclusions: Optional[ExclusionConfig] = None,
    progress_cb: ProgressCallback = None,
) -> List[ArtifactCandidate]:
    """
    Classify every immediate entry of every search root.

    Args:
        identity: Application being removed.
        locations: Search roots to walk, in order.
        exclusions: User exclusions; protected paths are always skipped.
        progress_cb: Optional callback for progress reporting.

    Returns:
        Candidates deduplicated and sorted by path.
    """
    found: Dict[str, ArtifactCandidate] = {}
    roots = locations.search_roots
    total = len(roots)

    for idx, root in enumerate(roots):
        if progress_cb:
            progress_cb(_short(root, locations), idx, total)
        if not os.path.isdir(root):
            continue

        for entry in list_entries(root):
            path = entry.path
            if path in found or is_protected(path, locations, exclusions):
                continue

            tier = rules.classify(identity, path, locations)
            if tier is None:
                continue

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue

            if is_dir and not _directory_allowed(identity, path, tier, locations):
                logger.debug("Skipping directory with mixed content: %s", path)
                continue

            found[path] = ArtifactCandidate(
                path=path,
                kind=ItemKind.DIRECTORY if is_dir else ItemKind.FILE,
                tier=tier,
                confidence=Confidence.CONSERVATIVE,
                source="associated-files",
            )

    if progress_cb:
        progress_cb("Done", total, total)

    return [found[p] for p in sorted(found)]


def _directory_allowed(
    identity: ApplicationIdentity,
    path: str,
    tier: MatchTier,
    locations: Locations,
) -> bool:
    """Mixed-content veto: exact matches and bundle internals are exempt."""
    if tier is MatchTier.EXACT:
        return True
    if is_within(path, identity.contents_path):
        return True
    return not has_foreign_content(identity, path, locations)


def has_foreign_content(
    identity: ApplicationIdentity,
    directory: str,
    locations: Locations,
) -> bool:
    """
    True if anything below `directory` matches no tier for `identity`.

    A subtree we cannot fully read counts as foreign.
    """
    unreadable: List[OSError] = []

    for dirpath, dirnames, filenames in os.walk(directory, onerror=unreadable.append,
                                                followlinks=False):
        for entry_name in dirnames + filenames:
            if rules.classify(identity, os.path.join(dirpath, entry_name), locations) is None:
                return True

    return bool(unreadable)


def _short(path: str, locations: Locations) -> str:
    if is_within(path, locations.home):
        return "~" + path[len(locations.home.rstrip(os.sep)):]
    return path
