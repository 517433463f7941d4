"""
MacClean - Leftover sweep: a broader second pass run after the main removal.

No mixed-content veto here. The user has already said the whole app goes,
and every hit is still confirmed one by one.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional, Tuple

import rules
from config import ExclusionConfig, Locations, is_protected
from fsutil import list_entries
from models import (
    ApplicationIdentity,
    ArtifactCandidate,
    Confidence,
    ItemKind,
    MatchTier,
)

logger = logging.getLogger(__name__)

STRIP_CHARS = (" ", "-", "_")


def _squash(text: str) -> str:
    text = text.lower()
    for ch in STRIP_CHARS:
        text = text.replace(ch, "")
    return text


def relaxed_match(identity: ApplicationIdentity, basename: str) -> bool:
    """Lowercased basename contains the delimiter-stripped display name."""
    needle = identity.stripped_name
    if not needle:
        return False
    lowered = basename.lower()
    return needle in lowered or needle in _squash(basename)


def find_leftovers(
    identity: ApplicationIdentity,
    locations: Locations,
    exclusions: Optional[ExclusionConfig] = None,
) -> List[ArtifactCandidate]:
    """Directories still carrying the app's name after the primary removal."""
    found: Dict[str, ArtifactCandidate] = {}
    seen_inodes = set()

    def add(path: str, tier: MatchTier) -> None:
        if path in found or is_protected(path, locations, exclusions):
            return
        key = _inode(path)
        if key is not None and key in seen_inodes:
            return  # Same directory reached through a different case
        if key is not None:
            seen_inodes.add(key)
        found[path] = ArtifactCandidate(
            path=path,
            kind=ItemKind.DIRECTORY,
            tier=tier,
            confidence=Confidence.BROAD,
            source="leftovers",
        )

    # Direct check in Application Support
    for name in (identity.display_name, identity.display_name.lower()):
        direct = os.path.join(locations.application_support, name)
        if name and os.path.isdir(direct):
            add(direct, MatchTier.EXACT)

    # Shallow scan of every search root
    for root in locations.search_roots:
        for entry in list_entries(root):
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
            except OSError:
                continue
            if relaxed_match(identity, entry.name):
                tier = rules.classify(identity, entry.path, locations) or MatchTier.RELAXED_SUBSTRING
                add(entry.path, tier)

    logger.debug("Leftover sweep found %d directories", len(found))
    return [found[p] for p in sorted(found)]


def _inode(path: str) -> Optional[Tuple[int, int]]:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return (st.st_dev, st.st_ino)
