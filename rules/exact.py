"""
Rule: Exact - entry name equals the application's display name.
"""

from __future__ import annotations

import os

from config import Locations
from models import ApplicationIdentity, MatchTier

name = "exact"
display_name = "Exact name"
description = "Basename (or basename without extension) equals the display name"
tier = MatchTier.EXACT


def matches(identity: ApplicationIdentity, path: str, locations: Locations) -> bool:
    target = identity.display_name.lower()
    if not target:
        return False
    base = os.path.basename(os.path.normpath(path)).lower()
    stem, _ext = os.path.splitext(base)
    return base == target or stem == target
