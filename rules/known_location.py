"""
Rule: Known location substring - display name anywhere in an entry that sits
directly under a per-app data root (Application Support, Caches, Containers...).
"""

from __future__ import annotations

import os

from config import Locations
from models import ApplicationIdentity, MatchTier

name = "known_location"
display_name = "Known location substring"
description = "Entry directly under an app-data root containing the display name"
tier = MatchTier.KNOWN_LOCATION_SUBSTRING


def matches(identity: ApplicationIdentity, path: str, locations: Locations) -> bool:
    target = identity.display_name.lower()
    if not target:
        return False
    path = os.path.normpath(path)
    parent = os.path.dirname(path)
    known = {os.path.normpath(p) for p in locations.known_app_data_roots}
    if parent not in known:
        return False
    return target in os.path.basename(path).lower()
