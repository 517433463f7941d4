"""
Rule: Bundle identifier path - the path carries the bundle identifier, either
literally (com.spotify.client) or domain-reversed (com/spotify/client).
"""

from __future__ import annotations

import os

from config import Locations
from models import ApplicationIdentity, MatchTier

name = "bundle_id"
display_name = "Bundle identifier"
description = "Path contains the bundle identifier or its dotted-path form"
tier = MatchTier.BUNDLE_IDENTIFIER_PATH


def matches(identity: ApplicationIdentity, path: str, locations: Locations) -> bool:
    bundle_id = (identity.bundle_identifier or "").strip().lower()
    if not bundle_id:
        return False
    haystack = os.path.normpath(path).lower()
    if bundle_id in haystack:
        return True
    if "." not in bundle_id:
        return False
    return bundle_id.replace(".", os.sep) in haystack
