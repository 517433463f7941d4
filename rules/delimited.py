"""
Rule: Delimited substring - display name appears as a whole token.

"Chrome" matches "Chrome-Helper" and "google_chrome" but not "ChromeHelperX".
"""

from __future__ import annotations

import os
import re

from config import Locations
from models import ApplicationIdentity, MatchTier

name = "delimited"
display_name = "Delimited substring"
description = "Display name bounded by '-', '_' or the ends of the name"
tier = MatchTier.DELIMITED_SUBSTRING

DELIMITERS = "-_"


def token_pattern(display: str) -> re.Pattern:
    delims = re.escape(DELIMITERS)
    return re.compile(rf"(?:^|[{delims}]){re.escape(display)}(?:$|[{delims}])", re.IGNORECASE)


def matches(identity: ApplicationIdentity, path: str, locations: Locations) -> bool:
    if not identity.display_name:
        return False
    base = os.path.basename(os.path.normpath(path))
    stem, _ext = os.path.splitext(base)
    pattern = token_pattern(identity.display_name)
    return bool(pattern.search(base) or pattern.search(stem))
