"""
MacClean - App Store install receipts, keyed by bundle identifier.
"""

from __future__ import annotations

import os
from typing import Optional

from config import Locations
from models import ApplicationIdentity


def receipt_path(identity: ApplicationIdentity, locations: Locations) -> Optional[str]:
    if not identity.bundle_identifier:
        return None
    return os.path.join(locations.receipts_dir, f"{identity.bundle_identifier}.receipt")


def find_receipt(identity: ApplicationIdentity, locations: Locations) -> Optional[str]:
    """Path of the app's App Store receipt, if one exists."""
    path = receipt_path(identity, locations)
    if path and os.path.isfile(path):
        return path
    return None
