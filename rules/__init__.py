"""
MacClean - Match tier registry.

Each rule module exposes:
    name: str           - internal identifier
    display_name: str   - human-readable name
    description: str    - what the rule matches
    tier: MatchTier     - tier reported when the rule fires
    matches(identity, path, locations) -> bool

Rules are tried in list order; the first one that fires decides the tier.
"""

from __future__ import annotations

from typing import Any, List, Optional

from config import Locations
from models import ApplicationIdentity, MatchTier
from rules import bundle_id, delimited, exact, known_location

# Master list of match tiers, highest precedence first
ALL_RULES: List[Any] = [
    exact,
    delimited,
    known_location,
    bundle_id,
]


def classify(
    identity: ApplicationIdentity,
    path: str,
    locations: Locations,
    rules: Optional[List[Any]] = None,
) -> Optional[MatchTier]:
    """Return the tier of the first rule matching `path`, or None."""
    for rule in rules if rules is not None else ALL_RULES:
        if rule.matches(identity, path, locations):
            return rule.tier
    return None
