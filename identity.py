"""
MacClean - Resolve an application bundle into the identity used for matching.
"""

from __future__ import annotations

import logging
import os
import plistlib
from typing import Any, Dict
from xml.parsers.expat import ExpatError

from errors import BundleNotFound, IdentityUnresolvable
from models import ApplicationIdentity

logger = logging.getLogger(__name__)

BUNDLE_SUFFIX = ".app"


def info_plist_path(bundle_path: str) -> str:
    return os.path.join(bundle_path, "Contents", "Info.plist")


def display_name_for(bundle_path: str) -> str:
    """Bundle filename with the .app extension stripped."""
    name = os.path.basename(os.path.normpath(bundle_path))
    if name.lower().endswith(BUNDLE_SUFFIX):
        name = name[: -len(BUNDLE_SUFFIX)]
    return name


def read_bundle_descriptor(bundle_path: str) -> Dict[str, Any]:
    """
    Load the bundle's Info.plist.

    Raises:
        IdentityUnresolvable: The descriptor is missing, unreadable, or not a dict.
    """
    plist_path = info_plist_path(bundle_path)
    try:
        with open(plist_path, "rb") as fp:
            data = plistlib.load(fp)
    except FileNotFoundError:
        raise IdentityUnresolvable(plist_path, "descriptor missing") from None
    except (OSError, ValueError, ExpatError) as exc:
        raise IdentityUnresolvable(plist_path, str(exc) or type(exc).__name__) from exc

    if not isinstance(data, dict):
        raise IdentityUnresolvable(plist_path, "descriptor is not a dictionary")
    return data


def resolve_identity(bundle_path: str) -> ApplicationIdentity:
    """
    Build the identity of the application at `bundle_path`.

    The display name always comes from the bundle filename. A missing or
    malformed descriptor only costs us the bundle identifier.

    Raises:
        BundleNotFound: `bundle_path` is not an existing directory.
    """
    if not bundle_path or not os.path.isdir(bundle_path):
        raise BundleNotFound(bundle_path)

    bundle_path = os.path.abspath(bundle_path).rstrip(os.sep)
    name = display_name_for(bundle_path)

    bundle_id = None
    executable = None
    try:
        descriptor = read_bundle_descriptor(bundle_path)
    except IdentityUnresolvable as exc:
        logger.warning("%s; matching by name only", exc)
    else:
        bundle_id = _clean_string(descriptor.get("CFBundleIdentifier"))
        executable = _clean_string(descriptor.get("CFBundleExecutable"))
        if bundle_id is None:
            logger.warning("%s has no CFBundleIdentifier; matching by name only", name)

    identity = ApplicationIdentity(
        display_name=name,
        bundle_path=bundle_path,
        bundle_identifier=bundle_id,
        executable=executable,
    )
    logger.info("Selected app: %s (Bundle ID: %s)", name, bundle_id or "Unknown")
    return identity


def _clean_string(value: Any):
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
