"""Tests for apps.py - installed application discovery and health checks."""

from __future__ import annotations

import os
import time

from apps import bundle_problem, check_broken_apps, find_unused_apps, list_installed_apps
from conftest import touch


def test_list_installed_apps(locations, make_bundle):
    system_apps, user_apps = locations.application_dirs
    spotify = make_bundle("Spotify")
    nested = make_bundle("Photoshop", folder=os.path.join(system_apps, "Adobe Photoshop 2024"))
    personal = make_bundle("Rectangle", folder=user_apps)
    make_bundle("Safari")
    make_bundle("Terminal", folder=os.path.join(system_apps, "Utilities"))
    touch(os.path.join(system_apps, "README.txt"))

    assert list_installed_apps(locations) == [nested, personal, spotify]


def test_built_in_names_only_hidden_in_system_applications(locations, make_bundle):
    own_safari = make_bundle("Safari", folder=locations.application_dirs[1])
    assert list_installed_apps(locations) == [own_safari]


def test_find_unused_apps_oldest_first(locations, make_bundle):
    now = time.time()
    old = make_bundle("Old")
    older = make_bundle("Older")
    fresh = make_bundle("Fresh")
    os.utime(old, (now - 40 * 86400, now))
    os.utime(older, (now - 90 * 86400, now))
    os.utime(fresh, (now - 86400, now))

    unused = find_unused_apps(locations, days=30, now=now)

    assert [a.path for a in unused] == [older, old]
    assert unused[0].name == "Older.app"
    assert unused[0].size_human.endswith("B")


def test_bundle_problem_detection(locations, make_bundle):
    healthy = make_bundle("Healthy")
    no_exec = make_bundle("NoExec")
    os.remove(os.path.join(no_exec, "Contents", "MacOS", "NoExec"))
    bad_plist = make_bundle("BadPlist")
    touch(os.path.join(bad_plist, "Contents", "Info.plist"), "{{{ not a plist")
    hollow = os.path.join(locations.application_dirs[0], "Hollow.app")
    os.makedirs(hollow)

    assert bundle_problem(healthy) is None
    assert bundle_problem(no_exec) == "Missing main executable: NoExec"
    assert bundle_problem(bad_plist) == "Invalid Info.plist"
    assert bundle_problem(hollow) == "Missing essential components"

    broken = dict(check_broken_apps(locations))
    assert set(broken) == {no_exec, bad_plist, hollow}
