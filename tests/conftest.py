"""Pytest configuration and shared fixtures for the MacClean engine."""

# pylint: disable=wrong-import-position

import os
import plistlib
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from backup import BackupManager
from cleaner import Remover
from config import AppConfig, Locations
from errors import UserCancelled
from models import ApplicationIdentity, ExecutionContext, LoginItemEntry, RemovalSession
from uninstaller import Collaborators


def touch(path, content="x"):
    """Create a file (and its parents) with some content."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


def write_plist(path, data):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as fp:
        plistlib.dump(data, fp)
    return path


class ScriptedPrompter:
    """Answers prompts from a script and remembers what it was asked.

    `answers` maps a message fragment to the reply; anything else gets the
    prompt's default. `choice` is "all", "cancel", a list of indices or a
    callable taking the candidate list.
    """

    def __init__(self, answers=None, choice="all"):
        self.answers = dict(answers or {})
        self.choice = choice
        self.confirm_calls = []
        self.choose_calls = []

    def confirm(self, message, default=False):
        self.confirm_calls.append(message)
        for fragment, answer in self.answers.items():
            if fragment in message:
                return answer
        return default

    def choose(self, title, candidates):
        self.choose_calls.append((title, list(candidates)))
        if self.choice == "all":
            return list(range(len(candidates)))
        if self.choice == "cancel":
            raise UserCancelled(title)
        if callable(self.choice):
            return self.choice(candidates)
        return list(self.choice)

    def select_application(self, apps):
        return None


class FakeProcessInspector:
    def __init__(self, processes=None):
        self.processes = list(processes or [])

    def running_executables(self):
        return list(self.processes)


class FakeController:
    """Quitting empties the inspector's process list when `quits` is set."""

    def __init__(self, inspector, quits=True):
        self.inspector = inspector
        self.quits = quits
        self.calls = []

    def quit(self, name):
        self.calls.append(name)
        if self.quits:
            self.inspector.processes = []
        return self.quits


class FakeServiceRegistry:
    def __init__(self, loaded=(), unload_ok=True):
        self.loaded = set(loaded)
        self.unload_ok = unload_ok
        self.unloaded = []

    def is_loaded(self, label, scope):
        return label in self.loaded

    def unload(self, descriptor):
        self.unloaded.append(descriptor.descriptor_path)
        if self.unload_ok:
            self.loaded.discard(descriptor.label)
        return self.unload_ok


class FakeLoginItems:
    def __init__(self, names=(), delete_ok=True):
        self.names = list(names)
        self.delete_ok = delete_ok

    def list_items(self):
        return [LoginItemEntry(name=n) for n in self.names]

    def delete(self, name):
        if not self.delete_ok or name not in self.names:
            return False
        self.names.remove(name)
        return True


@pytest.fixture
def locations(tmp_path):
    """A relocated macOS layout with every search root created."""
    locs = Locations(home=str(tmp_path / "home"), root=str(tmp_path / "root"))
    for directory in locs.search_roots + locs.application_dirs:
        os.makedirs(directory, exist_ok=True)
    return locs


@pytest.fixture
def make_bundle(locations):
    """Factory creating a minimal .app bundle in /Applications."""

    def _make(name, bundle_id=None, executable=None, folder=None):
        folder = folder or locations.application_dirs[0]
        bundle = os.path.join(folder, f"{name}.app")
        exe = executable or name
        touch(os.path.join(bundle, "Contents", "MacOS", exe), "#!/bin/sh\n")
        info = {"CFBundleName": name, "CFBundleExecutable": exe}
        if bundle_id:
            info["CFBundleIdentifier"] = bundle_id
        write_plist(os.path.join(bundle, "Contents", "Info.plist"), info)
        return bundle

    return _make


@pytest.fixture
def spotify(locations):
    return ApplicationIdentity(
        display_name="Spotify",
        bundle_path=os.path.join(locations.application_dirs[0], "Spotify.app"),
        bundle_identifier="com.spotify.client",
        executable="Spotify",
    )


@pytest.fixture
def ctx():
    return ExecutionContext(allow_elevation=False)


@pytest.fixture
def dry_ctx():
    return ExecutionContext(dry_run=True, allow_elevation=False)


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        backup_base=str(tmp_path / "backups"),
        log_dir=str(tmp_path / "logs"),
        allow_elevation=False,
        min_free_space_mb=0,
        quit_timeout_s=0,
    )


@pytest.fixture
def prompter():
    return ScriptedPrompter()


@pytest.fixture
def collaborators(prompter):
    inspector = FakeProcessInspector()
    return Collaborators(
        prompter=prompter,
        processes=inspector,
        controller=FakeController(inspector),
        services=FakeServiceRegistry(),
        login_items=FakeLoginItems(),
    )


@pytest.fixture
def make_remover(tmp_path, locations, prompter):
    """Factory for a Remover writing backups under tmp_path/backups."""

    def _make(ctx, session=None, backups=None, exclusions=None):
        session = session or RemovalSession()
        backups = backups or BackupManager(str(tmp_path / "backups" / "session"), ctx)
        return Remover(session=session, backups=backups, prompter=prompter, ctx=ctx,
                       locations=locations, exclusions=exclusions)

    return _make
