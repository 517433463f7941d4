"""Tests for services.py - launch agent / daemon discovery and removal."""

from __future__ import annotations

import os
import subprocess

import pytest

import services
from conftest import FakeServiceRegistry, touch, write_plist
from models import ActionStatus, ApplicationIdentity, ServiceDescriptor, ServiceScope
from services import (
    LaunchctlRegistry,
    descriptor_matches,
    find_descriptors,
    read_label,
    remove_descriptor,
)


@pytest.fixture
def adobe():
    return ApplicationIdentity(display_name="Adobe Creative Cloud",
                               bundle_path="/Applications/Adobe Creative Cloud.app",
                               bundle_identifier="com.adobe.ccxprocess")


@pytest.fixture
def adobe_agent(locations):
    path = os.path.join(locations.user_agents, "com.adobe.ccxprocess.plist")
    write_plist(path, {"Label": "com.adobe.ccxprocess", "ProgramArguments": ["/bin/true"]})
    return path


def test_loaded_descriptor_is_unloaded_and_deleted(adobe, adobe_agent, locations, ctx, make_remover):
    registry = FakeServiceRegistry(loaded={"com.adobe.ccxprocess"})

    descriptors = find_descriptors(adobe, locations, registry)
    assert len(descriptors) == 1
    descriptor = descriptors[0]
    assert descriptor.scope is ServiceScope.USER_AGENT
    assert descriptor.loaded

    remover = make_remover(ctx)
    assert remove_descriptor(descriptor, registry, remover)

    assert not registry.is_loaded("com.adobe.ccxprocess", ServiceScope.USER_AGENT)
    assert not descriptor.loaded
    assert not os.path.exists(adobe_agent)
    assert [a.action for a in remover.session.actions] == ["backup", "unload", "delete"]
    assert remover.session.backups[0].succeeded


def test_unloaded_descriptor_is_only_deleted(adobe, adobe_agent, locations, ctx, make_remover):
    registry = FakeServiceRegistry()
    descriptor = find_descriptors(adobe, locations, registry)[0]

    assert remove_descriptor(descriptor, registry, make_remover(ctx))

    assert registry.unloaded == []
    assert not os.path.exists(adobe_agent)


def test_unload_failure_is_a_warning(adobe, adobe_agent, locations, ctx, make_remover):
    registry = FakeServiceRegistry(loaded={"com.adobe.ccxprocess"}, unload_ok=False)
    descriptor = find_descriptors(adobe, locations, registry)[0]
    remover = make_remover(ctx)

    assert remove_descriptor(descriptor, registry, remover)

    unload = [a for a in remover.session.actions if a.action == "unload"][0]
    assert unload.status is ActionStatus.WARNING
    assert not os.path.exists(adobe_agent)


def test_dry_run_leaves_service_alone(adobe, adobe_agent, locations, dry_ctx, make_remover):
    registry = FakeServiceRegistry(loaded={"com.adobe.ccxprocess"})
    descriptor = find_descriptors(adobe, locations, registry)[0]

    assert remove_descriptor(descriptor, registry, make_remover(dry_ctx))

    assert registry.unloaded == []
    assert registry.is_loaded("com.adobe.ccxprocess", ServiceScope.USER_AGENT)
    assert os.path.isfile(adobe_agent)


def test_descriptors_found_in_every_scope(adobe, locations):
    write_plist(os.path.join(locations.system_agents, "com.adobe.ccxprocess.helper.plist"),
                {"Label": "com.adobe.ccxprocess.helper"})
    write_plist(os.path.join(locations.system_daemons, "Adobe Creative Cloud.daemon.plist"),
                {"Label": "com.adobe.acc.daemon"})
    touch(os.path.join(locations.user_agents, "com.other.agent.plist"))

    found = find_descriptors(adobe, locations, FakeServiceRegistry())

    assert len(found) == 2
    assert {d.scope for d in found} == {ServiceScope.SYSTEM_AGENT, ServiceScope.SYSTEM_DAEMON}
    assert {d.label for d in found} == {"com.adobe.ccxprocess.helper", "com.adobe.acc.daemon"}


def test_descriptor_without_label_is_still_reported(adobe, locations):
    touch(os.path.join(locations.user_agents, "com.adobe.ccxprocess.plist"), "garbage")

    found = find_descriptors(adobe, locations, FakeServiceRegistry(loaded={"com.adobe.ccxprocess"}))

    assert found[0].label is None
    assert not found[0].loaded


def test_descriptor_matching_rules(adobe):
    assert descriptor_matches(adobe, "COM.ADOBE.CCXPROCESS.plist")
    assert descriptor_matches(adobe, "adobe creative cloud-updater.plist")
    assert not descriptor_matches(adobe, "com.adobe.ccxprocess.txt")
    assert not descriptor_matches(adobe, "com.adobe.other.plist")


def test_read_label(tmp_path):
    good = write_plist(str(tmp_path / "a.plist"), {"Label": "com.example.a"})
    no_label = write_plist(str(tmp_path / "b.plist"), {"Program": "/bin/true"})
    assert read_label(good) == "com.example.a"
    assert read_label(no_label) is None
    assert read_label(str(tmp_path / "missing.plist")) is None


def test_launchctl_registry_elevates_for_system_scopes(monkeypatch, ctx):
    calls = []

    def fake_run(args, ctx=None, elevated=False, mutating=False, timeout=60):
        calls.append((list(args), elevated, mutating))
        return subprocess.CompletedProcess(args, 0, "", "")

    monkeypatch.setattr(services, "run_command", fake_run)
    registry = LaunchctlRegistry(ctx)

    assert registry.is_loaded("com.example.a", ServiceScope.SYSTEM_DAEMON)
    descriptor = ServiceDescriptor("/Library/LaunchDaemons/a.plist", "com.example.a",
                                   ServiceScope.SYSTEM_DAEMON, loaded=True)
    assert registry.unload(descriptor)

    assert calls[0] == (["launchctl", "list", "com.example.a"], True, False)
    assert calls[1] == (["launchctl", "unload", "-w", "/Library/LaunchDaemons/a.plist"], True, True)
