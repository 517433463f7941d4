"""Tests for login_items.py."""

from __future__ import annotations

import subprocess

import login_items
from conftest import FakeLoginItems, ScriptedPrompter
from login_items import SystemEventsLoginItems, find_login_item, remove_if_present
from models import ActionStatus, LoginItemEntry, RemovalSession


def _names(registry):
    return [item.name for item in registry.list_items()]


def test_dropbox_is_removed_from_login_items(ctx):
    registry = FakeLoginItems(["Dropbox", "Spotify"])
    session = RemovalSession()

    assert remove_if_present("Dropbox", registry, session, ScriptedPrompter(), ctx)

    assert "Dropbox" not in _names(registry)
    assert _names(registry) == ["Spotify"]
    assert session.removed[0].target == "Dropbox"
    assert [i.name for i in session.login_items] == ["Dropbox", "Spotify"]


def test_declining_keeps_the_login_item(ctx):
    registry = FakeLoginItems(["Dropbox"])
    session = RemovalSession()
    prompter = ScriptedPrompter({"login items": False})

    assert not remove_if_present("Dropbox", registry, session, prompter, ctx)

    assert _names(registry) == ["Dropbox"]
    assert session.actions[0].status is ActionStatus.SKIPPED


def test_absent_login_item_is_a_noop(ctx):
    session = RemovalSession()
    prompter = ScriptedPrompter()

    assert not remove_if_present("Dropbox", FakeLoginItems(["Spotify"]), session, prompter, ctx)

    assert session.actions == []
    assert prompter.confirm_calls == []


def test_dry_run_keeps_the_login_item(dry_ctx):
    registry = FakeLoginItems(["Dropbox"])
    session = RemovalSession()

    assert remove_if_present("Dropbox", registry, session, ScriptedPrompter(), dry_ctx)

    assert _names(registry) == ["Dropbox"]
    assert session.actions[0].status is ActionStatus.DRY_RUN


def test_refused_deletion_is_a_failure(ctx):
    session = RemovalSession()

    assert not remove_if_present("Dropbox", FakeLoginItems(["Dropbox"], delete_ok=False),
                                 session, ScriptedPrompter(), ctx)
    assert session.failures[0].target == "Dropbox"


def test_find_login_item_ignores_case_but_not_substrings():
    items = [LoginItemEntry("Dropbox Helper"), LoginItemEntry("dropbox")]
    assert find_login_item("Dropbox", items).name == "dropbox"
    assert find_login_item("Drop", items) is None


def test_system_events_output_is_one_name_per_line(monkeypatch, ctx):
    scripts = []

    def fake_osascript(script, ctx=None, mutating=False, timeout=15):
        scripts.append((script, mutating))
        return subprocess.CompletedProcess(["osascript"], 0, "Dropbox\nAcme, Inc. Helper\nRectangle\n", "")

    monkeypatch.setattr(login_items, "osascript", fake_osascript)
    registry = SystemEventsLoginItems(ctx)

    assert [i.name for i in registry.list_items()] == ["Dropbox", "Acme, Inc. Helper", "Rectangle"]
    assert scripts[0] == (login_items.LIST_SCRIPT, False)
    assert "text item delimiters to linefeed" in scripts[0][0]
    assert registry.delete('Say "Hi"')
    assert scripts[1] == ('tell application "System Events" to delete login item "Say \\"Hi\\""', True)


def test_system_events_failure_means_no_items(monkeypatch, ctx):
    monkeypatch.setattr(login_items, "osascript",
                        lambda *a, **k: subprocess.CompletedProcess(["osascript"], 1, "", "denied"))
    assert SystemEventsLoginItems(ctx).list_items() == []
