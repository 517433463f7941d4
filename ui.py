"""
MacClean - Interactive prompts using InquirerPy + Rich.

Two prompters share one interface: ConsolePrompter asks on the terminal,
AutoPrompter answers for unattended runs (confirmations take their default,
selections take everything).
"""

from __future__ import annotations

import os
from typing import List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from InquirerPy import inquirer

from errors import UserCancelled
from models import (
    ActionStatus,
    ApplicationIdentity,
    ArtifactCandidate,
    Confidence,
    ItemKind,
    MatchTier,
    RemovalSession,
    ServiceDescriptor,
    SessionOutcome,
    _format_duration,
)

console = Console()

TIER_TAGS = {
    MatchTier.EXACT: "EXACT",
    MatchTier.DELIMITED_SUBSTRING: "NAME",
    MatchTier.KNOWN_LOCATION_SUBSTRING: "LOC",
    MatchTier.BUNDLE_IDENTIFIER_PATH: "ID",
    MatchTier.RELAXED_SUBSTRING: "LOOSE",
}

CONFIDENCE_COLORS = {
    Confidence.CONSERVATIVE: "green",
    Confidence.BROAD: "yellow",
}

STATUS_COLORS = {
    ActionStatus.OK: "green",
    ActionStatus.FAILED: "red",
    ActionStatus.SKIPPED: "yellow",
    ActionStatus.WARNING: "yellow",
    ActionStatus.DRY_RUN: "cyan",
}


class ConsolePrompter:
    """Asks the user on the terminal."""

    def confirm(self, message: str, default: bool = False) -> bool:
        try:
            answer = inquirer.confirm(message=message, default=default).execute()
        except KeyboardInterrupt:
            return False
        return bool(answer)

    def choose(self, title: str, candidates: Sequence[ArtifactCandidate]) -> List[int]:
        """
        Remove all / select a subset / skip.

        Returns the indices to remove; raises UserCancelled on Ctrl+C.
        """
        show_candidates(title, candidates)
        try:
            mode = inquirer.select(
                message="What should be removed?",
                choices=[
                    {"name": "Remove all", "value": "all"},
                    {"name": "Select items to remove", "value": "select"},
                    {"name": "Skip", "value": "skip"},
                ],
                default="skip",
            ).execute()
        except KeyboardInterrupt:
            raise UserCancelled(title) from None

        if mode == "all":
            return list(range(len(candidates)))
        if mode != "select":
            return []

        choices = [
            {"name": _candidate_label(c), "value": idx, "enabled": False}
            for idx, c in enumerate(candidates)
        ]
        console.print("[dim]  ↑/↓ navigate  ·  Space toggle  ·  Enter confirm[/]\n")
        try:
            selected = inquirer.checkbox(
                message="Items to remove:",
                choices=choices,
                cycle=True,
                instruction="",
            ).execute()
        except KeyboardInterrupt:
            raise UserCancelled(title) from None
        return sorted(selected or [])

    def select_application(self, apps: Sequence[str]) -> Optional[str]:
        if not apps:
            return None
        try:
            return inquirer.fuzzy(
                message="Application to remove:",
                choices=[{"name": os.path.basename(p) + f"  ({p})", "value": p} for p in apps],
                max_height="70%",
            ).execute()
        except KeyboardInterrupt:
            return None


class AutoPrompter:
    """Answers every prompt without asking; used with --auto."""

    def confirm(self, message: str, default: bool = False) -> bool:
        console.print(f"[dim]{message} -> {'yes' if default else 'no'} (auto)[/]")
        return default

    def choose(self, title: str, candidates: Sequence[ArtifactCandidate]) -> List[int]:
        show_candidates(title, candidates)
        return list(range(len(candidates)))

    def select_application(self, apps: Sequence[str]) -> Optional[str]:
        return None


def _shorten(path: str, width: int = 70) -> str:
    home = os.path.expanduser("~")
    if path.startswith(home + os.sep):
        path = "~" + path[len(home):]
    if len(path) > width:
        path = "..." + path[-(width - 3):]
    return path


def _candidate_label(c: ArtifactCandidate) -> str:
    kind = "DIR" if c.kind == ItemKind.DIRECTORY else "FILE"
    return f"{_shorten(c.path, 63):<63s}  {c.size_human:>10s}  {kind}"


def show_identity(identity: ApplicationIdentity, size_human: str, last_accessed: str) -> None:
    """App details so the user can make an informed decision."""
    lines = [
        f"[bold]Name:[/]          {identity.display_name}",
        f"[bold]Location:[/]      {identity.bundle_path}",
        f"[bold]Size:[/]          {size_human}",
        f"[bold]Last accessed:[/] {last_accessed}",
        f"[bold]Bundle ID:[/]     {identity.bundle_identifier or '[dim]Unknown[/]'}",
    ]
    console.print()
    console.print(Panel.fit("\n".join(lines), title="[bold]App Details[/]", border_style="cyan"))


def show_stage(title: str) -> None:
    console.print(f"\n[bold blue]--- {title} ---[/]")


def show_candidates(title: str, candidates: Sequence[ArtifactCandidate]) -> None:
    table = Table(box=box.ROUNDED, title=f"[bold]{title}[/]", show_lines=False)
    table.add_column("#", justify="right", width=4)
    table.add_column("Path", max_width=70)
    table.add_column("Size", justify="right", width=10)
    table.add_column("Kind", justify="center", width=5)
    table.add_column("Match", justify="center", width=7)

    for idx, c in enumerate(candidates, 1):
        color = CONFIDENCE_COLORS.get(c.confidence, "white")
        table.add_row(
            str(idx),
            _shorten(c.path),
            c.size_human,
            "DIR" if c.kind == ItemKind.DIRECTORY else "FILE",
            f"[{color}]{TIER_TAGS.get(c.tier, '?')}[/]",
        )
    console.print(table)


def show_descriptors(descriptors: Sequence[ServiceDescriptor]) -> None:
    table = Table(box=box.ROUNDED, title="[bold]Launch Agents / Daemons[/]")
    table.add_column("#", justify="right", width=4)
    table.add_column("Descriptor", max_width=60)
    table.add_column("Label", max_width=40)
    table.add_column("Scope", width=14)
    table.add_column("Status", justify="center", width=9)
    for idx, d in enumerate(descriptors, 1):
        status = "[green]active[/]" if d.loaded else "[dim]inactive[/]"
        if d.label is None:
            status = "[dim]unknown[/]"
        table.add_row(str(idx), _shorten(d.descriptor_path, 60), d.label or "-",
                      d.scope.value, status)
    console.print(table)


def show_app_list(title: str, rows: Sequence[Sequence[str]], columns: Sequence[str]) -> None:
    table = Table(box=box.ROUNDED, title=f"[bold]{title}[/]")
    table.add_column("#", justify="right", width=4)
    for col in columns:
        table.add_column(col)
    for idx, row in enumerate(rows, 1):
        table.add_row(str(idx), *row)
    console.print(table)


def show_session_report(session: RemovalSession, log_path: str = "") -> None:
    """Final report: what was removed, and every item skipped or failed, with the reason."""
    name = session.identity.display_name if session.identity else "application"
    removed = session.removed
    problems = session.failures + session.skipped + session.warnings
    dry_runs = [a for a in session.actions if a.status == ActionStatus.DRY_RUN]

    if problems:
        table = Table(box=box.SIMPLE, title="[bold yellow]Not removed / warnings[/]")
        table.add_column("Stage", width=18)
        table.add_column("Item", max_width=60)
        table.add_column("Status", width=8)
        table.add_column("Reason", max_width=40)
        for a in sorted(problems, key=lambda x: x.timestamp):
            color = STATUS_COLORS.get(a.status, "white")
            table.add_row(a.stage, _shorten(a.target, 60), f"[{color}]{a.status.value}[/]",
                          a.detail)
        console.print(table)

    outcome_color = "green" if session.outcome == SessionOutcome.COMPLETED else "yellow"
    backups_ok = sum(1 for b in session.backups if b.succeeded and b.backup_path)
    backups_failed = sum(1 for b in session.backups if not b.succeeded)
    log_line = f"\n  Log file:  [cyan]{log_path}[/]" if log_path else ""

    console.print()
    console.print(Panel.fit(
        f"[bold {outcome_color}]Removal of {name}: {session.outcome.value}[/]\n\n"
        f"  Removed:   [bold green]{len(removed):,}[/] items\n"
        f"  Dry run:   [bold cyan]{len(dry_runs):,}[/] items\n"
        f"  Failed:    [bold {'red' if session.failures else 'dim'}]{len(session.failures):,}[/] items\n"
        f"  Skipped:   [bold {'yellow' if session.skipped else 'dim'}]{len(session.skipped):,}[/] items\n"
        f"  Backups:   {backups_ok:,} written, {backups_failed:,} failed\n"
        f"  Duration:  [bold cyan]{_format_duration(session.duration_s)}[/]"
        f"{log_line}",
        border_style=outcome_color,
        title="[bold]MacClean Report[/]",
    ))
    console.print()
