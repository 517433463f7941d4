"""
MacClean - Complete application removal.

remove_application() runs the whole pipeline for one bundle:

    identity -> liveness guard -> bundle -> associated files -> launch services
    -> login items -> App Store receipt -> leftover sweep -> browser storage

Every stage presents what it found and waits for confirmation before it
touches anything. Declining or cancelling ends the current stage only;
stages already done stay done.
"""

from __future__ import annotations

import enum
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

import ui
from apps import free_space_mb, last_accessed
from backup import BackupManager
from browser_storage import find_browser_storage
from classifier import find_candidates
from cleaner import Remover
from config import AppConfig, ExclusionConfig, Locations
from errors import UserCancelled
from fsutil import get_dir_size, is_within
from identity import resolve_identity
from leftovers import find_leftovers
from login_items import SystemEventsLoginItems, remove_if_present
from models import (
    ActionStatus,
    ApplicationIdentity,
    ArtifactCandidate,
    Confidence,
    Decision,
    ExecutionContext,
    RemovalSession,
    SessionOutcome,
    _format_size,
)
from processes import ApplicationController, ProcessInspector, ensure_stopped
from receipts import find_receipt
from services import LaunchctlRegistry, find_descriptors, remove_descriptor

logger = logging.getLogger(__name__)

STAGE_GUARD = "liveness"
STAGE_BUNDLE = "bundle"
STAGE_FILES = "associated-files"
STAGE_SERVICES = "launch-services"
STAGE_LOGIN = "login-items"
STAGE_RECEIPT = "receipt"
STAGE_LEFTOVERS = "leftovers"
STAGE_BROWSER = "browser-storage"


class StageState(enum.Enum):
    PROMPT = "prompt"
    VALIDATE = "validate"
    ACT = "act"
    DONE = "done"


@dataclass
class Collaborators:
    """Everything the pipeline talks to outside the filesystem."""
    prompter: Any
    processes: ProcessInspector
    controller: ApplicationController
    services: LaunchctlRegistry
    login_items: SystemEventsLoginItems

    @classmethod
    def for_context(cls, ctx: ExecutionContext) -> "Collaborators":
        return cls(
            prompter=ui.ConsolePrompter() if ctx.interactive else ui.AutoPrompter(),
            processes=ProcessInspector(),
            controller=ApplicationController(ctx),
            services=LaunchctlRegistry(ctx),
            login_items=SystemEventsLoginItems(ctx),
        )


class RemovalPipeline:
    """One removal session for one application."""

    def __init__(
        self,
        identity: ApplicationIdentity,
        ctx: ExecutionContext,
        config: AppConfig,
        locations: Locations,
        collaborators: Collaborators,
        exclusions: Optional[ExclusionConfig] = None,
    ):
        self.identity = identity
        self.ctx = ctx
        self.config = config
        self.locations = locations
        self.collab = collaborators
        self.prompter = collaborators.prompter
        self.exclusions = exclusions
        self.session = RemovalSession(identity=identity)
        self.backup_root = config.session_backup_dir(self.session.started_at)
        self.remover = Remover(
            session=self.session,
            backups=BackupManager(self.backup_root, ctx),
            prompter=self.prompter,
            ctx=ctx,
            locations=locations,
            exclusions=exclusions,
        )

    # ── driver ───────────────────────────────────────────────────────────

    def run(self) -> RemovalSession:
        start = time.perf_counter()
        try:
            self._run()
        finally:
            self.session.duration_s = time.perf_counter() - start
        return self.session

    def _run(self) -> None:
        name = self.identity.display_name
        ui.show_identity(self.identity,
                         _format_size(get_dir_size(self.identity.bundle_path)),
                         _access_str(self.identity.bundle_path))

        if not self._enough_disk_space():
            self.session.outcome = SessionOutcome.CANCELLED
            return

        if not self.prompter.confirm(
                f"Are you sure you want to remove '{name}' and all associated files?",
                default=True):
            self.session.outcome = SessionOutcome.CANCELLED
            return

        decision = ensure_stopped(self.identity, self.collab.processes, self.collab.controller,
                                  self.prompter, self.ctx, timeout_s=self.config.quit_timeout_s)
        if decision is Decision.ABORT:
            self.session.record(STAGE_GUARD, "quit", name, ActionStatus.SKIPPED,
                                "application still running; removal aborted")
            self.session.outcome = SessionOutcome.ABORTED
            return

        stages = [
            (STAGE_BUNDLE, "Application Bundle", self._remove_bundle),
            (STAGE_FILES, "Finding Associated Files", self._associated_files),
            (STAGE_SERVICES, "Managing Launch Agents", self._launch_services),
            (STAGE_LOGIN, "Checking Login Items", self._login_items),
            (STAGE_RECEIPT, "App Store Receipt", self._receipt),
            (STAGE_LEFTOVERS, "Leftover Sweep", self._leftovers),
            (STAGE_BROWSER, "Browser Storage", self._browser_storage),
        ]
        for stage, title, action in stages:
            self._run_stage(stage, title, action)

        logger.info("Application removal process completed for: %s", name)

    def _run_stage(self, stage: str, title: str, action: Callable[[], None]) -> None:
        ui.show_stage(title)
        try:
            action()
        except UserCancelled:
            logger.info("%s cancelled.", title)
            self.session.record(stage, "stage", title, ActionStatus.SKIPPED, "cancelled by user")
        except OSError as exc:
            logger.warning("%s failed: %s", title, exc)
            self.session.record(stage, "stage", title, ActionStatus.FAILED, str(exc))

    def _enough_disk_space(self) -> bool:
        required = self.config.min_free_space_mb
        if required <= 0:
            return True
        available = free_space_mb(_existing_parent(self.backup_root))
        if available < 0 or available >= required:
            return True
        logger.warning("Low disk space: %sMB available, %sMB recommended.", available, required)
        return self.prompter.confirm("Continue despite low disk space?", default=False)

    # ── stages ───────────────────────────────────────────────────────────

    def _remove_bundle(self) -> None:
        logger.info("Removing application bundle: %s", self.identity.bundle_path)
        self.remover.remove(self.identity.bundle_path, STAGE_BUNDLE)

    def _associated_files(self) -> None:
        with Progress(
            SpinnerColumn("dots"),
            TextColumn("[bold blue]Scanning: {task.description}"),
            BarColumn(bar_width=30),
            TextColumn("[cyan]({task.completed}/{task.total})[/]"),
            console=ui.console,
            transient=True,
        ) as progress:
            task = progress.add_task("Initializing...", total=len(self.locations.search_roots))

            def on_progress(label: str, current: int, total: int) -> None:
                progress.update(task, description=label, completed=current, total=total)

            candidates = find_candidates(self.identity, self.locations, self.exclusions,
                                         progress_cb=on_progress)

        # Launch agent/daemon plists are unloaded before deletion by the next stage.
        candidates = [c for c in candidates
                      if not any(is_within(c.path, d) for d in self.locations.launch_dirs)]
        self._candidate_stage(STAGE_FILES, "Associated Files", candidates)

    def _launch_services(self) -> None:
        descriptors = find_descriptors(self.identity, self.locations, self.collab.services)
        self.session.descriptors = descriptors
        if not descriptors:
            logger.info("No launch agents or daemons found for %s.", self.identity.display_name)
            return

        ui.show_descriptors(descriptors)
        if not self.prompter.confirm("Would you like to unload and remove these launch agents?",
                                     default=True):
            self.session.record(STAGE_SERVICES, "stage", "launch agents", ActionStatus.SKIPPED,
                                "declined")
            return

        for descriptor in descriptors:
            remove_descriptor(descriptor, self.collab.services, self.remover)

    def _login_items(self) -> None:
        remove_if_present(self.identity.display_name, self.collab.login_items,
                          self.session, self.prompter, self.ctx)

    def _receipt(self) -> None:
        path = find_receipt(self.identity, self.locations)
        if path is None:
            return
        logger.info("Found App Store receipt: %s", path)
        if self.prompter.confirm("Remove App Store receipt for this application?", default=True):
            self.remover.remove(path, STAGE_RECEIPT)
        else:
            self.session.record(STAGE_RECEIPT, "delete", path, ActionStatus.SKIPPED, "declined")

    def _leftovers(self) -> None:
        candidates = find_leftovers(self.identity, self.locations, self.exclusions)
        self._candidate_stage(STAGE_LEFTOVERS, "Possible Leftovers", candidates, confirm_each=True)

    def _browser_storage(self) -> None:
        candidates = find_browser_storage(self.identity, self.locations, self.exclusions)
        self._candidate_stage(STAGE_BROWSER, "Browser Storage", candidates)

    # ── candidate stage state machine ────────────────────────────────────

    def _candidate_stage(
        self,
        stage: str,
        title: str,
        candidates: List[ArtifactCandidate],
        confirm_each: bool = False,
    ) -> None:
        """PROMPT -> VALIDATE -> ACT -> DONE; no prompt at all when nothing was found."""
        candidates = self._not_yet_handled(candidates)
        if not self.ctx.interactive:
            candidates = self._hold_back_broad(stage, candidates)
        selection: List[int] = []
        state = StageState.PROMPT

        while state is not StageState.DONE:
            if state is StageState.PROMPT:
                if not candidates:
                    logger.info("No %s found for %s.", title.lower(), self.identity.display_name)
                    state = StageState.DONE
                elif confirm_each:
                    ui.show_candidates(title, candidates)
                    selection = list(range(len(candidates)))
                    state = StageState.VALIDATE
                else:
                    selection = self.prompter.choose(title, candidates)
                    state = StageState.VALIDATE

            elif state is StageState.VALIDATE:
                selection = sorted({i for i in selection if 0 <= i < len(candidates)})
                if selection:
                    state = StageState.ACT
                else:
                    logger.info("Skipping %s removal.", title.lower())
                    self.session.record(stage, "stage", title, ActionStatus.SKIPPED,
                                        "nothing selected")
                    state = StageState.DONE

            elif state is StageState.ACT:
                for idx in selection:
                    self._remove_candidate(stage, candidates[idx], confirm_each)
                state = StageState.DONE

    def _remove_candidate(self, stage: str, candidate: ArtifactCandidate, confirm: bool) -> None:
        if confirm and not self.prompter.confirm(f"Remove {candidate.path}?", default=True):
            self.session.record(stage, "delete", candidate.path, ActionStatus.SKIPPED, "declined")
            return
        self.remover.remove(candidate.path, stage)

    def _hold_back_broad(self, stage: str, candidates: List[ArtifactCandidate]) -> List[ArtifactCandidate]:
        """Sweep hits are only ever deleted on a per-item yes from a person."""
        kept = []
        for candidate in candidates:
            if candidate.confidence is Confidence.BROAD:
                logger.info("Keeping %s: needs interactive confirmation", candidate.path)
                self.session.record(stage, "delete", candidate.path, ActionStatus.SKIPPED,
                                    "needs interactive confirmation")
            else:
                kept.append(candidate)
        return kept

    def _not_yet_handled(self, candidates: List[ArtifactCandidate]) -> List[ArtifactCandidate]:
        """Drop paths an earlier stage already deleted (or tried to)."""
        attempted = [a.target for a in self.session.actions if a.action == "delete"]
        return [c for c in candidates
                if not any(is_within(c.path, done) for done in attempted)]


def remove_application(
    bundle_path: str,
    ctx: Optional[ExecutionContext] = None,
    *,
    config: Optional[AppConfig] = None,
    locations: Optional[Locations] = None,
    collaborators: Optional[Collaborators] = None,
    exclusions: Optional[ExclusionConfig] = None,
) -> RemovalSession:
    """
    Remove an application and everything it left behind.

    Raises:
        BundleNotFound: `bundle_path` is not an application bundle; nothing
            has been touched.

    Returns:
        The session log: every action, backup, warning and failure.
    """
    config = config or AppConfig()
    ctx = ctx or ExecutionContext(
        dry_run=config.dry_run,
        allow_elevation=config.allow_elevation,
        proceed_on_backup_failure=config.proceed_on_backup_failure,
    )
    identity = resolve_identity(bundle_path)
    pipeline = RemovalPipeline(
        identity=identity,
        ctx=ctx,
        config=config,
        locations=locations or Locations(),
        collaborators=collaborators or Collaborators.for_context(ctx),
        exclusions=exclusions,
    )
    return pipeline.run()


def _access_str(path: str) -> str:
    stamp = last_accessed(path)
    if not stamp:
        return "Unknown"
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(stamp))


def _existing_parent(path: str) -> str:
    while path and not os.path.exists(path):
        parent = os.path.dirname(path)
        if parent == path:
            break
        path = parent
    return path or os.sep
