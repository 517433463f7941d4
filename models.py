"""
MacClean - Data models for application identities, artifact candidates and removal sessions.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from fsutil import get_size


class MatchTier(enum.Enum):
    """Matching rule that tied a filesystem entry to an application."""
    EXACT = "exact"
    DELIMITED_SUBSTRING = "delimited"
    KNOWN_LOCATION_SUBSTRING = "known-location"
    BUNDLE_IDENTIFIER_PATH = "bundle-id"
    RELAXED_SUBSTRING = "relaxed"       # Leftover sweep only, no rule fired


class Confidence(enum.Enum):
    """How aggressively a candidate was matched."""
    CONSERVATIVE = "conservative"   # Classifier, mixed-content veto applied
    BROAD = "broad"                 # Leftover / browser sweeps


class ItemKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"


class BackupMethod(enum.Enum):
    ARCHIVE = "archive"
    RAW_COPY = "raw-copy"
    NONE = "none"           # Nothing to back up, or dry run


class ServiceScope(enum.Enum):
    """Which launchd domain a descriptor belongs to."""
    USER_AGENT = "user-agent"
    SYSTEM_AGENT = "system-agent"
    SYSTEM_DAEMON = "system-daemon"

    @property
    def is_system(self) -> bool:
        return self is not ServiceScope.USER_AGENT


class ActionStatus(enum.Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"
    WARNING = "warning"
    DRY_RUN = "dry-run"


class SessionOutcome(enum.Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"     # User declined the removal up front
    ABORTED = "aborted"         # Liveness guard or a fatal error stopped it


class Decision(enum.Enum):
    PROCEED = "proceed"
    ABORT = "abort"


@dataclass(frozen=True)
class ExecutionContext:
    """Per-run switches passed explicitly to every operation."""
    dry_run: bool = False
    interactive: bool = True
    allow_elevation: bool = True
    proceed_on_backup_failure: bool = False


@dataclass(frozen=True)
class ApplicationIdentity:
    """Who we are removing: resolved once from the bundle, then read-only."""
    display_name: str
    bundle_path: str
    bundle_identifier: Optional[str] = None
    executable: Optional[str] = None

    @property
    def stripped_name(self) -> str:
        """Lowercased display name with spaces and delimiters removed."""
        name = self.display_name.lower()
        for ch in (" ", "-", "_"):
            name = name.replace(ch, "")
        return name

    @property
    def contents_path(self) -> str:
        return os.path.join(self.bundle_path, "Contents")


@dataclass
class ArtifactCandidate:
    """A filesystem entry suspected of belonging to the target application."""
    path: str
    kind: ItemKind
    tier: MatchTier
    confidence: Confidence = Confidence.CONSERVATIVE
    source: str = ""                    # Stage that produced it

    @property
    def size(self) -> int:
        return get_size(self.path)

    @property
    def size_human(self) -> str:
        return _format_size(self.size)


@dataclass
class BackupRecord:
    """Outcome of one backup attempt made before a destructive operation."""
    original_path: str
    backup_path: Optional[str]
    method: BackupMethod
    created_at: datetime = field(default_factory=datetime.now)
    succeeded: bool = True
    error: str = ""


@dataclass
class ServiceDescriptor:
    """A launchd property list registering a background job."""
    descriptor_path: str
    label: Optional[str]
    scope: ServiceScope
    loaded: bool = False


@dataclass
class LoginItemEntry:
    name: str


@dataclass
class SessionAction:
    """One line of the removal log."""
    stage: str
    action: str
    target: str
    status: ActionStatus
    detail: str = ""
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class RemovalSession:
    """Everything that happened while removing one application."""
    identity: Optional[ApplicationIdentity] = None
    started_at: datetime = field(default_factory=datetime.now)
    actions: List[SessionAction] = field(default_factory=list)
    backups: List[BackupRecord] = field(default_factory=list)
    descriptors: List[ServiceDescriptor] = field(default_factory=list)
    login_items: List[LoginItemEntry] = field(default_factory=list)
    outcome: SessionOutcome = SessionOutcome.COMPLETED
    duration_s: float = 0.0

    def record(
        self,
        stage: str,
        action: str,
        target: str,
        status: ActionStatus = ActionStatus.OK,
        detail: str = "",
    ) -> SessionAction:
        entry = SessionAction(stage=stage, action=action, target=target,
                              status=status, detail=detail)
        self.actions.append(entry)
        return entry

    def record_backup(self, stage: str, record: BackupRecord) -> SessionAction:
        self.backups.append(record)
        if record.succeeded:
            detail = record.backup_path or record.method.value
            status = ActionStatus.OK
        else:
            detail = record.error or "backup failed"
            status = ActionStatus.WARNING
        return self.record(stage, "backup", record.original_path, status, detail)

    def actions_for(self, stage: str) -> List[SessionAction]:
        return [a for a in self.actions if a.stage == stage]

    @property
    def removed(self) -> List[SessionAction]:
        return [a for a in self.actions
                if a.action in REMOVAL_ACTIONS and a.status == ActionStatus.OK]

    @property
    def failures(self) -> List[SessionAction]:
        return [a for a in self.actions if a.status == ActionStatus.FAILED]

    @property
    def skipped(self) -> List[SessionAction]:
        return [a for a in self.actions if a.status == ActionStatus.SKIPPED]

    @property
    def warnings(self) -> List[SessionAction]:
        return [a for a in self.actions if a.status == ActionStatus.WARNING]


# Actions that count as "something was removed" in the report.
REMOVAL_ACTIONS = frozenset({"delete", "unload", "remove-login-item"})


def _format_size(size_bytes: int) -> str:
    """Format bytes into a human-readable string."""
    if size_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    idx = 0
    while size >= 1024.0 and idx < len(units) - 1:
        size /= 1024.0
        idx += 1
    return f"{size:.1f} {units[idx]}"


def _format_duration(seconds: float) -> str:
    """Format seconds into a human-readable duration string."""
    if seconds < 0.001:
        return "<1ms"
    if seconds < 1.0:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60.0:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes < 60:
        return f"{minutes}m {secs:.0f}s"
    hours = minutes // 60
    mins = minutes % 60
    return f"{hours}h {mins}m {secs:.0f}s"
