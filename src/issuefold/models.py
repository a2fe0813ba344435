from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class IssueStatus(str, Enum):
    """Workflow status of an issue. Serialized by value."""

    OPEN = "open"
    DRAFT = "draft"
    IN_PROGRESS = "in-progress"
    IN_REVIEW = "in-review"
    COMPLETE = "complete"
    CLOSED = "closed"
    ARCHIVED = "archived"
    DELETED = "deleted"

    @property
    def is_done(self) -> bool:
        return self in (IssueStatus.COMPLETE, IssueStatus.ARCHIVED, IssueStatus.CLOSED)

    @property
    def is_terminal(self) -> bool:
        return self.is_done or self is IssueStatus.DELETED


class IssueType(str, Enum):
    TASK = "task"
    BUG = "bug"
    CHORE = "chore"
    IDEA = "idea"
    FEATURE = "feature"


class ChangeKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ParentIssueRef:
    """Directed parent link plus the sort key ordering it among siblings."""

    parent_issue: str
    sort_order: str

    def __str__(self) -> str:
        return f"{self.parent_issue}:{self.sort_order}"


def _new_change_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ChangeRecord:
    """One entry of an issue's change history.

    ``field`` is ``None`` for legacy whole-record entries, which carry no
    per-field timing information.
    """

    field: str | None
    kind: ChangeKind
    changed_at: datetime
    changed_by: str | None = None
    change_id: str = field(default_factory=_new_change_id)


@dataclass
class Issue:
    id: str
    title: str
    status: IssueStatus
    type: IssueType
    description: str | None = None
    priority: int | None = None
    group: str | None = None
    assignee: str | None = None
    tags: set[str] = field(default_factory=set)
    linked_pr: int | None = None
    linked_issues: list[str] = field(default_factory=list)
    parent_issues: list[ParentIssueRef] = field(default_factory=list)
    created_by: str | None = None
    created_at: datetime | None = None
    last_update: datetime | None = None
    history: list[ChangeRecord] = field(default_factory=list)

    @property
    def key(self) -> str:
        """Case-insensitive identity used for grouping copies of one issue."""
        return self.id.lower()

    def field_timestamp(self, name: str) -> datetime | None:
        """Latest history timestamp touching ``name`` (None means oldest possible)."""
        stamps = [c.changed_at for c in self.history if c.field == name]
        return max(stamps) if stamps else None

    @property
    def has_field_history(self) -> bool:
        return any(c.field is not None for c in self.history)


class ConflictKind(str, Enum):
    FIELD = "field"
    SNAPSHOT = "snapshot"


@dataclass
class ConflictRecord:
    """A value discarded during reconciliation, kept until explicitly cleared."""

    issue_id: str
    kind: ConflictKind
    detected_at: datetime
    field: str | None = None
    losing_value: Any = None
    losing_timestamp: datetime | None = None
    winning_value: Any = None
    winning_timestamp: datetime | None = None
    resolution: str | None = None  # "kept" (running winner) | "replaced"
    source: str | None = None  # container the losing value came from
    snapshot: Issue | None = None
    conflict_id: str = dataclasses.field(default_factory=_new_change_id)


@dataclass(frozen=True)
class PropertyConflict:
    """Outcome of reconciling one field whose two values differed."""

    field: str
    value_a: Any
    timestamp_a: datetime | None
    value_b: Any
    timestamp_b: datetime | None
    resolved_value: Any
    winner: str  # "A" | "B"

    @property
    def losing_value(self) -> Any:
        return self.value_b if self.winner == "A" else self.value_a

    @property
    def losing_timestamp(self) -> datetime | None:
        return self.timestamp_b if self.winner == "A" else self.timestamp_a

    @property
    def winning_timestamp(self) -> datetime | None:
        return self.timestamp_a if self.winner == "A" else self.timestamp_b


@dataclass
class ParseDiagnostic:
    path: str
    total_rows: int = 0
    parsed_rows: int = 0
    failed_rows: int = 0
    unknown_fields: set[str] = field(default_factory=set)
    parse_errors: list[str] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.unknown_fields) or bool(self.parse_errors)

    @property
    def skipped_rows(self) -> int:
        return self.total_rows - self.parsed_rows


@dataclass
class LoadIssuesResult:
    issues: list[Issue] = field(default_factory=list)
    diagnostics: list[ParseDiagnostic] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return any(d.has_issues for d in self.diagnostics)


@dataclass
class MergeResult:
    merged_count: int = 0
    conflicts: list[ConflictRecord] = field(default_factory=list)
    consumed: list[str] = field(default_factory=list)
    produced: list[str] = field(default_factory=list)
    issues_written: int = 0
    rejected_lines: int = 0
    dry_run: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.consumed or self.produced)


@dataclass
class MigrationResult:
    total_issues: int = 0
    migrated: list[str] = field(default_factory=list)
    already_migrated: int = 0
    skipped: list[str] = field(default_factory=list)
    unknown_fields_dropped: set[str] = field(default_factory=set)
    rewritten: list[str] = field(default_factory=list)
    untouched_containers: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def was_migration_needed(self) -> bool:
        return bool(self.migrated) or bool(self.unknown_fields_dropped)


__all__ = [
    "ChangeKind",
    "ChangeRecord",
    "ConflictKind",
    "ConflictRecord",
    "Issue",
    "IssueStatus",
    "IssueType",
    "LoadIssuesResult",
    "MergeResult",
    "MigrationResult",
    "ParentIssueRef",
    "ParseDiagnostic",
    "PropertyConflict",
]
