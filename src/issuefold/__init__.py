"""issuefold - merge and conflict resolution for line-per-issue trackers.

High-level public API (stable):

from issuefold import IssueTracker

tracker = IssueTracker.from_config_path('issuefold.yaml')
if not tracker.detect().is_clean:
    result = tracker.merge(dry_run=True)
    print(result.merged_count, len(result.conflicts))

# Or, with defaults rooted at a repository checkout:
# tracker = IssueTracker.for_directory('.')

Lower-level building blocks (codec, ingest, detect, merger, ledger, diffing,
ordering, migration) are importable from their modules.
"""

from __future__ import annotations

from .config import ConfigError, TrackerConfig, default_config, load_config
from .core import IssueTracker
from .models import (
    ChangeKind,
    ChangeRecord,
    ConflictKind,
    ConflictRecord,
    Issue,
    IssueStatus,
    IssueType,
    MergeResult,
    MigrationResult,
    ParentIssueRef,
)
from .storage import FileContainerStore, StorageError

# Version constant (sync manually with pyproject)
__version__ = "0.1.0"

__all__ = [
    "ChangeKind",
    "ChangeRecord",
    "ConfigError",
    "ConflictKind",
    "ConflictRecord",
    "FileContainerStore",
    "Issue",
    "IssueStatus",
    "IssueTracker",
    "IssueType",
    "MergeResult",
    "MigrationResult",
    "ParentIssueRef",
    "StorageError",
    "TrackerConfig",
    "default_config",
    "load_config",
    "__version__",
]
