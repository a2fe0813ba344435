from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from .config import TrackerConfig, default_config
from .detect import Detection, detect
from .diffing import DiffReport, diff_containers, diff_working_area
from .ingest import load_working_area
from .ledger import ConflictLedger
from .logging import configure_logging
from .merge import maybe_auto_merge, merge_duplicates
from .migration import migrate
from .models import ConflictRecord, LoadIssuesResult, MergeResult, MigrationResult
from .observability import configure_telemetry
from .storage import ContainerStore, FileContainerStore

T = TypeVar("T")


class IssueTracker:
    """Entry point bundling a working area, its configuration and logging."""

    def __init__(self, cfg: TrackerConfig, store: ContainerStore | None = None):
        self.cfg = cfg
        self.store: ContainerStore = store or FileContainerStore(cfg.directory)
        self.layout = cfg.layout
        # Last error classification (populated on failure)
        self._last_error: dict[str, Any] | None = None
        self._logger = configure_logging(json_logging=cfg.logging_json_enabled, level=cfg.logging_level)
        if cfg.telemetry_enabled:
            configure_telemetry(
                service_name="issuefold",
                exporter=cfg.telemetry_exporter,
                endpoint=cfg.telemetry_endpoint,
            )

    @classmethod
    def from_config_path(cls, path: str | Path) -> IssueTracker:
        from .config import load_config  # noqa: PLC0415

        return cls(load_config(path))

    @classmethod
    def for_directory(cls, root: str | Path) -> IssueTracker:
        """Tracker over ``<root>/.issues`` with default settings."""
        return cls(default_config(root))

    @property
    def last_error(self) -> dict[str, Any] | None:
        return self._last_error

    def _run(self, operation: str, fn: Callable[[], T], **kw: Any) -> T:
        from .errors import classify_error  # noqa: PLC0415

        try:
            with self._logger.timed_operation(operation, **kw):
                return fn()
        except Exception as exc:  # broad catch to enrich logging then re-raise
            info = classify_error(exc)
            self._logger.log_error(
                f"{operation}_failed",
                category=info.category,
                transient=info.transient,
                original_type=info.original_type,
                error=info.message,
            )
            self._last_error = {
                "category": info.category,
                "transient": info.transient,
                "original_type": info.original_type,
                "message": info.message,
            }
            raise

    def load(self) -> LoadIssuesResult:
        return self._run("load", lambda: load_working_area(self.store, self.layout))

    def detect(self) -> Detection:
        return self._run("detect", lambda: detect(self.store, self.layout))

    def merge(self, *, dry_run: bool = False) -> MergeResult:
        return self._run(
            "merge",
            lambda: merge_duplicates(self.store, dry_run, self.layout, logger=self._logger),
            dry_run=dry_run,
        )

    def maybe_auto_merge(self) -> MergeResult | None:
        return self._run("auto_merge", lambda: maybe_auto_merge(self.store, self.cfg, logger=self._logger))

    def diff(self, container_a: str | None = None, container_b: str | None = None) -> DiffReport:
        if (container_a is None) != (container_b is None):
            raise ValueError("diff needs both containers or neither")
        if container_a is not None and container_b is not None:
            a, b = container_a, container_b
            return self._run("diff", lambda: diff_containers(self.store, a, b))
        return self._run("diff", lambda: diff_working_area(self.store, self.layout))

    def migrate(self, *, dry_run: bool = False) -> MigrationResult:
        return self._run(
            "migrate",
            lambda: migrate(
                self.store, dry_run, self.cfg.migrated_by, self.layout, logger=self._logger
            ),
            dry_run=dry_run,
        )

    def conflicts(self, issue_id: str | None = None) -> list[ConflictRecord]:
        ledger = ConflictLedger(self.store, self.layout.conflicts)
        if issue_id is None:
            return self._run("conflicts", ledger.load)
        return self._run("conflicts", lambda: ledger.for_issue(issue_id))

    def clear_conflicts(self, issue_id: str) -> int:
        ledger = ConflictLedger(self.store, self.layout.conflicts)
        return self._run("clear_conflicts", lambda: ledger.clear(issue_id), issue_id=issue_id)


__all__ = ["IssueTracker"]
