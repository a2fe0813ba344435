"""Append-only store of values discarded by merges.

Records stay until :meth:`ConflictLedger.clear` removes those of one issue.
Every write replaces the whole ledger container atomically; lines that do
not decode are carried over untouched.
"""

from __future__ import annotations

import logging

from .codec import conflict_identity, decode_conflict, encode_conflict
from .ingest import ContainerScan, scan_lines
from .models import ConflictRecord
from .storage import DEFAULT_LAYOUT, ContainerStore, join_lines

logger = logging.getLogger(__name__)


class ConflictLedger:
    def __init__(self, store: ContainerStore, name: str = DEFAULT_LAYOUT.conflicts) -> None:
        self.store = store
        self.name = name
        self._records: list[ConflictRecord] | None = None

    def _scan(self) -> tuple[list[str], ContainerScan[ConflictRecord]]:
        text = self.store.read_container(self.name)
        return text.splitlines(), scan_lines(self.name, text, decode_conflict)

    def load(self) -> list[ConflictRecord]:
        _, scan = self._scan()
        self._records = scan.records
        return list(self._records)

    def all(self) -> list[ConflictRecord]:
        if self._records is None:
            return self.load()
        return list(self._records)

    def for_issue(self, issue_id: str) -> list[ConflictRecord]:
        key = issue_id.lower()
        return [r for r in self.all() if r.issue_id.lower() == key]

    def append(self, records: list[ConflictRecord]) -> int:
        """Append ``records``, skipping any already present; returns how many were written.

        Records are compared without their id and detection time, so re-running
        a merge that failed after this step does not repeat its entries.
        """
        if not records:
            return 0
        lines, scan = self._scan()
        seen = {conflict_identity(r) for r in scan.records}
        fresh: list[ConflictRecord] = []
        for record in records:
            identity = conflict_identity(record)
            if identity not in seen:
                seen.add(identity)
                fresh.append(record)
        if not fresh:
            logger.debug("all %d conflict records already in %s", len(records), self.name)
            return 0
        kept = [line for line in lines if line.strip()]
        kept.extend(encode_conflict(r) for r in fresh)
        self.store.write_container_atomically(self.name, join_lines(kept))
        self._records = None
        logger.debug("appended %d conflict records to %s", len(fresh), self.name)
        return len(fresh)

    def clear(self, issue_id: str) -> int:
        """Remove every record of ``issue_id``; returns how many were removed."""
        key = issue_id.lower()
        lines, scan = self._scan()
        drop = {line_no for line_no, record in scan.entries if record.issue_id.lower() == key}
        if not drop:
            return 0
        kept = [line for line_no, line in enumerate(lines, start=1) if line_no not in drop and line.strip()]
        self.store.write_container_atomically(self.name, join_lines(kept))
        self._records = None
        logger.info("cleared %d conflict records for %s", len(drop), issue_id)
        return len(drop)


__all__ = ["ConflictLedger"]
