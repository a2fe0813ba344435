"""Consolidate every copy of every issue into the primary container.

Copies of one identifier are folded left in enumeration order (primary
container first, then the others by name) with :func:`merge_issues`. Every
discarded value is appended to the conflict ledger before the primary
container is replaced; only then are the other containers deleted. Lines that
failed to decode in any rewritten container are moved to the rejected-lines
container. Ledger and rejected-line entries already present are not written
again, so a merge that failed part way can simply be re-run.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone

from .codec import encode_issue
from .config import TrackerConfig
from .detect import Candidate, detect
from .fields import RECONCILED_FIELDS
from .ledger import ConflictLedger
from .logging import StructuredLogger, get_logger
from .merger import IssueMergeOutcome, merge_issues
from .models import ConflictKind, ConflictRecord, Issue, MergeResult
from .observability import operation_span
from .storage import DEFAULT_LAYOUT, AreaLayout, ContainerStore, join_lines


def conflict_records(
    outcome: IssueMergeOutcome,
    running: Issue,
    running_source: str,
    candidate: Candidate,
    detected_at: datetime,
    field_sources: Mapping[str, str] | None = None,
) -> list[ConflictRecord]:
    """Ledger entries for one fold step: a field record per lost value, then snapshots.

    ``field_sources`` names the container each of the running winner's field
    values came from; fields it omits are attributed to ``running_source``.
    """
    sources = field_sources or {}
    records: list[ConflictRecord] = []
    issue_id = running.id
    for conflict in outcome.conflicts:
        if conflict.winner == "A":
            source = candidate.container
        else:
            source = sources.get(conflict.field, running_source)
        records.append(
            ConflictRecord(
                issue_id=issue_id,
                kind=ConflictKind.FIELD,
                detected_at=detected_at,
                field=conflict.field,
                losing_value=conflict.losing_value,
                losing_timestamp=conflict.losing_timestamp,
                winning_value=conflict.resolved_value,
                winning_timestamp=conflict.winning_timestamp,
                resolution="kept" if conflict.winner == "A" else "replaced",
                source=source,
            )
        )
    if outcome.a_lost:
        records.append(
            ConflictRecord(
                issue_id=issue_id,
                kind=ConflictKind.SNAPSHOT,
                detected_at=detected_at,
                source=running_source,
                snapshot=running,
            )
        )
    if outcome.b_lost:
        records.append(
            ConflictRecord(
                issue_id=issue_id,
                kind=ConflictKind.SNAPSHOT,
                detected_at=detected_at,
                source=candidate.container,
                snapshot=candidate.issue,
            )
        )
    return records


def fold_candidates(
    candidates: list[Candidate], detected_at: datetime
) -> tuple[Issue, list[ConflictRecord]]:
    """Left-fold the copies of one issue; the running source follows the latest winning container."""
    first = candidates[0]
    running, running_source = first.issue, first.container
    field_sources = dict.fromkeys(RECONCILED_FIELDS, first.container)
    records: list[ConflictRecord] = []
    for candidate in candidates[1:]:
        outcome = merge_issues(running, candidate.issue)
        records.extend(
            conflict_records(outcome, running, running_source, candidate, detected_at, field_sources)
        )
        for conflict in outcome.conflicts:
            if conflict.winner == "B":
                field_sources[conflict.field] = candidate.container
        if outcome.a_lost:
            running_source = candidate.container
        running = outcome.merged
    return running, records


def merge_duplicates(
    store: ContainerStore,
    dry_run: bool = False,
    layout: AreaLayout = DEFAULT_LAYOUT,
    *,
    logger: StructuredLogger | None = None,
    now: datetime | None = None,
) -> MergeResult:
    log = logger or get_logger()
    result = MergeResult(dry_run=dry_run)
    with operation_span("issuefold.merge", dry_run=dry_run) as span:
        detection = detect(store, layout)
        if detection.is_clean:
            log.debug("working area clean; nothing to merge")
            return result

        detected_at = now or datetime.now(timezone.utc)
        merged_issues: list[Issue] = []
        for candidates in detection.groups.values():
            if len(candidates) == 1:
                merged_issues.append(candidates[0].issue)
                continue
            issue, records = fold_candidates(candidates, detected_at)
            merged_issues.append(issue)
            result.merged_count += 1
            result.conflicts.extend(records)
            log.log_issue_action(
                "merged",
                issue.id,
                dry_run=dry_run,
                candidates=len(candidates),
                conflicts=len(records),
            )

        rejected = [line for scan in detection.scans for line in scan.rejected_lines]
        result.consumed = [name for name in detection.containers if name != layout.primary]
        result.produced = [layout.primary]
        result.issues_written = len(merged_issues)
        result.rejected_lines = len(rejected)

        span.set_attribute("issuefold.merged_count", result.merged_count)
        span.set_attribute("issuefold.conflicts", len(result.conflicts))
        span.set_attribute("issuefold.consumed", len(result.consumed))

        if dry_run:
            log.log_operation("merge_planned", merged=result.merged_count, conflicts=len(result.conflicts))
            return result

        primary_text = join_lines([encode_issue(i) for i in merged_issues])
        ConflictLedger(store, layout.conflicts).append(result.conflicts)
        if rejected:
            previous = [line for line in store.read_container(layout.rejected).splitlines() if line.strip()]
            known = set(previous)
            fresh = [line for line in rejected if line not in known]
            if fresh:
                store.write_container_atomically(layout.rejected, join_lines(previous + fresh))
        store.write_container_atomically(layout.primary, primary_text)
        for name in result.consumed:
            store.delete_container(name)
        log.log_operation(
            "merge_completed",
            merged=result.merged_count,
            conflicts=len(result.conflicts),
            consumed=len(result.consumed),
            rejected_lines=result.rejected_lines,
        )
    return result


def maybe_auto_merge(
    store: ContainerStore,
    cfg: TrackerConfig,
    *,
    logger: StructuredLogger | None = None,
) -> MergeResult | None:
    """Merge before another operation when ``auto_merge`` is on and the area needs it."""
    if not cfg.auto_merge:
        return None
    if detect(store, cfg.layout).is_clean:
        return None
    return merge_duplicates(store, layout=cfg.layout, logger=logger)


__all__ = ["conflict_records", "fold_candidates", "maybe_auto_merge", "merge_duplicates"]
