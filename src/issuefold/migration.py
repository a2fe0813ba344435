"""Upgrade legacy issues to per-field change history.

A legacy issue has no history entry naming a field, so every field would
look "oldest possible" to the merger. Migration gives it one ``update``
record per non-empty reconciled field, stamped with the issue's
``last_update`` (or ``created_at`` when that is missing). Issues that already
carry per-field history are left alone, so running it twice changes nothing.
"""

from __future__ import annotations

from dataclasses import replace

from .codec import encode_issue
from .fields import RECONCILED_FIELDS, non_empty_fields
from .ingest import scan_container
from .logging import StructuredLogger, get_logger
from .models import ChangeKind, ChangeRecord, Issue, MigrationResult
from .observability import operation_span
from .storage import DEFAULT_LAYOUT, AreaLayout, ContainerStore, join_lines


def needs_migration(issue: Issue) -> bool:
    return not issue.has_field_history


def migrate_issue(issue: Issue, changed_by: str) -> Issue | None:
    """Return the upgraded issue, or None when it has no timestamp to use."""
    stamp = issue.last_update or issue.created_at
    if stamp is None:
        return None
    names = non_empty_fields((name, getattr(issue, name)) for name in RECONCILED_FIELDS)
    synthesized = [
        ChangeRecord(field=name, kind=ChangeKind.UPDATE, changed_at=stamp, changed_by=changed_by)
        for name in names
    ]
    return replace(issue, history=[*issue.history, *synthesized])


def migrate(
    store: ContainerStore,
    dry_run: bool = False,
    changed_by: str = "migration",
    layout: AreaLayout = DEFAULT_LAYOUT,
    *,
    logger: StructuredLogger | None = None,
) -> MigrationResult:
    log = logger or get_logger()
    result = MigrationResult(dry_run=dry_run)
    with operation_span("issuefold.migrate", dry_run=dry_run) as span:
        for name in layout.issue_containers(store):
            scan = scan_container(name, store.read_container(name))
            result.total_issues += len(scan.entries)
            if scan.diagnostic.parse_errors:
                # Rewriting would lose the lines that failed to decode.
                result.untouched_containers.append(name)
                log.warning(
                    "container has unparseable lines; not migrated",
                    container=name,
                    failed_rows=scan.diagnostic.failed_rows,
                )
                continue

            rewrite = bool(scan.diagnostic.unknown_fields)
            result.unknown_fields_dropped.update(scan.diagnostic.unknown_fields)
            upgraded: list[Issue] = []
            for issue in scan.records:
                if not needs_migration(issue):
                    result.already_migrated += 1
                    upgraded.append(issue)
                    continue
                migrated = migrate_issue(issue, changed_by)
                if migrated is None:
                    result.skipped.append(issue.id)
                    upgraded.append(issue)
                    continue
                result.migrated.append(issue.id)
                upgraded.append(migrated)
                rewrite = True
                log.log_issue_action("migrated", issue.id, dry_run=dry_run, container=name)

            if not rewrite:
                continue
            result.rewritten.append(name)
            if not dry_run:
                store.write_container_atomically(name, join_lines([encode_issue(i) for i in upgraded]))

        span.set_attribute("issuefold.migrated", len(result.migrated))
        span.set_attribute("issuefold.rewritten", len(result.rewritten))
        log.log_operation(
            "migrate_completed",
            dry_run=dry_run,
            migrated=len(result.migrated),
            already_migrated=result.already_migrated,
            skipped=len(result.skipped),
        )
    return result


def is_migration_needed(store: ContainerStore, layout: AreaLayout = DEFAULT_LAYOUT) -> bool:
    """True when :func:`migrate` would rewrite something; emits no operation logs or spans."""
    for name in layout.issue_containers(store):
        scan = scan_container(name, store.read_container(name))
        if scan.diagnostic.parse_errors:
            continue
        if scan.diagnostic.unknown_fields:
            return True
        if any(needs_migration(i) and (i.last_update or i.created_at) for i in scan.records):
            return True
    return False


__all__ = ["is_migration_needed", "migrate", "migrate_issue", "needs_migration"]
