"""Pairwise field-level reconciliation of two copies of one issue.

``a`` is the running winner of a left fold and ``b`` the next candidate. For
every reconciled field the copy whose latest history entry for that field is
strictly later wins; on equal or missing timestamps ``a`` keeps the field.
Whole field values are compared, never their contents.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .fields import RECONCILED_FIELDS
from .models import ChangeRecord, Issue, PropertyConflict


@dataclass
class IssueMergeOutcome:
    merged: Issue
    conflicts: list[PropertyConflict] = field(default_factory=list)

    @property
    def a_lost(self) -> bool:
        return any(c.winner == "B" for c in self.conflicts)

    @property
    def b_lost(self) -> bool:
        return any(c.winner == "A" for c in self.conflicts)


def _is_later(candidate: datetime | None, other: datetime | None) -> bool:
    if candidate is None:
        return False
    return other is None or candidate > other


def _oldest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None or b is None:
        return a if b is None else b
    return min(a, b)


def _newest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None or b is None:
        return a if b is None else b
    return max(a, b)


def merge_history(a: list[ChangeRecord], b: list[ChangeRecord]) -> list[ChangeRecord]:
    """Union of two histories, deduplicated by change id, ordered by time."""
    seen: dict[str, ChangeRecord] = {}
    for change in [*a, *b]:
        seen.setdefault(change.change_id, change)
    return sorted(seen.values(), key=lambda c: c.changed_at)


def merge_issues(a: Issue, b: Issue) -> IssueMergeOutcome:
    values: dict[str, Any] = {}
    conflicts: list[PropertyConflict] = []
    for name in RECONCILED_FIELDS:
        value_a, value_b = getattr(a, name), getattr(b, name)
        if value_a == value_b:
            values[name] = copy.copy(value_a)
            continue
        stamp_a, stamp_b = a.field_timestamp(name), b.field_timestamp(name)
        winner = "B" if _is_later(stamp_b, stamp_a) else "A"
        resolved = value_b if winner == "B" else value_a
        values[name] = copy.copy(resolved)
        conflicts.append(
            PropertyConflict(
                field=name,
                value_a=value_a,
                timestamp_a=stamp_a,
                value_b=value_b,
                timestamp_b=stamp_b,
                resolved_value=resolved,
                winner=winner,
            )
        )

    created_at = _oldest(a.created_at, b.created_at)
    b_is_older = a.created_at is not None and b.created_at is not None and b.created_at < a.created_at
    created_by = a.created_by
    if b.created_by is not None and (created_by is None or b_is_older):
        created_by = b.created_by

    merged = Issue(
        id=a.id,
        created_by=created_by,
        created_at=created_at,
        last_update=_newest(a.last_update, b.last_update),
        history=merge_history(a.history, b.history),
        **values,
    )
    return IssueMergeOutcome(merged=merged, conflicts=conflicts)


__all__ = ["IssueMergeOutcome", "merge_history", "merge_issues"]
