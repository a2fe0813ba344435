"""Static field table for the issue record.

Every consumer (codec, merger, diff and migration) iterates this table instead
of reflecting over :class:`~issuefold.models.Issue`; ``tests/test_fields.py``
checks it against the dataclass so the two cannot drift apart.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str  # str | text | int | status | type | tags | ids | parents | datetime | history
    required: bool = False
    reconcile: bool = False

    def is_empty(self, value: Any) -> bool:
        if value is None:
            return True
        if self.kind in {"tags", "ids", "parents", "history"}:
            return len(value) == 0
        if self.kind in {"str", "text"}:
            return value == ""
        return False


# Canonical order; the codec emits keys in exactly this order.
FIELD_TABLE: tuple[FieldSpec, ...] = (
    FieldSpec("id", "str", required=True),
    FieldSpec("title", "str", required=True, reconcile=True),
    FieldSpec("description", "text", reconcile=True),
    FieldSpec("status", "status", required=True, reconcile=True),
    FieldSpec("type", "type", required=True, reconcile=True),
    FieldSpec("priority", "int", reconcile=True),
    FieldSpec("group", "str", reconcile=True),
    FieldSpec("assignee", "str", reconcile=True),
    FieldSpec("tags", "tags", reconcile=True),
    FieldSpec("linked_pr", "int", reconcile=True),
    FieldSpec("linked_issues", "ids", reconcile=True),
    FieldSpec("parent_issues", "parents", reconcile=True),
    FieldSpec("created_by", "str"),
    FieldSpec("created_at", "datetime"),
    FieldSpec("last_update", "datetime"),
    FieldSpec("history", "history"),
)

FIELDS_BY_NAME: dict[str, FieldSpec] = {spec.name: spec for spec in FIELD_TABLE}
KNOWN_FIELDS: frozenset[str] = frozenset(FIELDS_BY_NAME)
RECONCILED_FIELDS: tuple[str, ...] = tuple(s.name for s in FIELD_TABLE if s.reconcile)

# Legacy camelCase spellings written by older tracker versions.
FIELD_ALIASES: dict[str, str] = {
    "linkedPR": "linked_pr",
    "linkedPr": "linked_pr",
    "linkedIssues": "linked_issues",
    "parentIssues": "parent_issues",
    "assignedTo": "assignee",
    "assigned_to": "assignee",
    "createdBy": "created_by",
    "createdAt": "created_at",
    "lastUpdate": "last_update",
}


def canonical_name(key: str) -> str | None:
    """Map a record key to its field name, or None when it is unknown."""
    if key in KNOWN_FIELDS:
        return key
    return FIELD_ALIASES.get(key)


def non_empty_fields(values: Iterable[tuple[str, Any]]) -> list[str]:
    names: list[str] = []
    for name, value in values:
        spec = FIELDS_BY_NAME[name]
        if not spec.is_empty(value):
            names.append(name)
    return names


__all__ = [
    "FieldSpec",
    "FIELD_TABLE",
    "FIELDS_BY_NAME",
    "KNOWN_FIELDS",
    "RECONCILED_FIELDS",
    "FIELD_ALIASES",
    "canonical_name",
    "non_empty_fields",
]
