"""Line codec for issue and conflict records.

One JSON object per line. Encoding emits keys in field-table order and omits
absent optional values. Decoding never raises for malformed input: it returns
either a :class:`Decoded` value (with any unknown keys it dropped) or a
:class:`ParseFailure` carrying a human-readable reason.

Legacy values are upgraded on the way in:

==================  ===================
stored value        decoded as
==================  ===================
status ``idea``     ``open``
status ``spec``     ``open``
status ``next``     ``open``
status ``progress`` ``in-progress``
status ``review``   ``in-review``
change ``created``  ``create``
change ``updated``  ``update``
change ``deleted``  ``delete``
parent ``"x:key"``  ``ParentIssueRef``
==================  ===================
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from . import ordering
from .fields import FIELD_TABLE, FIELDS_BY_NAME, canonical_name
from .models import (
    ChangeKind,
    ChangeRecord,
    ConflictKind,
    ConflictRecord,
    Issue,
    IssueStatus,
    IssueType,
    ParentIssueRef,
)

T = TypeVar("T")

_STATUS_ALIASES: dict[str, IssueStatus] = {
    "idea": IssueStatus.OPEN,
    "spec": IssueStatus.OPEN,
    "next": IssueStatus.OPEN,
    "progress": IssueStatus.IN_PROGRESS,
    "review": IssueStatus.IN_REVIEW,
}
_CHANGE_ALIASES: dict[str, ChangeKind] = {
    "created": ChangeKind.CREATE,
    "updated": ChangeKind.UPDATE,
    "deleted": ChangeKind.DELETE,
}
_COLLECTION_KINDS = {"tags", "ids", "parents", "history"}
_POSITIVE_INTS = {"priority"}


class _FieldError(ValueError):
    pass


@dataclass
class Decoded(Generic[T]):
    record: T
    unknown_fields: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class ParseFailure:
    reason: str


# --- scalar helpers ---------------------------------------------------------


def format_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_datetime(raw: Any, name: str = "timestamp") -> datetime:
    if not isinstance(raw, str) or not raw.strip():
        raise _FieldError(f"field '{name}' must be an ISO-8601 timestamp")
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        value = datetime.fromisoformat(text)
    except ValueError as exc:
        raise _FieldError(f"field '{name}' has invalid timestamp {raw!r}") from exc
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def parse_status(raw: Any) -> IssueStatus:
    if not isinstance(raw, str):
        raise _FieldError("field 'status' must be a string")
    token = raw.strip().lower()
    if token in _STATUS_ALIASES:
        return _STATUS_ALIASES[token]
    try:
        return IssueStatus(token)
    except ValueError:
        raise _FieldError(f"unknown status {raw!r}") from None


def parse_type(raw: Any) -> IssueType:
    if not isinstance(raw, str):
        raise _FieldError("field 'type' must be a string")
    try:
        return IssueType(raw.strip().lower())
    except ValueError:
        raise _FieldError(f"unknown issue type {raw!r}") from None


def _parse_str(raw: Any, name: str) -> str:
    if not isinstance(raw, str):
        raise _FieldError(f"field '{name}' must be a string")
    return raw


def _parse_int(raw: Any, name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise _FieldError(f"field '{name}' must be an integer")
    if name in _POSITIVE_INTS and raw < 1:
        raise _FieldError(f"field '{name}' must be a positive integer")
    return raw


def _parse_str_list(raw: Any, name: str) -> list[str]:
    if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
        raise _FieldError(f"field '{name}' must be a list of strings")
    return list(raw)


def _parse_parents(raw: Any) -> list[ParentIssueRef]:
    if not isinstance(raw, list):
        raise _FieldError("field 'parent_issues' must be a list")
    refs: list[ParentIssueRef] = []
    auto_index = 0
    for item in raw:
        if isinstance(item, str):
            if ":" in item:
                refs.append(ordering.parse_one(item))
            else:
                refs.append(ordering.parse_one(item, ordering.key_at(auto_index)))
                auto_index += 1
        elif isinstance(item, dict):
            parent = item.get("parent_issue", item.get("parentIssue"))
            sort_order = item.get("sort_order", item.get("sortOrder"))
            if not isinstance(parent, str) or not isinstance(sort_order, str):
                raise _FieldError("parent reference needs string 'parent_issue' and 'sort_order'")
            refs.append(ParentIssueRef(parent_issue=parent, sort_order=sort_order))
        else:
            raise _FieldError("parent reference must be a string or an object")
    return refs


def _parse_change(raw: Any) -> ChangeRecord:
    if not isinstance(raw, dict):
        raise _FieldError("history entries must be objects")
    kind_raw = raw.get("kind", "update")
    if not isinstance(kind_raw, str):
        raise _FieldError("history entry 'kind' must be a string")
    kind_token = kind_raw.strip().lower()
    try:
        kind = _CHANGE_ALIASES.get(kind_token) or ChangeKind(kind_token)
    except ValueError:
        raise _FieldError(f"unknown change kind {kind_raw!r}") from None
    field_name = raw.get("field")
    if field_name is not None and not isinstance(field_name, str):
        raise _FieldError("history entry 'field' must be a string")
    changed_by = raw.get("changed_by")
    if changed_by is not None and not isinstance(changed_by, str):
        raise _FieldError("history entry 'changed_by' must be a string")
    name = (canonical_name(field_name) or field_name) if field_name else None
    changed_at = parse_datetime(raw.get("changed_at"), "changed_at")
    change_id = raw.get("change_id")
    if not isinstance(change_id, str) or not change_id:
        change_id = _legacy_change_id(name, kind, changed_at, changed_by)
    return ChangeRecord(
        field=name,
        kind=kind,
        changed_at=changed_at,
        changed_by=changed_by,
        change_id=change_id,
    )


def _legacy_change_id(
    name: str | None, kind: ChangeKind, changed_at: datetime, changed_by: str | None
) -> str:
    # Same entry in two copies of an issue must get the same id.
    material = "\x1f".join([name or "", kind.value, format_datetime(changed_at), changed_by or ""])
    return hashlib.sha256(material.encode("utf-8", "surrogatepass")).hexdigest()[:32]


def _parse_history(raw: Any) -> list[ChangeRecord]:
    if not isinstance(raw, list):
        raise _FieldError("field 'history' must be a list")
    return [_parse_change(entry) for entry in raw]


# --- field value conversion ---------------------------------------------------


def encode_value(name: str, value: Any) -> Any:
    """Convert a model value of field ``name`` to its JSON form."""
    if value is None:
        return None
    kind = FIELDS_BY_NAME[name].kind
    if kind in {"status", "type"}:
        return value.value
    if kind == "tags":
        return sorted(value)
    if kind == "ids":
        return list(value)
    if kind == "parents":
        return [{"parent_issue": r.parent_issue, "sort_order": r.sort_order} for r in value]
    if kind == "datetime":
        return format_datetime(value)
    if kind == "history":
        return [_encode_change(c) for c in value]
    return value


def decode_value(name: str, raw: Any) -> Any:
    """Inverse of :func:`encode_value`; raises ``ValueError`` on bad input."""
    kind = FIELDS_BY_NAME[name].kind
    if raw is None:
        return [] if kind in {"ids", "parents", "history"} else set() if kind == "tags" else None
    if kind == "status":
        return parse_status(raw)
    if kind == "type":
        return parse_type(raw)
    if kind in {"str", "text"}:
        return _parse_str(raw, name)
    if kind == "int":
        return _parse_int(raw, name)
    if kind == "tags":
        return set(_parse_str_list(raw, name))
    if kind == "ids":
        return _parse_str_list(raw, name)
    if kind == "parents":
        return _parse_parents(raw)
    if kind == "datetime":
        return parse_datetime(raw, name)
    return _parse_history(raw)


def _encode_change(change: ChangeRecord) -> dict[str, Any]:
    entry: dict[str, Any] = {}
    if change.field is not None:
        entry["field"] = change.field
    entry["kind"] = change.kind.value
    entry["changed_at"] = format_datetime(change.changed_at)
    if change.changed_by is not None:
        entry["changed_by"] = change.changed_by
    entry["change_id"] = change.change_id
    return entry


# --- issues -------------------------------------------------------------------


def issue_to_dict(issue: Issue) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for spec in FIELD_TABLE:
        value = getattr(issue, spec.name)
        if value is None or (spec.kind in _COLLECTION_KINDS and not value):
            continue
        payload[spec.name] = encode_value(spec.name, value)
    return payload


def encode_issue(issue: Issue) -> str:
    return json.dumps(issue_to_dict(issue), ensure_ascii=False, separators=(",", ":"))


def issue_from_dict(raw: dict[str, Any]) -> Decoded[Issue]:
    """Build an issue from a decoded JSON object; raises ``ValueError`` on bad fields."""
    values: dict[str, Any] = {}
    unknown: set[str] = set()
    for key, raw_value in raw.items():
        name = canonical_name(key)
        if name is None:
            unknown.add(key)
            continue
        values[name] = decode_value(name, raw_value)
    for spec in FIELD_TABLE:
        if spec.required and values.get(spec.name) is None:
            raise _FieldError(f"missing required field '{spec.name}'")
    if not values["id"].strip():
        raise _FieldError("field 'id' must not be empty")
    return Decoded(record=Issue(**values), unknown_fields=unknown)


def _load_object(line: str) -> dict[str, Any] | ParseFailure:
    try:
        raw = json.loads(line)
    except json.JSONDecodeError as exc:
        return ParseFailure(f"invalid JSON: {exc.msg} (column {exc.colno})")
    except ValueError as exc:
        # e.g. integers past the interpreter's digit limit
        return ParseFailure(f"invalid JSON: {exc}")
    except RecursionError:
        return ParseFailure("invalid JSON: nesting too deep")
    if not isinstance(raw, dict):
        return ParseFailure("record must be a JSON object")
    return raw


def decode_issue(line: str) -> Decoded[Issue] | ParseFailure:
    raw = _load_object(line)
    if isinstance(raw, ParseFailure):
        return raw
    try:
        return issue_from_dict(raw)
    except ValueError as exc:
        return ParseFailure(str(exc))


# --- conflicts ------------------------------------------------------------------

_CONFLICT_KEYS = frozenset(
    {
        "conflict_id",
        "issue_id",
        "kind",
        "detected_at",
        "field",
        "losing_value",
        "losing_timestamp",
        "winning_value",
        "winning_timestamp",
        "resolution",
        "source",
        "snapshot",
    }
)


def encode_conflict(conflict: ConflictRecord) -> str:
    payload: dict[str, Any] = {
        "conflict_id": conflict.conflict_id,
        "issue_id": conflict.issue_id,
        "kind": conflict.kind.value,
        "detected_at": format_datetime(conflict.detected_at),
    }
    if conflict.field is not None:
        payload["field"] = conflict.field
        payload["losing_value"] = encode_value(conflict.field, conflict.losing_value)
        payload["winning_value"] = encode_value(conflict.field, conflict.winning_value)
    if conflict.losing_timestamp is not None:
        payload["losing_timestamp"] = format_datetime(conflict.losing_timestamp)
    if conflict.winning_timestamp is not None:
        payload["winning_timestamp"] = format_datetime(conflict.winning_timestamp)
    if conflict.resolution is not None:
        payload["resolution"] = conflict.resolution
    if conflict.source is not None:
        payload["source"] = conflict.source
    if conflict.snapshot is not None:
        payload["snapshot"] = issue_to_dict(conflict.snapshot)
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def conflict_identity(conflict: ConflictRecord) -> str:
    """Encoded form of ``conflict`` without its id and detection time."""
    payload = json.loads(encode_conflict(conflict))
    payload.pop("conflict_id", None)
    payload.pop("detected_at", None)
    return json.dumps(payload, sort_keys=True, ensure_ascii=False)


def _conflict_from_dict(raw: dict[str, Any]) -> Decoded[ConflictRecord]:
    issue_id = raw.get("issue_id")
    if not isinstance(issue_id, str) or not issue_id:
        raise _FieldError("missing required field 'issue_id'")
    try:
        kind = ConflictKind(str(raw.get("kind", "")).lower())
    except ValueError:
        raise _FieldError(f"unknown conflict kind {raw.get('kind')!r}") from None
    field_name = raw.get("field")
    if field_name is not None and canonical_name(str(field_name)) is None:
        raise _FieldError(f"unknown conflict field {field_name!r}")
    name = canonical_name(field_name) if field_name is not None else None
    snapshot_raw = raw.get("snapshot")
    snapshot = None
    if snapshot_raw is not None:
        if not isinstance(snapshot_raw, dict):
            raise _FieldError("field 'snapshot' must be an object")
        snapshot = issue_from_dict(snapshot_raw).record
    record = ConflictRecord(
        issue_id=issue_id,
        kind=kind,
        detected_at=parse_datetime(raw.get("detected_at"), "detected_at"),
        field=name,
        losing_value=decode_value(name, raw.get("losing_value")) if name else None,
        losing_timestamp=_optional_datetime(raw, "losing_timestamp"),
        winning_value=decode_value(name, raw.get("winning_value")) if name else None,
        winning_timestamp=_optional_datetime(raw, "winning_timestamp"),
        resolution=raw.get("resolution") if isinstance(raw.get("resolution"), str) else None,
        source=raw.get("source") if isinstance(raw.get("source"), str) else None,
        snapshot=snapshot,
    )
    conflict_id = raw.get("conflict_id")
    if isinstance(conflict_id, str) and conflict_id:
        record.conflict_id = conflict_id
    return Decoded(record=record, unknown_fields=set(raw) - _CONFLICT_KEYS)


def _optional_datetime(raw: dict[str, Any], key: str) -> datetime | None:
    value = raw.get(key)
    return None if value is None else parse_datetime(value, key)


def decode_conflict(line: str) -> Decoded[ConflictRecord] | ParseFailure:
    raw = _load_object(line)
    if isinstance(raw, ParseFailure):
        return raw
    try:
        return _conflict_from_dict(raw)
    except ValueError as exc:
        return ParseFailure(str(exc))


__all__ = [
    "Decoded",
    "ParseFailure",
    "conflict_identity",
    "decode_conflict",
    "decode_issue",
    "decode_value",
    "encode_conflict",
    "encode_issue",
    "encode_value",
    "format_datetime",
    "issue_from_dict",
    "issue_to_dict",
    "parse_datetime",
    "parse_status",
    "parse_type",
]
