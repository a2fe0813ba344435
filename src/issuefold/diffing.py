"""Read-only field-level comparison of issue copies.

Two entry points:

* ``diff_containers`` compares two named containers issue by issue and also
  lists identifiers present on only one side.
* ``diff_working_area`` shows the unresolved duplicates of the working area,
  comparing the first candidate of each identifier with every later one.

Neither mutates storage nor consults the conflict ledger. ``as_dict`` on a
report yields a stable structure for JSON tooling::

    {
        "summary": {"a": str, "b": str, "diff_count": int},
        "diff": [{"issue_id": str, "source_a": str, "source_b": str,
                  "fields": {name: {"a": ..., "b": ..., "diff": [...]}}}],
        "only_a": [str], "only_b": [str],
        "in_sync": bool
    }
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from typing import Any

from .codec import encode_value
from .detect import detect
from .fields import RECONCILED_FIELDS
from .ingest import scan_container
from .models import Issue
from .storage import DEFAULT_LAYOUT, AreaLayout, ContainerStore

MAX_DESCRIPTION_DIFF_LINES = 120


@dataclass
class FieldDelta:
    field: str
    value_a: Any
    value_b: Any
    diff_lines: list[str] | None = None


@dataclass
class IssueDelta:
    issue_id: str
    source_a: str
    source_b: str
    fields: dict[str, FieldDelta] = field(default_factory=dict)


@dataclass
class DiffReport:
    label_a: str
    label_b: str
    issues: list[IssueDelta] = field(default_factory=list)
    only_a: list[str] = field(default_factory=list)
    only_b: list[str] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not (self.issues or self.only_a or self.only_b)

    def as_dict(self) -> dict[str, Any]:
        return {
            "summary": {"a": self.label_a, "b": self.label_b, "diff_count": len(self.issues)},
            "diff": [
                {
                    "issue_id": d.issue_id,
                    "source_a": d.source_a,
                    "source_b": d.source_b,
                    "fields": {
                        name: {
                            "a": encode_value(name, delta.value_a),
                            "b": encode_value(name, delta.value_b),
                            **({"diff": delta.diff_lines} if delta.diff_lines else {}),
                        }
                        for name, delta in d.fields.items()
                    },
                }
                for d in self.issues
            ],
            "only_a": list(self.only_a),
            "only_b": list(self.only_b),
            "in_sync": self.in_sync,
        }


def description_diff(old: str | None, new: str | None) -> list[str]:
    old_lines = (old or "").strip().splitlines()
    new_lines = (new or "").strip().splitlines()
    diff_lines = list(difflib.unified_diff(old_lines, new_lines, lineterm="", n=3))
    if len(diff_lines) > MAX_DESCRIPTION_DIFF_LINES:
        diff_lines = diff_lines[:MAX_DESCRIPTION_DIFF_LINES] + ["... (truncated)"]
    return diff_lines


def compute_field_diff(a: Issue, b: Issue) -> dict[str, FieldDelta]:
    d: dict[str, FieldDelta] = {}
    for name in RECONCILED_FIELDS:
        value_a, value_b = getattr(a, name), getattr(b, name)
        if value_a == value_b:
            continue
        delta = FieldDelta(name, value_a, value_b)
        if name == "description":
            delta.diff_lines = description_diff(value_a, value_b)
        d[name] = delta
    return d


def _first_by_key(issues: list[Issue]) -> dict[str, Issue]:
    indexed: dict[str, Issue] = {}
    for issue in issues:
        indexed.setdefault(issue.key, issue)
    return indexed


def diff_containers(store: ContainerStore, name_a: str, name_b: str) -> DiffReport:
    side_a = _first_by_key(scan_container(name_a, store.read_container(name_a)).records)
    side_b = _first_by_key(scan_container(name_b, store.read_container(name_b)).records)
    report = DiffReport(label_a=name_a, label_b=name_b)
    for key, issue_a in side_a.items():
        issue_b = side_b.get(key)
        if issue_b is None:
            report.only_a.append(issue_a.id)
            continue
        fields = compute_field_diff(issue_a, issue_b)
        if fields:
            report.issues.append(IssueDelta(issue_a.id, name_a, name_b, fields))
    report.only_b = [issue.id for key, issue in side_b.items() if key not in side_a]
    return report


def diff_working_area(store: ContainerStore, layout: AreaLayout = DEFAULT_LAYOUT) -> DiffReport:
    detection = detect(store, layout)
    report = DiffReport(label_a="working-area", label_b="duplicates")
    for key in detection.duplicates:
        first, *rest = detection.groups[key]
        for other in rest:
            fields = compute_field_diff(first.issue, other.issue)
            if fields:
                report.issues.append(
                    IssueDelta(
                        first.issue.id,
                        f"{first.container}:{first.line}",
                        f"{other.container}:{other.line}",
                        fields,
                    )
                )
    return report


def _short(value: Any, limit: int = 40) -> str:
    if isinstance(value, (set, frozenset)):
        text = ",".join(sorted(value))
    elif isinstance(value, list):
        text = ",".join(str(v) for v in value)
    elif hasattr(value, "value"):
        text = str(value.value)
    else:
        text = "" if value is None else str(value)
    text = text.replace("\n", " ")
    return text if len(text) <= limit else text[: limit - 3] + "..."


def format_report(report: DiffReport) -> list[str]:  # return list of human lines
    lines: list[str] = []
    if report.in_sync:
        lines.append(f"[diff] No differences ({report.label_a} vs {report.label_b})")
        return lines
    lines.append(
        f"[diff] {len(report.issues)} differing issue(s) ({report.label_a} vs {report.label_b})"
    )
    for delta in report.issues:
        lines.append(f"  {delta.issue_id}: {delta.source_a} vs {delta.source_b}")
        for name, change in delta.fields.items():
            if change.diff_lines:
                lines.append(f"    {name}:")
                lines.extend(f"      {line}" for line in change.diff_lines)
            else:
                lines.append(f"    {name}: {_short(change.value_a)!r} -> {_short(change.value_b)!r}")
    for issue_id in report.only_a:
        lines.append(f"  only in {report.label_a}: {issue_id}")
    for issue_id in report.only_b:
        lines.append(f"  only in {report.label_b}: {issue_id}")
    return lines


__all__ = [
    "DiffReport",
    "FieldDelta",
    "IssueDelta",
    "MAX_DESCRIPTION_DIFF_LINES",
    "compute_field_diff",
    "description_diff",
    "diff_containers",
    "diff_working_area",
    "format_report",
]
