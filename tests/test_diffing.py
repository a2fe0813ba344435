from __future__ import annotations

from conftest import build_issue, write_issues

from issuefold.diffing import (
    MAX_DESCRIPTION_DIFF_LINES,
    compute_field_diff,
    diff_containers,
    diff_working_area,
    format_report,
)
from issuefold.models import IssueStatus


def test_compute_field_diff_lists_only_changed_fields():
    a = build_issue(title="A", status=IssueStatus.OPEN, tags={"x"})
    b = build_issue(title="B", status=IssueStatus.OPEN, tags={"x", "y"})
    delta = compute_field_diff(a, b)
    assert set(delta) == {"title", "tags"}
    assert (delta["title"].value_a, delta["title"].value_b) == ("A", "B")


def test_history_differences_are_ignored():
    a = build_issue(stamps={"title": 1})
    b = build_issue(stamps={"title": 2})
    assert compute_field_diff(a, b) == {}


def test_description_diff_is_truncated():
    old = "\n".join(f"line {i}" for i in range(200))
    new = "\n".join(f"changed {i}" for i in range(200))
    delta = compute_field_diff(build_issue(description=old), build_issue(description=new))
    lines = delta["description"].diff_lines
    assert lines is not None
    assert len(lines) == MAX_DESCRIPTION_DIFF_LINES + 1
    assert lines[-1] == "... (truncated)"


def test_diff_containers(store):
    write_issues(store, "left.jsonl", [build_issue("abc123", title="A"), build_issue("def456")])
    write_issues(store, "right.jsonl", [build_issue("ABC123", title="B"), build_issue("ghi789")])
    report = diff_containers(store, "left.jsonl", "right.jsonl")

    assert [d.issue_id for d in report.issues] == ["abc123"]
    assert set(report.issues[0].fields) == {"title"}
    assert report.only_a == ["def456"]
    assert report.only_b == ["ghi789"]
    assert not report.in_sync


def test_identical_containers_are_in_sync(store):
    write_issues(store, "left.jsonl", [build_issue("abc123")])
    write_issues(store, "right.jsonl", [build_issue("abc123")])
    report = diff_containers(store, "left.jsonl", "right.jsonl")
    assert report.in_sync
    assert format_report(report) == ["[diff] No differences (left.jsonl vs right.jsonl)"]


def test_diff_working_area_shows_unresolved_duplicates(store):
    write_issues(store, "issues.jsonl", [build_issue("abc123", title="A")])
    write_issues(store, "issues-x.jsonl", [build_issue("abc123", title="B"), build_issue("solo")])
    before = {n: store.read_container(n) for n in store.list_containers()}

    report = diff_working_area(store)
    assert len(report.issues) == 1
    delta = report.issues[0]
    assert (delta.source_a, delta.source_b) == ("issues.jsonl:1", "issues-x.jsonl:1")
    assert {n: store.read_container(n) for n in store.list_containers()} == before


def test_format_report_lines(store):
    write_issues(store, "left.jsonl", [build_issue("abc123", title="A", description="one")])
    write_issues(store, "right.jsonl", [build_issue("abc123", title="B", description="two"), build_issue("z9")])
    lines = format_report(diff_containers(store, "left.jsonl", "right.jsonl"))

    assert lines[0] == "[diff] 1 differing issue(s) (left.jsonl vs right.jsonl)"
    assert "    title: 'A' -> 'B'" in lines
    assert "    description:" in lines
    assert "      -one" in lines
    assert lines[-1] == "  only in right.jsonl: z9"


def test_report_as_dict_is_json_friendly(store):
    write_issues(store, "left.jsonl", [build_issue("abc123", tags={"b", "a"})])
    write_issues(store, "right.jsonl", [build_issue("abc123", tags={"c"})])
    data = diff_containers(store, "left.jsonl", "right.jsonl").as_dict()
    assert data["summary"]["diff_count"] == 1
    assert data["diff"][0]["fields"]["tags"] == {"a": ["a", "b"], "b": ["c"]}
    assert data["in_sync"] is False
