from __future__ import annotations

import json

from conftest import at, build_issue, write_issues

from issuefold import migration
from issuefold.codec import encode_issue
from issuefold.ingest import load_container
from issuefold.migration import is_migration_needed, migrate
from issuefold.models import ChangeKind


def _legacy_line(issue_id: str, **extra) -> str:
    record = {"id": issue_id, "title": "Legacy", "status": "open", "type": "task", **extra}
    return json.dumps(record)


def _issues(store, name="issues.jsonl"):
    issues, _ = load_container(name, store.read_container(name))
    return issues


def test_legacy_issue_gets_per_field_history(store):
    store.write_container_atomically(
        "issues.jsonl",
        _legacy_line("abc123", description="Body", last_update="2024-01-01T00:05:00Z") + "\n",
    )
    result = migrate(store)

    assert result.migrated == ["abc123"]
    assert result.rewritten == ["issues.jsonl"]
    (issue,) = _issues(store)
    assert {c.field for c in issue.history} == {"title", "description", "status", "type"}
    assert all(c.kind is ChangeKind.UPDATE for c in issue.history)
    assert all(c.changed_at == at(5) for c in issue.history)
    assert all(c.changed_by == "migration" for c in issue.history)


def test_created_at_is_the_fallback_timestamp(store):
    store.write_container_atomically(
        "issues.jsonl", _legacy_line("abc123", created_at="2024-01-01T00:02:00Z") + "\n"
    )
    migrate(store, changed_by="bot")
    (issue,) = _issues(store)
    assert issue.field_timestamp("title") == at(2)
    assert issue.history[0].changed_by == "bot"


def test_issue_without_any_timestamp_is_skipped(store):
    store.write_container_atomically("issues.jsonl", _legacy_line("abc123") + "\n")
    result = migrate(store)
    assert result.skipped == ["abc123"]
    assert result.migrated == []
    assert _issues(store)[0].history == []


def test_migration_is_idempotent(store):
    store.write_container_atomically(
        "issues.jsonl", _legacy_line("abc123", last_update="2024-01-01T00:00:00Z") + "\n"
    )
    migrate(store)
    text = store.read_container("issues.jsonl")

    again = migrate(store)
    assert again.migrated == []
    assert again.already_migrated == 1
    assert again.rewritten == []
    assert not again.was_migration_needed
    assert store.read_container("issues.jsonl") == text


def test_issues_with_field_history_are_untouched(store):
    current = build_issue("abc123", stamps={"title": 1})
    write_issues(store, "issues.jsonl", [current])
    result = migrate(store)
    assert result.already_migrated == 1
    assert _issues(store) == [current]


def test_whole_record_history_still_needs_migration(store):
    legacy_history = [{"kind": "updated", "changed_at": "2024-01-01T00:01:00Z"}]
    store.write_container_atomically(
        "issues.jsonl",
        _legacy_line("abc123", last_update="2024-01-01T00:03:00Z", history=legacy_history) + "\n",
    )
    migrate(store)
    (issue,) = _issues(store)
    assert issue.history[0].field is None
    assert issue.field_timestamp("status") == at(3)


def test_dry_run_reports_without_writing(store):
    line = _legacy_line("abc123", last_update="2024-01-01T00:00:00Z") + "\n"
    store.write_container_atomically("issues.jsonl", line)
    result = migrate(store, dry_run=True)
    assert result.dry_run
    assert result.migrated == ["abc123"]
    assert result.rewritten == ["issues.jsonl"]
    assert store.read_container("issues.jsonl") == line


def test_unknown_fields_are_dropped_and_reported(store):
    current = build_issue("abc123", stamps={"title": 1})
    line = json.dumps({**json.loads(encode_issue(current)), "colour": "red"})
    store.write_container_atomically("issues.jsonl", line + "\n")

    result = migrate(store)
    assert result.unknown_fields_dropped == {"colour"}
    assert result.rewritten == ["issues.jsonl"]
    assert "colour" not in store.read_container("issues.jsonl")


def test_container_with_parse_errors_is_left_alone(store):
    text = _legacy_line("abc123", last_update="2024-01-01T00:00:00Z") + "\n{broken\n"
    store.write_container_atomically("issues.jsonl", text)
    result = migrate(store)
    assert result.untouched_containers == ["issues.jsonl"]
    assert result.migrated == []
    assert store.read_container("issues.jsonl") == text


def test_every_issue_container_is_migrated(store):
    store.write_container_atomically("issues.jsonl", _legacy_line("a1", last_update="2024-01-01T00:00:00Z") + "\n")
    store.write_container_atomically(
        "issues-side.jsonl", _legacy_line("b2", last_update="2024-01-01T00:00:00Z") + "\n"
    )
    result = migrate(store)
    assert result.total_issues == 2
    assert result.rewritten == ["issues.jsonl", "issues-side.jsonl"]


def test_is_migration_needed(store):
    store.write_container_atomically(
        "issues.jsonl", _legacy_line("abc123", last_update="2024-01-01T00:00:00Z") + "\n"
    )
    assert is_migration_needed(store)
    migrate(store)
    assert not is_migration_needed(store)

def test_is_migration_needed_is_a_quiet_predicate(store, monkeypatch):
    def _no_migrate(*args, **kwargs):
        raise AssertionError("predicate must not run a migration")

    monkeypatch.setattr(migration, "migrate", _no_migrate)
    monkeypatch.setattr(migration, "operation_span", _no_migrate)
    store.write_container_atomically("issues.jsonl", _legacy_line("a1") + "\n")
    assert not is_migration_needed(store)
    store.write_container_atomically("issues.jsonl", _legacy_line("a1", colour="red") + "\n")
    assert is_migration_needed(store)
