"""Pytest configuration for issuefold tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`).
"""

from __future__ import annotations

import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

_TEST_START_TIMES: dict[str, float] = {}
_TEST_DURATIONS: list[tuple[str, float]] = []

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from issuefold.codec import encode_issue  # noqa: E402
from issuefold.models import ChangeKind, ChangeRecord, Issue, IssueStatus, IssueType  # noqa: E402
from issuefold.storage import FileContainerStore, join_lines  # noqa: E402

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """Timestamp ``minutes`` after a fixed origin."""
    return T0 + timedelta(minutes=minutes)


def build_issue(issue_id: str = "abc123", *, stamps: dict[str, int] | None = None, **values: Any) -> Issue:
    values.setdefault("title", "Title")
    values.setdefault("status", IssueStatus.OPEN)
    values.setdefault("type", IssueType.TASK)
    history = [
        ChangeRecord(field=name, kind=ChangeKind.UPDATE, changed_at=at(minutes))
        for name, minutes in (stamps or {}).items()
    ]
    values.setdefault("history", history)
    return Issue(id=issue_id, **values)


def write_issues(store: FileContainerStore, name: str, issues: list[Issue], extra_lines: tuple[str, ...] = ()) -> None:
    lines = [encode_issue(i) for i in issues] + list(extra_lines)
    store.write_container_atomically(name, join_lines(lines))


@pytest.fixture
def area(tmp_path: Path) -> Path:
    directory = tmp_path / ".issues"
    directory.mkdir()
    return directory


@pytest.fixture
def store(area: Path) -> FileContainerStore:
    return FileContainerStore(area)


# --- Timing utilities to help identify slow/stalling tests ---


def pytest_runtest_setup(item):  # type: ignore
    _TEST_START_TIMES[item.nodeid] = time.perf_counter()


def pytest_runtest_teardown(item):  # type: ignore
    start = _TEST_START_TIMES.pop(item.nodeid, None)
    if start is not None:
        duration = time.perf_counter() - start
        _TEST_DURATIONS.append((item.nodeid, duration))


def pytest_sessionfinish(session, exitstatus):  # type: ignore
    if not _TEST_DURATIONS:
        return
    slow = sorted(_TEST_DURATIONS, key=lambda x: x[1], reverse=True)[:10]
    print("\n=== Slowest Tests (top 10) ===")
    for nodeid, secs in slow:
        print(f"{secs:0.3f}s  {nodeid}")
    total_time = sum(d for _, d in _TEST_DURATIONS)
    print(f"Total recorded test time: {total_time:0.3f}s over {len(_TEST_DURATIONS)} tests")
