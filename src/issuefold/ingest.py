"""Tolerant loading of record containers.

Each non-blank line is decoded on its own; a line that fails is counted,
described in the container's :class:`ParseDiagnostic` and kept verbatim so a
later rewrite can preserve it. Nothing here raises for malformed content.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .codec import Decoded, ParseFailure, decode_issue
from .models import Issue, LoadIssuesResult, ParseDiagnostic
from .storage import DEFAULT_LAYOUT, AreaLayout, ContainerStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ContainerScan(Generic[T]):
    """Every decoded record of one container along with its 1-based line number."""

    path: str
    diagnostic: ParseDiagnostic
    entries: list[tuple[int, T]] = field(default_factory=list)
    rejected_lines: list[str] = field(default_factory=list)

    @property
    def records(self) -> list[T]:
        return [record for _, record in self.entries]


def _undecodable(line: str) -> bool:
    # Storage hands over bad bytes as lone surrogates.
    try:
        line.encode("utf-8")
    except UnicodeEncodeError:
        return True
    return False


def scan_lines(
    path: str,
    text: str,
    decode: Callable[[str], Decoded[Any] | ParseFailure],
) -> ContainerScan[Any]:
    diagnostic = ParseDiagnostic(path=path)
    scan: ContainerScan[Any] = ContainerScan(path=path, diagnostic=diagnostic)
    for line_no, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        diagnostic.total_rows += 1
        result = ParseFailure("invalid UTF-8") if _undecodable(line) else decode(line)
        if isinstance(result, ParseFailure):
            diagnostic.failed_rows += 1
            diagnostic.parse_errors.append(f"Line {line_no}: {result.reason}")
            scan.rejected_lines.append(line)
            continue
        diagnostic.parsed_rows += 1
        diagnostic.unknown_fields.update(result.unknown_fields)
        scan.entries.append((line_no, result.record))
    if diagnostic.has_issues:
        logger.warning(
            "container %s: %d of %d rows skipped, unknown fields: %s",
            path,
            diagnostic.skipped_rows,
            diagnostic.total_rows,
            ", ".join(sorted(diagnostic.unknown_fields)) or "none",
        )
    return scan


def scan_container(path: str, text: str) -> ContainerScan[Issue]:
    return scan_lines(path, text, decode_issue)


def load_container(path: str, text: str) -> tuple[list[Issue], ParseDiagnostic]:
    """Decode the issue lines of one container; returns ``(issues, diagnostic)``."""
    scan = scan_container(path, text)
    return scan.records, scan.diagnostic


def scan_working_area(
    store: ContainerStore, layout: AreaLayout = DEFAULT_LAYOUT
) -> list[ContainerScan[Issue]]:
    """Scan every issue container in enumeration order."""
    return [scan_container(name, store.read_container(name)) for name in layout.issue_containers(store)]


def load_working_area(store: ContainerStore, layout: AreaLayout = DEFAULT_LAYOUT) -> LoadIssuesResult:
    result = LoadIssuesResult()
    for scan in scan_working_area(store, layout):
        result.issues.extend(scan.records)
        result.diagnostics.append(scan.diagnostic)
    return result


__all__ = [
    "ContainerScan",
    "load_container",
    "load_working_area",
    "scan_container",
    "scan_lines",
    "scan_working_area",
]
