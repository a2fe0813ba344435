"""Duplicate detection across the issue containers of a working area.

The area is *unmerged* when an identifier has more than one candidate (in
different containers or repeated within one) or when issues are spread over
more than one container. Identifiers compare case-insensitively.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from .ingest import ContainerScan, scan_working_area
from .models import Issue
from .storage import DEFAULT_LAYOUT, AreaLayout, ContainerStore

logger = logging.getLogger(__name__)


class AreaStatus(str, Enum):
    CLEAN = "clean"
    UNMERGED = "unmerged"


@dataclass(frozen=True)
class Candidate:
    """One on-disk copy of an issue."""

    container: str
    line: int
    issue: Issue


@dataclass
class Detection:
    status: AreaStatus
    groups: dict[str, list[Candidate]] = field(default_factory=dict)
    containers: list[str] = field(default_factory=list)
    scans: list[ContainerScan[Issue]] = field(default_factory=list)

    @property
    def duplicates(self) -> list[str]:
        return [key for key, candidates in self.groups.items() if len(candidates) > 1]

    @property
    def is_clean(self) -> bool:
        return self.status is AreaStatus.CLEAN


def group_candidates(scans: list[ContainerScan[Issue]]) -> dict[str, list[Candidate]]:
    """Group issues by lower-cased identifier, preserving enumeration order."""
    groups: dict[str, list[Candidate]] = {}
    for scan in scans:
        for line_no, issue in scan.entries:
            groups.setdefault(issue.key, []).append(Candidate(scan.path, line_no, issue))
    return groups


def classify(scans: list[ContainerScan[Issue]]) -> Detection:
    groups = group_candidates(scans)
    containers = [scan.path for scan in scans]
    repeated = any(len(c) > 1 for c in groups.values())
    status = AreaStatus.UNMERGED if repeated or len(containers) > 1 else AreaStatus.CLEAN
    return Detection(status=status, groups=groups, containers=containers, scans=scans)


def detect(store: ContainerStore, layout: AreaLayout = DEFAULT_LAYOUT) -> Detection:
    detection = classify(scan_working_area(store, layout))
    logger.debug(
        "working area %s: %d containers, %d identifiers, %d duplicated",
        detection.status.value,
        len(detection.containers),
        len(detection.groups),
        len(detection.duplicates),
    )
    return detection


__all__ = ["AreaStatus", "Candidate", "Detection", "classify", "detect", "group_candidates"]
