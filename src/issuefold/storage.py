"""Container storage for a working area.

A container is one UTF-8 text file of records inside the working-area
directory, addressed by its file name. Bytes that are not valid UTF-8 are
carried through as surrogate escapes, so reading never fails on content and
writing restores the original bytes. Writes go to a temporary sibling that
is then renamed over the target, so a container is never observed half
written.
"""

from __future__ import annotations

import contextlib
import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """A container could not be read, written or removed."""

    def __init__(self, container: str, message: str) -> None:
        super().__init__(f"{container}: {message}")
        self.container = container


@runtime_checkable
class ContainerStore(Protocol):
    def list_containers(self) -> list[str]: ...

    def read_container(self, name: str) -> str: ...

    def write_container_atomically(self, name: str, text: str) -> None: ...

    def delete_container(self, name: str) -> None: ...

    def exists(self, name: str) -> bool: ...


class FileContainerStore:
    """Directory-backed store; ``pattern`` selects which files are containers."""

    def __init__(self, directory: Path | str, pattern: str = "*.jsonl") -> None:
        self.directory = Path(directory)
        self.pattern = pattern

    def _path(self, name: str) -> Path:
        if not name or Path(name).name != name:
            raise StorageError(name, "container names must be plain file names")
        return self.directory / name

    def list_containers(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        try:
            names = [p.name for p in self.directory.iterdir() if p.is_file()]
        except OSError as exc:
            raise StorageError(str(self.directory), f"cannot list directory: {exc}") from exc
        return sorted(n for n in names if fnmatch.fnmatch(n, self.pattern))

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()

    def read_container(self, name: str) -> str:
        path = self._path(name)
        if not path.exists():
            return ""
        try:
            return path.read_text(encoding="utf-8", errors="surrogateescape")
        except OSError as exc:
            raise StorageError(name, f"read failed: {exc}") from exc

    def write_container_atomically(self, name: str, text: str) -> None:
        path = self._path(name)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(text, encoding="utf-8", errors="surrogateescape")
            tmp.replace(path)
        except (OSError, UnicodeEncodeError) as exc:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            raise StorageError(name, f"write failed: {exc}") from exc
        logger.debug("wrote container %s (%d bytes)", name, len(text))

    def delete_container(self, name: str) -> None:
        try:
            self._path(name).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(name, f"delete failed: {exc}") from exc
        logger.debug("deleted container %s", name)


@dataclass(frozen=True)
class AreaLayout:
    """Names of the special containers within a working area."""

    primary: str = "issues.jsonl"
    container_pattern: str = "issues*.jsonl"
    conflicts: str = "conflicts.jsonl"
    rejected: str = "rejected.jsonl"

    def issue_containers(self, store: ContainerStore) -> list[str]:
        """Issue containers in enumeration order: primary first, then by name."""
        reserved = {self.conflicts, self.rejected}
        names = [
            n
            for n in store.list_containers()
            if n not in reserved and n != self.primary and fnmatch.fnmatch(n, self.container_pattern)
        ]
        ordered = sorted(names)
        if store.exists(self.primary):
            ordered.insert(0, self.primary)
        return ordered


DEFAULT_LAYOUT = AreaLayout()


def join_lines(lines: list[str]) -> str:
    """Render records as container text (newline-terminated, empty when none)."""
    return "".join(line + "\n" for line in lines)


__all__ = ["AreaLayout", "ContainerStore", "DEFAULT_LAYOUT", "FileContainerStore", "StorageError", "join_lines"]
