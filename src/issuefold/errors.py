"""Error taxonomy for operations over a working area.

Public API:
- classify_error(exc) -> ErrorInfo

Malformed lines and unknown fields never surface here; they are recorded on
parse diagnostics. What reaches :func:`classify_error` is fatal to the
operation that raised it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import yaml

from .config import ConfigError
from .storage import StorageError


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - StorageError / OSError -> 'storage' (container name in details)
    - ConfigError -> 'config'
    - YAML, JSON and value errors -> 'parse'
    - Fallback -> 'generic'
    """
    msg = str(exc) if exc else ""
    name = exc.__class__.__name__
    low = msg.lower()

    if isinstance(exc, StorageError):
        return ErrorInfo("storage", msg, name, details={"container": exc.container})
    if isinstance(exc, ConfigError):
        return ErrorInfo("config", msg, name)
    if isinstance(exc, OSError):
        transient = any(k in low for k in ("temporarily unavailable", "resource busy"))
        return ErrorInfo("storage", msg, name, transient=transient)
    if isinstance(exc, (ValueError, yaml.YAMLError)):
        return ErrorInfo("parse", msg, name)
    return ErrorInfo("generic", msg, name)


__all__ = ["ErrorInfo", "classify_error"]
