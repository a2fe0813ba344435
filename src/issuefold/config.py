from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from .storage import AreaLayout


class ConfigError(RuntimeError):
    pass


@dataclass
class TrackerConfig:
    version: int
    source_file: Path | None
    # Storage layout
    directory: Path
    primary: str
    container_pattern: str
    conflicts: str
    rejected: str
    # Behavior
    auto_merge: bool
    migrated_by: str
    # Logging configuration
    logging_json_enabled: bool
    logging_level: str
    # Telemetry configuration
    telemetry_enabled: bool
    telemetry_exporter: str
    telemetry_endpoint: str | None

    @property
    def layout(self) -> AreaLayout:
        return AreaLayout(
            primary=self.primary,
            container_pattern=self.container_pattern,
            conflicts=self.conflicts,
            rejected=self.rejected,
        )


def _resolve_env_var(value: Any, env_var_name: str | None = None) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        env_name = env_var_name or value[1:]
        return os.getenv(env_name, value)
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes', 'on'}
    return bool(value)


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def _build(raw: dict[str, Any], base: Path, source: Path | None) -> TrackerConfig:
    storage = _section(raw, 'storage')
    behavior = _section(raw, 'behavior')
    logging_config = _section(raw, 'logging')
    telemetry = _section(raw, 'telemetry')

    directory = Path(str(_resolve_env_var(storage.get('directory', '.issues'))))
    if not directory.is_absolute():
        directory = base / directory

    try:
        version = int(raw.get('version', 1))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config version: {raw.get('version')!r}") from exc

    return TrackerConfig(
        version=version,
        source_file=source,
        directory=directory,
        primary=str(storage.get('primary', 'issues.jsonl')),
        container_pattern=str(storage.get('container_pattern', 'issues*.jsonl')),
        conflicts=str(storage.get('conflicts', 'conflicts.jsonl')),
        rejected=str(storage.get('rejected', 'rejected.jsonl')),
        auto_merge=_as_bool(_resolve_env_var(behavior.get('auto_merge', False))),
        migrated_by=str(_resolve_env_var(behavior.get('migrated_by', 'migration'))),
        logging_json_enabled=_as_bool(logging_config.get('json_enabled', False)),
        logging_level=str(logging_config.get('level', 'INFO')),
        telemetry_enabled=_as_bool(telemetry.get('enabled', False)),
        telemetry_exporter=str(telemetry.get('exporter', 'console')),
        telemetry_endpoint=_resolve_env_var(telemetry.get('endpoint')),
    )


def default_config(root: str | Path = '.') -> TrackerConfig:
    """Configuration used when no file is present, rooted at ``root``."""
    return _build({}, Path(root), None)


def load_config(path: str | Path) -> TrackerConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        raw = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(raw, dict):
        raise ConfigError(f'Configuration root must be a mapping: {p}')
    return _build(cast(dict[str, Any], raw), p.parent, p)


__all__ = ['ConfigError', 'TrackerConfig', 'default_config', 'load_config']
