"""Lifecycle hook configuration loader.

Reads settings from .avt/project-config.json under settings.lifecycle,
following the same cascade pattern as the audit settings.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULTS = {
    "enabled": True,
    "prompt_max_chars": 500,
    "description_max_chars": 200,
    "state_dir": ".avt/lifecycle",
    "events_file": "events.jsonl",
    "registry_file": "active-sessions.json",
    "log_file": "hook.log",
    "log_level": "INFO",
}


class LifecycleConfig(BaseModel):
    project_dir: Path
    enabled: bool = True
    prompt_max_chars: int = Field(default=500, ge=0)
    description_max_chars: int = Field(default=200, ge=0)
    state_dir: str = ".avt/lifecycle"
    events_file: str = "events.jsonl"
    registry_file: str = "active-sessions.json"
    log_file: str = "hook.log"
    log_level: str = "INFO"

    @property
    def state_path(self) -> Path:
        return self.project_dir / self.state_dir

    @property
    def events_path(self) -> Path:
        return self.state_path / self.events_file

    @property
    def registry_path(self) -> Path:
        return self.state_path / self.registry_file

    @property
    def registry_lock_path(self) -> Path:
        return self.state_path / f".{self.registry_file}.lock"

    @property
    def log_path(self) -> Path:
        return self.state_path / self.log_file


def project_dir_from_env() -> Path:
    return Path(os.environ.get("CLAUDE_PROJECT_DIR", os.getcwd()))


def load_lifecycle_config(project_dir: Optional[Path] = None) -> LifecycleConfig:
    """Load lifecycle configuration with defaults, overridden by project config."""
    project_dir = Path(project_dir) if project_dir else project_dir_from_env()
    effective = _deep_copy(DEFAULTS)

    project_path = project_dir / ".avt" / "project-config.json"
    if project_path.exists():
        try:
            cfg = json.loads(project_path.read_text())
            lifecycle_cfg = cfg.get("settings", {}).get("lifecycle", {})
            if isinstance(lifecycle_cfg, dict):
                _deep_merge(effective, lifecycle_cfg)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError, AttributeError) as e:
            logger.warning("Ignoring unreadable %s: %s", project_path, e)

    effective.pop("project_dir", None)
    return LifecycleConfig(project_dir=project_dir, **effective)


def _deep_copy(d: dict) -> dict:
    """Simple deep copy for JSON-compatible dicts."""
    return json.loads(json.dumps(d))


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base, recursing into nested dicts."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        elif value is not None:
            base[key] = value
