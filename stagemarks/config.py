from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None or v == "" else v


@dataclass
class Settings:
    # Staging
    ttl_hours: int = 24
    state_dir: str = "~/.local/state/stagemarks"

    # Push
    folder_title: str = "Imported Bookmarks"
    default_root: str = "toolbar"  # toolbar | menu | unfiled | mobile
    busy_timeout_ms: int = 5000

    # Export
    export_title: str = "Bookmarks"

    # Logging / UX
    log_level: str = "INFO"
    no_color: bool = False

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_hours) * 60 * 60 * 1000

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser()

    @staticmethod
    def from_env() -> "Settings":
        s = Settings()
        s.ttl_hours = _env_int("STAGE_TTL_HOURS", s.ttl_hours)
        s.state_dir = _env_str("STAGE_STATE_DIR", s.state_dir)

        s.folder_title = _env_str("STAGE_FOLDER_TITLE", s.folder_title)
        s.default_root = _env_str("STAGE_DEFAULT_ROOT", s.default_root)
        s.busy_timeout_ms = _env_int("STAGE_BUSY_TIMEOUT_MS", s.busy_timeout_ms)

        s.export_title = _env_str("STAGE_EXPORT_TITLE", s.export_title)

        s.log_level = _env_str("STAGE_LOG_LEVEL", s.log_level)
        s.no_color = _env_bool("STAGE_NO_COLOR", s.no_color)
        return s

    @staticmethod
    def from_file(path: Path) -> "Settings":
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"config file must contain a mapping: {path}")
        s = Settings.from_env()
        known = {f.name for f in fields(Settings)}
        for k, v in data.items():
            if k in known:
                setattr(s, k, v)
        return s


def load_settings(config_path: Optional[str]) -> Settings:
    if config_path:
        return Settings.from_file(Path(config_path))
    return Settings.from_env()
