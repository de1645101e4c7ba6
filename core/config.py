# core/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from core.timer_engine import parse_duration
from domain.errors import ConfigError, DurationError

APP_NAME = "tallytime"

# Defaults if the config file is missing or partial
_DEFAULTS: dict[str, dict[str, Any]] = {
    "csv": {
        "enabled": False,
        "file_path": f"~/.local/share/{APP_NAME}/sessions.csv",
    },
    "google_sheets": {
        "enabled": False,
        "spreadsheet_id": "",
        "sheet_name": "CraftTime",
        "credentials_helper": "",  # empty = system keyring
        "retry_attempts": 3,
        "retry_delay": "5s",
    },
    "sync": {
        "interval": "30s",
    },
    "storage": {
        "enabled": True,
        "database_path": f"~/.local/share/{APP_NAME}/sessions.db",
    },
    "logging": {
        "level": "info",
        "output_file": "",  # empty = stderr only
    },
}

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class CsvConfig:
    enabled: bool
    file_path: str


@dataclass
class GoogleSheetsConfig:
    enabled: bool
    spreadsheet_id: str
    sheet_name: str
    credentials_helper: str
    retry_attempts: int
    retry_delay: float  # seconds


@dataclass
class StorageConfig:
    enabled: bool
    database_path: str


@dataclass
class LoggingConfig:
    level: str
    output_file: str


@dataclass
class AppConfig:
    csv: CsvConfig
    google_sheets: GoogleSheetsConfig
    sync_interval: float  # seconds
    storage: StorageConfig
    logging: LoggingConfig
    path: Optional[Path] = None

    def validate(self) -> None:
        gs = self.google_sheets
        if gs.enabled and not gs.spreadsheet_id:
            raise ConfigError(
                "google_sheets.spreadsheet_id is required when Google Sheets is enabled"
            )
        if gs.retry_attempts < 1:
            raise ConfigError("google_sheets.retry_attempts must be at least 1")
        if gs.retry_delay < 0:
            raise ConfigError("google_sheets.retry_delay cannot be negative")
        if self.sync_interval <= 0:
            raise ConfigError("sync.interval must be positive")
        if self.csv.enabled and not self.csv.file_path:
            raise ConfigError("csv.file_path is required when CSV sync is enabled")
        if self.storage.enabled and not self.storage.database_path:
            raise ConfigError("storage.database_path is required")
        if self.logging.level not in LOG_LEVELS:
            raise ConfigError(f"logging.level must be one of: {', '.join(LOG_LEVELS)}")


def default_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or (Path.home() / ".config")
    return Path(base) / APP_NAME / "config.yaml"


def expand_path(value: str) -> str:
    if not value:
        return value
    return os.path.expanduser(value)


def _seconds(value: Any, key: str) -> float:
    """
    Durations may be plain numbers (seconds) or strings like "5s", "1m30s".
    """
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a duration, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return parse_duration(str(value)).total_seconds()
    except DurationError as e:
        raise ConfigError(f"{key}: {e.message}", cause=e) from e


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config file {path}", cause=e) from e
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}", cause=e) from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def write_default_config(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(_DEFAULTS, f, sort_keys=False)
    except OSError as e:
        raise ConfigError(f"failed to create default config file {path}", cause=e) from e


def _merge(user_cfg: dict[str, Any]) -> dict[str, dict[str, Any]]:
    # shallow merge per section
    merged = {}
    for section, defaults in _DEFAULTS.items():
        override = user_cfg.get(section) or {}
        if not isinstance(override, dict):
            raise ConfigError(f"config section {section!r} must be a mapping")
        merged[section] = {**defaults, **override}
    return merged


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Explicit path must exist.
    Without one, the default path is used and created from defaults if missing.
    """
    if config_path:
        path = Path(expand_path(config_path))
        if not path.exists():
            raise ConfigError(f"config file not found: {path}")
    else:
        path = default_config_path()
        if not path.exists():
            write_default_config(path)

    m = _merge(_load_yaml(path))

    try:
        cfg = AppConfig(
            csv=CsvConfig(
                enabled=bool(m["csv"]["enabled"]),
                file_path=expand_path(str(m["csv"]["file_path"] or "")),
            ),
            google_sheets=GoogleSheetsConfig(
                enabled=bool(m["google_sheets"]["enabled"]),
                spreadsheet_id=str(m["google_sheets"]["spreadsheet_id"] or ""),
                sheet_name=str(m["google_sheets"]["sheet_name"] or ""),
                credentials_helper=expand_path(
                    str(m["google_sheets"]["credentials_helper"] or "")
                ),
                retry_attempts=int(m["google_sheets"]["retry_attempts"]),
                retry_delay=_seconds(
                    m["google_sheets"]["retry_delay"], "google_sheets.retry_delay"
                ),
            ),
            sync_interval=_seconds(m["sync"]["interval"], "sync.interval"),
            storage=StorageConfig(
                enabled=bool(m["storage"]["enabled"]),
                database_path=expand_path(str(m["storage"]["database_path"] or "")),
            ),
            logging=LoggingConfig(
                level=str(m["logging"]["level"]).lower(),
                output_file=expand_path(str(m["logging"]["output_file"] or "")),
            ),
            path=path,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value in config file {path}: {e}", cause=e) from e

    cfg.validate()
    return cfg
