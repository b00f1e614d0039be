# src/taskflow/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.

Environment variables:
    TASKFLOW_APP_NAME        display name (default: taskflow)
    TASKFLOW_LOG_LEVEL       console log level (default: INFO)
    TASKFLOW_DATA_DIR        local data directory (default: .local/taskflow)
    TASKFLOW_TASKS_DB_PATH   SQLite path (default: <data_dir>/tasks.sqlite3)
    TASKFLOW_LOG_DIR         log directory (default: <data_dir>)
    TASKFLOW_EXPORT_DIR      default directory for CSV exports (default: <data_dir>/exports)
    TASKFLOW_STATS_PERIOD    default /stats period: day | week | month | year (default: week)
    TASKFLOW_CONSOLE_ENABLED run the interactive console when no command is given (default: true)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKFLOW"

_PERIODS = ("day", "week", "month", "year")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    log_dir: Path
    export_dir: Path

    # ---- Behaviour ----
    stats_period: str
    console_enabled: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskflow").strip() or "taskflow"
        log_level = _env(_k("LOG_LEVEL"), "INFO").strip().upper() or "INFO"

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskflow"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        log_dir = _env_path(_k("LOG_DIR"), data_dir)
        export_dir = _env_path(_k("EXPORT_DIR"), data_dir / "exports")

        stats_period = _env_choice(_k("STATS_PERIOD"), _PERIODS, "week")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            log_dir=log_dir,
            export_dir=export_dir,
            stats_period=stats_period,
            console_enabled=console_enabled,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
