# src/sakutto_task/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "SAKUTTO"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# A local .env never overrides variables already set in the environment.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    # ---- Email (SMTP) ----
    smtp_host: Optional[str]
    smtp_port: int
    smtp_user: Optional[str]
    smtp_password: Optional[str]
    smtp_from: Optional[str]
    smtp_starttls: bool

    # ---- Web Push (VAPID) ----
    vapid_public_key: Optional[str]
    vapid_private_key: Optional[str]
    vapid_subject: str

    # ---- Dispatch loop ----
    dispatch_interval_seconds: float
    dispatch_timeout_seconds: float

    # ---- Calendar ----
    holiday_years_ahead: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "sakutto-task")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/sakutto"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        smtp_host = _first_env(_k("SMTP_HOST"), "SMTP_HOST", default=None)
        smtp_port = _env_int(_k("SMTP_PORT"), _env_int("SMTP_PORT", 587))
        smtp_user = _first_env(_k("SMTP_USER"), "SMTP_USER", default=None)
        smtp_password = _first_env(_k("SMTP_PASSWORD"), "SMTP_PASSWORD", default=None)
        smtp_from = _first_env(_k("SMTP_FROM"), "SMTP_FROM", default=smtp_user)
        smtp_starttls = _env_bool(_k("SMTP_STARTTLS"), True)

        vapid_public_key = _first_env(
            _k("VAPID_PUBLIC_KEY"), "WEB_PUSH_VAPID_PUBLIC_KEY", default=None
        )
        vapid_private_key = _first_env(
            _k("VAPID_PRIVATE_KEY"), "WEB_PUSH_VAPID_PRIVATE_KEY", default=None
        )
        vapid_subject = _env(_k("VAPID_SUBJECT"), "mailto:admin@example.com")

        dispatch_interval_seconds = _env_float(_k("DISPATCH_INTERVAL_SECONDS"), 30.0)
        dispatch_timeout_seconds = _env_float(_k("DISPATCH_TIMEOUT_SECONDS"), 240.0)

        holiday_years_ahead = _env_int(_k("HOLIDAY_YEARS_AHEAD"), 20)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            smtp_host=smtp_host,
            smtp_port=smtp_port,
            smtp_user=smtp_user,
            smtp_password=smtp_password,
            smtp_from=smtp_from,
            smtp_starttls=smtp_starttls,
            vapid_public_key=vapid_public_key,
            vapid_private_key=vapid_private_key,
            vapid_subject=vapid_subject,
            dispatch_interval_seconds=dispatch_interval_seconds,
            dispatch_timeout_seconds=dispatch_timeout_seconds,
            holiday_years_ahead=holiday_years_ahead,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
