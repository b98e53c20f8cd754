from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from appdirs import user_cache_dir, user_data_dir, user_log_dir
from dotenv import load_dotenv

APP_NAME = "pixoraa_hub"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    database_url: str = ""
    log_dir: str = field(default_factory=lambda: user_log_dir(APP_NAME))
    log_level: str = "INFO"
    detailed_logging: bool = False
    files_dir: str = field(
        default_factory=lambda: str(Path(user_data_dir(APP_NAME)) / "files")
    )
    share_dir: str = field(
        default_factory=lambda: str(Path(user_cache_dir(APP_NAME)) / "share")
    )
    current_user_id: str = "user-1"
    currency: str = "USD"
    non_billable_cost_rate: float = 50.0
    overtime_hourly_rate: float = 75.0
    overtime_threshold_hours: float = 8.0
    recurring_horizon_days: int = 365
    max_recurrences: int = 100
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    seed_demo_data: bool = True


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


@lru_cache()
def get_settings() -> Settings:
    dotenv_path = Path(__file__).resolve().parent / ".env"
    load_dotenv(dotenv_path)

    data_root = Path(user_data_dir(APP_NAME))
    return Settings(
        database_url=os.getenv("DATABASE_URL", ""),
        log_dir=os.getenv("LOG_DIR") or user_log_dir(APP_NAME),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        detailed_logging=os.getenv("DETAILED_LOGGING", "0").lower() in _TRUE_VALUES,
        files_dir=os.getenv("FILES_DIR") or str(data_root / "files"),
        share_dir=os.getenv("SHARE_DIR")
        or str(Path(user_cache_dir(APP_NAME)) / "share"),
        current_user_id=os.getenv("CURRENT_USER_ID", "user-1"),
        currency=os.getenv("CURRENCY", "USD").upper(),
        non_billable_cost_rate=_env_float("NON_BILLABLE_COST_RATE", 50.0),
        overtime_hourly_rate=_env_float("OVERTIME_HOURLY_RATE", 75.0),
        overtime_threshold_hours=_env_float("OVERTIME_THRESHOLD_HOURS", 8.0),
        recurring_horizon_days=_env_int("RECURRING_HORIZON_DAYS", 365),
        max_recurrences=_env_int("MAX_RECURRENCES", 100),
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=_env_int("API_PORT", 8000),
        seed_demo_data=os.getenv("SEED_DEMO_DATA", "1").lower() in _TRUE_VALUES,
    )
