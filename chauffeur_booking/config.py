from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
import os
from pathlib import Path
from typing import Any

import yaml

from .models import DEFAULT_DURATION_MINUTES, Resource, coerce_date, parse_time_value

CONFIG_ENV_VAR = "CHAUFFEUR_BOOKING_CONFIG"

OPEN_TIME = time(8, 0)
CLOSE_TIME = time(20, 0)
SLOT_GRANULARITY_MINUTES = 30
LOCK_TIMEOUT_SECONDS = 5.0
MAX_WRITE_ATTEMPTS = 3


@dataclass(frozen=True)
class Settings:
    open_time: time = OPEN_TIME
    close_time: time = CLOSE_TIME
    granularity_minutes: int = SLOT_GRANULARITY_MINUTES
    default_duration_minutes: int = DEFAULT_DURATION_MINUTES
    lock_timeout_seconds: float = LOCK_TIMEOUT_SECONDS
    max_write_attempts: int = MAX_WRITE_ATTEMPTS
    holiday_country: str | None = None
    closed_dates: frozenset[date] = field(default_factory=frozenset)
    data_dir: Path = Path("data")

    def __post_init__(self) -> None:
        if self.default_duration_minutes <= 0:
            raise ValueError("default_duration_minutes must be greater than zero")
        if self.max_write_attempts <= 0:
            raise ValueError("max_write_attempts must be greater than zero")
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be greater than zero")


@dataclass(frozen=True)
class LoadedConfig:
    settings: Settings
    resources: list[Resource]


def load_settings(path: str | Path | None = None) -> LoadedConfig:
    """Load schedule settings and the fleet from a YAML file.

    Without an explicit path the ``CHAUFFEUR_BOOKING_CONFIG`` environment
    variable is consulted; when neither is set the built-in defaults apply and
    the fleet is empty.
    """
    config_path = path or os.environ.get(CONFIG_ENV_VAR)
    if not config_path:
        return LoadedConfig(settings=Settings(), resources=[])

    try:
        payload = yaml.safe_load(Path(config_path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
        raise ValueError(f"Could not read configuration file: {config_path}") from error

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValueError("top-level configuration YAML must be a mapping")

    schedule = payload.get("schedule") or {}
    if not isinstance(schedule, dict):
        raise ValueError("'schedule' must be a mapping")

    resources = [Resource.from_dict(row) for row in payload.get("resources") or []]
    return LoadedConfig(settings=settings_from_mapping(schedule), resources=resources)


def settings_from_mapping(schedule: dict[str, Any]) -> Settings:
    defaults = Settings()
    closed = schedule.get("closed_dates") or []
    return Settings(
        open_time=parse_time_value(schedule.get("open_time", defaults.open_time)),
        close_time=parse_time_value(schedule.get("close_time", defaults.close_time)),
        granularity_minutes=int(schedule.get("granularity_minutes", defaults.granularity_minutes)),
        default_duration_minutes=int(schedule.get("default_duration_minutes", defaults.default_duration_minutes)),
        lock_timeout_seconds=float(schedule.get("lock_timeout_seconds", defaults.lock_timeout_seconds)),
        max_write_attempts=int(schedule.get("max_write_attempts", defaults.max_write_attempts)),
        holiday_country=(str(schedule["holiday_country"]) if schedule.get("holiday_country") else None),
        closed_dates=frozenset(coerce_date(value) for value in closed),
        data_dir=Path(schedule.get("data_dir", defaults.data_dir)),
    )
