"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from backend.domain.constraints import MAX_GROUP_SIZE


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_int(name: str, default: int) -> int:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw_value!r}") from exc


def _env_optional_int(name: str) -> Optional[int]:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return None
    return _env_int(name, 0)


def _env_group_size_limit() -> int:
    value = _env_int("MAX_GROUP_SIZE", MAX_GROUP_SIZE)
    if not 1 <= value <= MAX_GROUP_SIZE:
        raise ValueError(f"MAX_GROUP_SIZE must be between 1 and {MAX_GROUP_SIZE}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return float(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw_value!r}") from exc


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    database_timeout_seconds: float
    admin_token: Optional[str]
    max_group_size: int
    broken_seat_count: int
    layout_random_seed: Optional[int]
    default_showing_id: str
    default_movie_id: int
    default_movie_title: str
    hall_rows: int
    hall_seats_per_row: int
    hall_vip_rows: tuple[int, ...]
    hall_accessible_seats: tuple[tuple[int, int], ...]
    hall_age_restricted_rows: tuple[tuple[int, int], ...]
    hall_senior_seats: tuple[tuple[int, int], ...]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from environment variables."""
    return Settings(
        app_name=os.getenv("APP_NAME", "CineSeat Allocation Service"),
        app_version=os.getenv("APP_VERSION", "1.0.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=Path(
            os.getenv("DATABASE_PATH", str(PROJECT_ROOT / "data" / "cineseat.db"))
        ),
        database_timeout_seconds=_env_float("DATABASE_TIMEOUT_SECONDS", 5.0),
        admin_token=os.getenv("ADMIN_TOKEN") or None,
        max_group_size=_env_group_size_limit(),
        broken_seat_count=_env_int("BROKEN_SEAT_COUNT", 5),
        layout_random_seed=_env_optional_int("LAYOUT_RANDOM_SEED"),
        default_showing_id=os.getenv("DEFAULT_SHOWING_ID", "main-hall"),
        default_movie_id=_env_int("DEFAULT_MOVIE_ID", 1),
        default_movie_title=os.getenv("DEFAULT_MOVIE_TITLE", "Opening Night"),
        hall_rows=8,
        hall_seats_per_row=10,
        hall_vip_rows=(3, 4),
        hall_accessible_seats=((0, 0), (0, 9), (7, 0), (7, 9)),
        hall_age_restricted_rows=((6, 15), (7, 18)),
        hall_senior_seats=(),
    )
