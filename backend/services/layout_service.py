"""Hall layout generation: seat inventory with categories and out-of-service seats."""

from __future__ import annotations

import random
from typing import Optional

from backend.domain.constraints import validate_layout_config
from backend.domain.models import HallLayoutConfig, Seat, SeatCategory, SeatStatus
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

DEFAULT_BROKEN_SEAT_COUNT = 5


def row_label(row_index: int) -> str:
    return chr(ord("A") + row_index)


def row_index(label: str) -> int:
    return ord(label) - ord("A")


def resolve_category(
    config: HallLayoutConfig,
    row: int,
    column: int,
) -> tuple[SeatCategory, Optional[int]]:
    """Resolve a seat's category; later rules override earlier ones.

    Order: regular -> vip -> senior -> accessible -> age_restricted.
    """
    category = SeatCategory.REGULAR
    age_restriction: Optional[int] = None
    if row in config.vip_rows:
        category = SeatCategory.VIP
    if (row, column) in config.senior_seats:
        category = SeatCategory.SENIOR
    if (row, column) in config.accessible_seats:
        category = SeatCategory.ACCESSIBLE
    for restricted_row, min_age in config.age_restricted_rows:
        if restricted_row == row:
            category = SeatCategory.AGE_RESTRICTED
            age_restriction = min_age
    return category, age_restriction


def generate_hall_layout(
    config: HallLayoutConfig,
    broken_seat_count: int = DEFAULT_BROKEN_SEAT_COUNT,
    rng: Optional[random.Random] = None,
) -> list[Seat]:
    """Build every seat of the hall and mark a random subset as broken."""
    validate_layout_config(config, broken_seat_count)
    generator = rng or random.Random()
    total_seats = config.rows * config.seats_per_row
    broken_positions = set(generator.sample(range(total_seats), broken_seat_count))

    seats: list[Seat] = []
    for row in range(config.rows):
        label = row_label(row)
        for column in range(config.seats_per_row):
            category, age_restriction = resolve_category(config, row, column)
            position = row * config.seats_per_row + column
            seats.append(
                Seat(
                    seat_id=f"{label}{column + 1}",
                    row=label,
                    number=column + 1,
                    status=SeatStatus.BROKEN if position in broken_positions else SeatStatus.AVAILABLE,
                    category=category,
                    age_restriction=age_restriction,
                )
            )

    logger.debug(
        "Hall layout generated | rows=%s | seats_per_row=%s | broken=%s",
        config.rows,
        config.seats_per_row,
        sorted(seat.seat_id for seat in seats if seat.status is SeatStatus.BROKEN),
    )
    return seats


def default_layout_config(settings: Optional[Settings] = None) -> HallLayoutConfig:
    resolved = settings or get_settings()
    return HallLayoutConfig(
        rows=resolved.hall_rows,
        seats_per_row=resolved.hall_seats_per_row,
        vip_rows=resolved.hall_vip_rows,
        accessible_seats=resolved.hall_accessible_seats,
        age_restricted_rows=resolved.hall_age_restricted_rows,
        senior_seats=resolved.hall_senior_seats,
    )


def layout_rng(settings: Optional[Settings] = None) -> random.Random:
    """Random source for broken-seat selection, seeded when configured."""
    resolved = settings or get_settings()
    return random.Random(resolved.layout_random_seed)
