"""Domain-level validation rules for group constraints, hall layouts and seats.

`seat_exclusion_reason` is the single hard-constraint predicate. The allocation
engine filters candidates with it and the selection validator judges edited
selections with it, so both always reach the same verdict for a seat.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from backend.domain.models import (
    GroupConstraints,
    HallLayoutConfig,
    Seat,
    SeatCategory,
    SeatStatus,
)


MAX_GROUP_SIZE = 7
MAX_HALL_ROWS = 26


class InvalidConstraintsError(ValueError):
    """Raised when a group's booking constraints are out of range."""


class InvalidLayoutConfigError(ValueError):
    """Raised when a hall layout configuration cannot be generated."""


class ExclusionReason(str, Enum):
    UNAVAILABLE = "unavailable"
    NOT_ACCESSIBLE = "not_accessible"
    AGE_RESTRICTED = "age_restricted"


def validate_group_constraints(
    constraints: GroupConstraints,
    max_group_size: int = MAX_GROUP_SIZE,
) -> None:
    """A configured limit can only tighten the 1..MAX_GROUP_SIZE range."""
    limit = min(max_group_size, MAX_GROUP_SIZE)
    if not 1 <= constraints.group_size <= limit:
        raise InvalidConstraintsError(
            f"group_size must be between 1 and {limit}, got {constraints.group_size}"
        )
    age = constraints.age_of_youngest_member
    if age is not None and age < 0:
        raise InvalidConstraintsError("age_of_youngest_member must be >= 0")


def _check_coordinates(
    label: str,
    coordinates: tuple[tuple[int, int], ...],
    config: HallLayoutConfig,
) -> None:
    for row, seat in coordinates:
        if not 0 <= row < config.rows or not 0 <= seat < config.seats_per_row:
            raise InvalidLayoutConfigError(f"{label} entry ({row}, {seat}) is outside the hall")


def validate_layout_config(config: HallLayoutConfig, broken_seat_count: int = 0) -> None:
    if not 1 <= config.rows <= MAX_HALL_ROWS:
        raise InvalidLayoutConfigError(f"rows must be between 1 and {MAX_HALL_ROWS}")
    if config.seats_per_row <= 0:
        raise InvalidLayoutConfigError("seats_per_row must be > 0")
    for row in config.vip_rows:
        if not 0 <= row < config.rows:
            raise InvalidLayoutConfigError(f"vip_rows entry {row} is outside the hall")
    for row, min_age in config.age_restricted_rows:
        if not 0 <= row < config.rows:
            raise InvalidLayoutConfigError(f"age_restricted_rows entry {row} is outside the hall")
        if min_age <= 0:
            raise InvalidLayoutConfigError("age_restricted_rows minimum age must be > 0")
    _check_coordinates("accessible_seats", config.accessible_seats, config)
    _check_coordinates("senior_seats", config.senior_seats, config)
    if not 0 <= broken_seat_count <= config.rows * config.seats_per_row:
        raise InvalidLayoutConfigError("broken_seat_count must fit inside the hall")


def _blocked_by_age(seat: Seat, constraints: GroupConstraints) -> bool:
    age = constraints.age_of_youngest_member
    return seat.age_restriction is not None and age is not None and age < seat.age_restriction


def seat_exclusion_reason(
    seat: Seat,
    constraints: GroupConstraints,
) -> Optional[ExclusionReason]:
    """Return the first hard constraint the seat violates, or None if eligible."""
    if seat.status is not SeatStatus.AVAILABLE:
        return ExclusionReason.UNAVAILABLE
    if constraints.requires_accessible_seating and seat.category is not SeatCategory.ACCESSIBLE:
        return ExclusionReason.NOT_ACCESSIBLE
    if _blocked_by_age(seat, constraints) and not constraints.senior_citizen:
        return ExclusionReason.AGE_RESTRICTED
    return None


def relies_on_senior_waiver(seat: Seat, constraints: GroupConstraints) -> bool:
    """True when the seat is only eligible because a senior waives its age limit."""
    return constraints.senior_citizen and _blocked_by_age(seat, constraints)
