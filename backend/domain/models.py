"""Domain models for hall layouts, seat inventory, group constraints and bookings."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class SeatStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BROKEN = "broken"


class SeatCategory(str, Enum):
    REGULAR = "regular"
    VIP = "vip"
    ACCESSIBLE = "accessible"
    SENIOR = "senior"
    AGE_RESTRICTED = "age_restricted"


class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Seat:
    seat_id: str
    row: str
    number: int
    status: SeatStatus
    category: SeatCategory
    age_restriction: Optional[int] = None
    booking_id: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.status is SeatStatus.AVAILABLE


@dataclass(frozen=True)
class HallLayoutConfig:
    """Static shape of a hall. Row and seat coordinates are 0-indexed."""

    rows: int
    seats_per_row: int
    vip_rows: tuple[int, ...] = ()
    accessible_seats: tuple[tuple[int, int], ...] = ()
    age_restricted_rows: tuple[tuple[int, int], ...] = ()
    senior_seats: tuple[tuple[int, int], ...] = ()


@dataclass(frozen=True)
class GroupConstraints:
    group_size: int
    requires_accessible_seating: bool = False
    wants_vip_seating: bool = False
    age_of_youngest_member: Optional[int] = None
    senior_citizen: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "group_size": self.group_size,
            "requires_accessible_seating": self.requires_accessible_seating,
            "wants_vip_seating": self.wants_vip_seating,
            "age_of_youngest_member": self.age_of_youngest_member,
            "senior_citizen": self.senior_citizen,
        }


@dataclass(frozen=True)
class SeatBlock:
    """A run of seats in one row that a proposal occupies."""

    row: str
    seat_ids: tuple[str, ...]

    def describe(self) -> str:
        if len(self.seat_ids) == 1:
            return f"seat {self.seat_ids[0]}"
        return f"row {self.row} seats {self.seat_ids[0]}-{self.seat_ids[-1]}"


@dataclass(frozen=True)
class AllocationResult:
    seat_ids: tuple[str, ...]
    message: str
    blocks: tuple[SeatBlock, ...] = ()
    failure_reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return bool(self.seat_ids)

    @property
    def is_split(self) -> bool:
        return len(self.blocks) > 1


@dataclass(frozen=True)
class SelectionVerdict:
    is_valid: bool
    message: str
    violations: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


@dataclass(frozen=True)
class Showing:
    showing_id: str
    movie_id: int
    movie_title: str


@dataclass(frozen=True)
class Booking:
    booking_id: str
    showing_id: str
    movie_id: int
    movie_title: str
    user_id: str
    seat_ids: tuple[str, ...]
    group_size: int
    constraints: GroupConstraints
    created_at: str
    status: BookingStatus = BookingStatus.CONFIRMED
