"""Request/response DTOs shared by the controller layer."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from backend.domain.models import Booking, GroupConstraints, Seat, SelectionVerdict


class GroupConstraintsPayload(BaseModel):
    """Booking form input; range rules beyond basic bounds live in the domain."""

    group_size: int = Field(ge=1)
    requires_accessible_seating: bool = False
    wants_vip_seating: bool = False
    age_of_youngest_member: Optional[int] = Field(default=None, ge=0, le=130)
    senior_citizen: bool = False

    def to_domain(self) -> GroupConstraints:
        return GroupConstraints(
            group_size=self.group_size,
            requires_accessible_seating=self.requires_accessible_seating,
            wants_vip_seating=self.wants_vip_seating,
            age_of_youngest_member=self.age_of_youngest_member,
            senior_citizen=self.senior_citizen,
        )


class SeatResponse(BaseModel):
    seat_id: str
    row: str
    number: int = Field(gt=0)
    status: str
    category: str
    age_restriction: Optional[int] = None

    @classmethod
    def from_domain(cls, seat: Seat) -> "SeatResponse":
        return cls(
            seat_id=seat.seat_id,
            row=seat.row,
            number=seat.number,
            status=seat.status.value,
            category=seat.category.value,
            age_restriction=seat.age_restriction,
        )


class SeatMapResponse(BaseModel):
    showing_id: str
    seats: list[SeatResponse]


class ShowingResponse(BaseModel):
    showing_id: str
    movie_id: int
    movie_title: str


class AllocateRequest(BaseModel):
    showing_id: str = Field(min_length=1)
    constraints: GroupConstraintsPayload


class SelectionResponse(BaseModel):
    showing_id: str
    constraints: GroupConstraintsPayload
    suggested_seat_ids: list[str]
    suggestion_message: str
    locations: list[str]
    selected_seat_ids: list[str]
    is_valid: bool
    validation_message: str


class ValidateSelectionRequest(BaseModel):
    showing_id: str = Field(min_length=1)
    seat_ids: list[str]
    constraints: GroupConstraintsPayload

    @field_validator("seat_ids")
    @classmethod
    def validate_seat_ids(cls, value: list[str]) -> list[str]:
        for seat_id in value:
            if not seat_id.strip():
                raise ValueError("seat_ids values must be non-empty")
        return value


class SelectionVerdictResponse(BaseModel):
    is_valid: bool
    message: str
    violations: list[str]

    @classmethod
    def from_domain(cls, verdict: SelectionVerdict) -> "SelectionVerdictResponse":
        return cls(
            is_valid=verdict.is_valid,
            message=verdict.message,
            violations=list(verdict.violations),
        )


class BookingResponse(BaseModel):
    booking_id: str
    showing_id: str
    movie_id: int
    movie_title: str
    user_id: str
    seat_ids: list[str]
    group_size: int = Field(ge=1)
    constraints: GroupConstraintsPayload
    created_at: str
    status: str

    @classmethod
    def from_domain(cls, booking: Booking) -> "BookingResponse":
        return cls(
            booking_id=booking.booking_id,
            showing_id=booking.showing_id,
            movie_id=booking.movie_id,
            movie_title=booking.movie_title,
            user_id=booking.user_id,
            seat_ids=list(booking.seat_ids),
            group_size=booking.group_size,
            constraints=GroupConstraintsPayload(**booking.constraints.to_dict()),
            created_at=booking.created_at,
            status=booking.status.value,
        )
