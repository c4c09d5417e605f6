"""Controller layer for session login and administrator endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field

from backend.controllers.booking_controller import BOOKING_ERRORS, to_http_error
from backend.controllers.dependencies import (
    bearer_scheme,
    get_auth_service,
    get_booking_service,
    get_showing_service,
    require_admin,
    require_user,
)
from backend.controllers.schemas import BookingResponse, SeatMapResponse, SeatResponse, ShowingResponse
from backend.domain.constraints import InvalidLayoutConfigError
from backend.domain.models import AuthenticatedUser, HallLayoutConfig
from backend.services.allocation_service import ShowingNotFoundError
from backend.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from backend.services.booking_service import BookingService
from backend.services.showing_service import (
    ShowingExistsError,
    ShowingHasBookingsError,
    ShowingService,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["admin"])


class LoginRequest(BaseModel):
    user_id: str = Field(min_length=1)
    admin_token: Optional[str] = Field(default=None, min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str


class SeatCoordinate(BaseModel):
    row: int = Field(ge=0)
    seat: int = Field(ge=0)


class AgeRestrictedRow(BaseModel):
    row: int = Field(ge=0)
    min_age: int = Field(gt=0)


class HallLayoutPayload(BaseModel):
    rows: int = Field(ge=1, le=26)
    seats_per_row: int = Field(ge=1)
    vip_rows: list[int] = Field(default_factory=list)
    accessible_seats: list[SeatCoordinate] = Field(default_factory=list)
    age_restricted_rows: list[AgeRestrictedRow] = Field(default_factory=list)
    senior_seats: list[SeatCoordinate] = Field(default_factory=list)

    def to_domain(self) -> HallLayoutConfig:
        return HallLayoutConfig(
            rows=self.rows,
            seats_per_row=self.seats_per_row,
            vip_rows=tuple(self.vip_rows),
            accessible_seats=tuple((item.row, item.seat) for item in self.accessible_seats),
            age_restricted_rows=tuple(
                (item.row, item.min_age) for item in self.age_restricted_rows
            ),
            senior_seats=tuple((item.row, item.seat) for item in self.senior_seats),
        )


class CreateShowingRequest(BaseModel):
    showing_id: str = Field(min_length=1)
    movie_id: int = Field(gt=0)
    movie_title: str = Field(min_length=1)
    layout: Optional[HallLayoutPayload] = None


class ResetLayoutRequest(BaseModel):
    layout: Optional[HallLayoutPayload] = None


class AdminBookingRequest(BaseModel):
    showing_id: str = Field(min_length=1)
    seat_ids: list[str] = Field(min_length=1)
    user_id: Optional[str] = Field(default=None, min_length=1)


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        bearer = auth_service.login(payload.user_id, admin_token=payload.admin_token)
        role = auth_service.resolve(bearer).role
        return LoginResponse(access_token=bearer, role=role.value)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    user: AuthenticatedUser = Depends(require_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    auth_service.logout(credentials.credentials)
    logger.info("Session closed | user_id=%s", user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/admin/bookings",
    response_model=list[BookingResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def list_all_bookings(
    include_cancelled: bool = False,
    booking_service: BookingService = Depends(get_booking_service),
) -> list[BookingResponse]:
    return [
        BookingResponse.from_domain(booking)
        for booking in booking_service.list_all_bookings(include_cancelled=include_cancelled)
    ]


@router.post(
    "/admin/showings",
    response_model=ShowingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_showing(
    payload: CreateShowingRequest,
    showing_service: ShowingService = Depends(get_showing_service),
) -> ShowingResponse:
    try:
        showing = showing_service.create_showing(
            showing_id=payload.showing_id,
            movie_id=payload.movie_id,
            movie_title=payload.movie_title,
            config=payload.layout.to_domain() if payload.layout else None,
        )
        return ShowingResponse(
            showing_id=showing.showing_id,
            movie_id=showing.movie_id,
            movie_title=showing.movie_title,
        )
    except InvalidLayoutConfigError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ShowingExistsError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected showing creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create showing",
        ) from exc


@router.post(
    "/admin/showings/{showing_id}/reset",
    response_model=SeatMapResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_admin)],
)
async def reset_layout(
    showing_id: str,
    payload: Optional[ResetLayoutRequest] = None,
    showing_service: ShowingService = Depends(get_showing_service),
) -> SeatMapResponse:
    """Regenerate the hall layout with a new random set of broken seats."""
    layout = payload.layout if payload is not None else None
    try:
        seats = showing_service.reset_layout(
            showing_id,
            config=layout.to_domain() if layout else None,
        )
        return SeatMapResponse(
            showing_id=showing_id,
            seats=[SeatResponse.from_domain(seat) for seat in seats],
        )
    except InvalidLayoutConfigError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ShowingNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except ShowingHasBookingsError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc


@router.post(
    "/admin/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def admin_book(
    payload: AdminBookingRequest,
    admin: AuthenticatedUser = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Book hand-picked seats, skipping the group seating rules."""
    try:
        booking = booking_service.admin_book(
            admin=admin,
            showing_id=payload.showing_id,
            seat_ids=payload.seat_ids,
            user_id=payload.user_id,
        )
        return BookingResponse.from_domain(booking)
    except BOOKING_ERRORS as exc:
        raise to_http_error(exc) from exc
