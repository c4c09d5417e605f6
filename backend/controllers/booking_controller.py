"""HTTP controller layer for seat allocation, selection review and bookings."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from backend.controllers.dependencies import (
    get_booking_service,
    get_showing_service,
    get_workflow_service,
    require_user,
)
from backend.controllers.schemas import (
    AllocateRequest,
    BookingResponse,
    SeatMapResponse,
    SeatResponse,
    SelectionResponse,
    SelectionVerdictResponse,
    ShowingResponse,
    ValidateSelectionRequest,
)
from backend.domain.constraints import InvalidConstraintsError
from backend.domain.models import AuthenticatedUser
from backend.services.allocation_service import (
    InsufficientEligibleSeatsError,
    ShowingNotFoundError,
)
from backend.services.booking_service import (
    BookingConflictError,
    BookingNotFoundError,
    BookingPermissionError,
    BookingService,
    ManualBookingError,
)
from backend.services.booking_workflow_service import (
    BookingWorkflowService,
    PendingAllocationNotFoundError,
    SelectionEditError,
)
from backend.services.showing_service import ShowingService
from backend.services.validation_service import SelectionMismatchError
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["booking"])

_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (InvalidConstraintsError, status.HTTP_400_BAD_REQUEST),
    (PendingAllocationNotFoundError, status.HTTP_400_BAD_REQUEST),
    (BookingPermissionError, status.HTTP_403_FORBIDDEN),
    (ShowingNotFoundError, status.HTTP_404_NOT_FOUND),
    (BookingNotFoundError, status.HTTP_404_NOT_FOUND),
    (BookingConflictError, status.HTTP_409_CONFLICT),
    (InsufficientEligibleSeatsError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (SelectionMismatchError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (SelectionEditError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ManualBookingError, status.HTTP_422_UNPROCESSABLE_ENTITY),
)

BOOKING_ERRORS = tuple(error for error, _ in _STATUS_BY_ERROR)


def to_http_error(exc: Exception) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Unexpected booking failure",
    )


@router.get("/showings", response_model=list[ShowingResponse], status_code=status.HTTP_200_OK)
async def list_showings(
    service: ShowingService = Depends(get_showing_service),
) -> list[ShowingResponse]:
    return [
        ShowingResponse(
            showing_id=showing.showing_id,
            movie_id=showing.movie_id,
            movie_title=showing.movie_title,
        )
        for showing in service.list_showings()
    ]


@router.get(
    "/showings/{showing_id}/seats",
    response_model=SeatMapResponse,
    status_code=status.HTTP_200_OK,
)
async def get_seat_map(
    showing_id: str,
    service: ShowingService = Depends(get_showing_service),
) -> SeatMapResponse:
    try:
        seats = service.get_seat_map(showing_id)
    except ShowingNotFoundError as exc:
        raise to_http_error(exc) from exc
    return SeatMapResponse(
        showing_id=showing_id,
        seats=[SeatResponse.from_domain(seat) for seat in seats],
    )


@router.post("/allocate", response_model=SelectionResponse, status_code=status.HTTP_200_OK)
async def allocate(
    payload: AllocateRequest,
    user: AuthenticatedUser = Depends(require_user),
    workflow_service: BookingWorkflowService = Depends(get_workflow_service),
) -> SelectionResponse:
    """Suggest seats for the group and keep them as the user's pending selection."""
    try:
        result = workflow_service.request_allocation(
            user=user,
            showing_id=payload.showing_id,
            constraints=payload.constraints.to_domain(),
        )
        return SelectionResponse(**result)
    except BOOKING_ERRORS as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected allocation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to allocate seats",
        ) from exc


@router.get("/selection", response_model=SelectionResponse, status_code=status.HTTP_200_OK)
async def get_selection(
    user: AuthenticatedUser = Depends(require_user),
    workflow_service: BookingWorkflowService = Depends(get_workflow_service),
) -> SelectionResponse:
    try:
        return SelectionResponse(**workflow_service.get_selection(user))
    except BOOKING_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.post(
    "/selection/seats/{seat_id}",
    response_model=SelectionResponse,
    status_code=status.HTTP_200_OK,
)
async def add_selected_seat(
    seat_id: str,
    user: AuthenticatedUser = Depends(require_user),
    workflow_service: BookingWorkflowService = Depends(get_workflow_service),
) -> SelectionResponse:
    try:
        return SelectionResponse(**workflow_service.add_seat(user, seat_id))
    except BOOKING_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.delete(
    "/selection/seats/{seat_id}",
    response_model=SelectionResponse,
    status_code=status.HTTP_200_OK,
)
async def remove_selected_seat(
    seat_id: str,
    user: AuthenticatedUser = Depends(require_user),
    workflow_service: BookingWorkflowService = Depends(get_workflow_service),
) -> SelectionResponse:
    try:
        return SelectionResponse(**workflow_service.remove_seat(user, seat_id))
    except BOOKING_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.delete("/selection", status_code=status.HTTP_204_NO_CONTENT)
async def discard_selection(
    user: AuthenticatedUser = Depends(require_user),
    workflow_service: BookingWorkflowService = Depends(get_workflow_service),
) -> Response:
    workflow_service.discard(user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/confirm", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def confirm_selection(
    user: AuthenticatedUser = Depends(require_user),
    workflow_service: BookingWorkflowService = Depends(get_workflow_service),
) -> BookingResponse:
    """Re-validate the pending selection server-side and persist the booking."""
    try:
        booking = workflow_service.confirm(user)
        return BookingResponse.from_domain(booking)
    except BOOKING_ERRORS as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking confirmation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to confirm booking",
        ) from exc


@router.post(
    "/validate_selection",
    response_model=SelectionVerdictResponse,
    status_code=status.HTTP_200_OK,
)
async def validate_selection(
    payload: ValidateSelectionRequest,
    workflow_service: BookingWorkflowService = Depends(get_workflow_service),
) -> SelectionVerdictResponse:
    try:
        verdict = workflow_service.check_selection(
            showing_id=payload.showing_id,
            seat_ids=payload.seat_ids,
            constraints=payload.constraints.to_domain(),
        )
        return SelectionVerdictResponse.from_domain(verdict)
    except BOOKING_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.get("/bookings/me", response_model=list[BookingResponse], status_code=status.HTTP_200_OK)
async def list_my_bookings(
    user: AuthenticatedUser = Depends(require_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> list[BookingResponse]:
    return [
        BookingResponse.from_domain(booking)
        for booking in booking_service.list_bookings_for_user(user)
    ]


@router.delete(
    "/bookings/{booking_id}",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
async def cancel_booking(
    booking_id: str,
    user: AuthenticatedUser = Depends(require_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a booking; cancelling twice returns the cancelled booking unchanged."""
    try:
        booking = booking_service.cancel_booking(user=user, booking_id=booking_id)
        return BookingResponse.from_domain(booking)
    except BOOKING_ERRORS as exc:
        raise to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking cancellation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel booking",
        ) from exc
