"""Booking commit and cancellation against the showing's seat inventory."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence
from uuid import uuid4

from backend.domain.constraints import validate_group_constraints
from backend.domain.models import (
    AuthenticatedUser,
    Booking,
    BookingStatus,
    GroupConstraints,
    Seat,
    SeatCategory,
    SeatStatus,
    Showing,
)
from backend.repository.data_repository import DataRepository, SeatsUnavailableError
from backend.services.allocation_service import ShowingNotFoundError
from backend.services.validation_service import ensure_valid_selection
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class BookingError(Exception):
    """Base booking failure."""


class BookingConflictError(BookingError):
    """Raised when a concurrent booking took one of the selected seats first."""

    def __init__(self, seat_ids: Sequence[str]) -> None:
        super().__init__(
            "Some selected seats are no longer available "
            f"({', '.join(seat_ids)}). Refresh availability and request a new allocation."
        )
        self.seat_ids = list(seat_ids)


class BookingNotFoundError(BookingError):
    """Raised when a booking id does not exist."""


class BookingPermissionError(BookingError):
    """Raised when a user acts on a booking they do not own."""


class ManualBookingError(BookingError):
    """Raised when an administrator's hand-picked seats cannot be booked."""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _raise_if_taken(seats: Sequence[Seat], seat_ids: Sequence[str]) -> None:
    requested = set(seat_ids)
    taken = sorted(
        seat.seat_id
        for seat in seats
        if seat.seat_id in requested and seat.status is SeatStatus.BOOKED
    )
    if taken:
        raise BookingConflictError(taken)


def constraints_from_seats(seats: Sequence[Seat]) -> GroupConstraints:
    """Describe a hand-picked seat set by the categories it contains."""
    categories = {seat.category for seat in seats}
    return GroupConstraints(
        group_size=len(seats),
        requires_accessible_seating=SeatCategory.ACCESSIBLE in categories,
        wants_vip_seating=SeatCategory.VIP in categories,
        senior_citizen=SeatCategory.SENIOR in categories,
    )


class BookingService:
    """Persists validated selections and reverses them on cancellation."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def commit_booking(
        self,
        *,
        user: AuthenticatedUser,
        showing_id: str,
        seat_ids: Sequence[str],
        constraints: GroupConstraints,
    ) -> Booking:
        """Re-validate the selection server-side and book it atomically.

        Whatever the client reported about the selection is ignored: the
        verdict is recomputed here against the current inventory, and the
        repository's conditional update guards the window between this read
        and the write.
        """
        validate_group_constraints(constraints, self._settings.max_group_size)
        showing = self._require_showing(showing_id)
        seats = self._repository.get_seats_for_showing(showing_id)
        _raise_if_taken(seats, seat_ids)
        ensure_valid_selection(seat_ids, constraints, seats, self._settings.max_group_size)
        return self._book(
            showing,
            user_id=user.user_id,
            seat_ids=seat_ids,
            constraints=constraints,
        )

    def admin_book(
        self,
        *,
        admin: AuthenticatedUser,
        showing_id: str,
        seat_ids: Sequence[str],
        user_id: Optional[str] = None,
    ) -> Booking:
        """Book hand-picked seats without applying the group rules.

        Only availability is enforced. The stored constraints describe the
        chosen seats rather than a customer's request.
        """
        if not admin.is_admin:
            raise BookingPermissionError("Admin privileges are required for manual bookings.")
        showing = self._require_showing(showing_id)
        seats = self._repository.get_seats_for_showing(showing_id)
        seats_by_id = {seat.seat_id: seat for seat in seats}

        if not seat_ids:
            raise ManualBookingError("Select at least one seat.")
        duplicates = sorted({seat_id for seat_id in seat_ids if list(seat_ids).count(seat_id) > 1})
        if duplicates:
            raise ManualBookingError(f"Seat(s) selected more than once: {', '.join(duplicates)}.")
        unknown = [seat_id for seat_id in seat_ids if seat_id not in seats_by_id]
        if unknown:
            raise ManualBookingError(f"Unknown seat(s): {', '.join(unknown)}.")
        broken = [
            seat_id for seat_id in seat_ids if seats_by_id[seat_id].status is SeatStatus.BROKEN
        ]
        if broken:
            raise ManualBookingError(f"Seat(s) out of service: {', '.join(broken)}.")
        _raise_if_taken(seats, seat_ids)

        booking = self._book(
            showing,
            user_id=user_id or admin.user_id,
            seat_ids=seat_ids,
            constraints=constraints_from_seats([seats_by_id[seat_id] for seat_id in seat_ids]),
        )
        logger.info(
            "Manual booking | booking_id=%s | admin_id=%s",
            booking.booking_id,
            admin.user_id,
        )
        return booking

    def _require_showing(self, showing_id: str) -> Showing:
        showing = self._repository.get_showing(showing_id)
        if showing is None:
            raise ShowingNotFoundError(f"Showing {showing_id!r} does not exist")
        return showing

    def _book(
        self,
        showing: Showing,
        *,
        user_id: str,
        seat_ids: Sequence[str],
        constraints: GroupConstraints,
    ) -> Booking:
        booking = Booking(
            booking_id=uuid4().hex,
            showing_id=showing.showing_id,
            movie_id=showing.movie_id,
            movie_title=showing.movie_title,
            user_id=user_id,
            seat_ids=tuple(seat_ids),
            group_size=constraints.group_size,
            constraints=constraints,
            created_at=_utc_now(),
        )
        try:
            self._repository.book_seats(booking)
        except SeatsUnavailableError as exc:
            logger.warning(
                "Booking conflict | showing_id=%s | user_id=%s | seats=%s",
                showing.showing_id,
                user_id,
                exc.seat_ids,
            )
            raise BookingConflictError(exc.seat_ids) from exc

        logger.info(
            "Booking committed | booking_id=%s | showing_id=%s | user_id=%s | seats=%s",
            booking.booking_id,
            showing.showing_id,
            user_id,
            list(booking.seat_ids),
        )
        return booking

    def get_booking(self, booking_id: str) -> Booking:
        booking = self._repository.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundError(f"Booking {booking_id!r} not found")
        return booking

    def cancel_booking(self, *, user: AuthenticatedUser, booking_id: str) -> Booking:
        """Cancel a booking and free its seats; repeating the call is a no-op."""
        booking = self.get_booking(booking_id)
        if not user.is_admin and booking.user_id != user.user_id:
            raise BookingPermissionError(
                "You do not have permission to cancel this booking."
            )
        if booking.status is BookingStatus.CANCELLED:
            logger.info("Booking already cancelled | booking_id=%s", booking_id)
            return booking

        released = self._repository.cancel_booking(booking_id, cancelled_at=_utc_now())
        if released:
            logger.info(
                "Booking cancelled | booking_id=%s | seats=%s",
                booking_id,
                list(booking.seat_ids),
            )
        return self.get_booking(booking_id)

    def list_bookings_for_user(self, user: AuthenticatedUser) -> list[Booking]:
        return self._repository.list_bookings(user_id=user.user_id)

    def list_all_bookings(self, include_cancelled: bool = False) -> list[Booking]:
        return self._repository.list_bookings(include_cancelled=include_cancelled)
