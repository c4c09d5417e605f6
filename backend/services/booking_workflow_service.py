"""Per-user booking workflow: allocate -> review/edit -> confirm or discard."""

from __future__ import annotations

from dataclasses import dataclass, replace
from threading import RLock
from typing import Any, Optional

from backend.domain.models import (
    AllocationResult,
    AuthenticatedUser,
    Booking,
    GroupConstraints,
    SeatStatus,
    SelectionVerdict,
)
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import (
    InsufficientEligibleSeatsError,
    SeatAllocationService,
)
from backend.services.booking_service import BookingConflictError, BookingService
from backend.services.validation_service import validate_selection
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class PendingAllocationNotFoundError(Exception):
    """Raised when a selection is edited or confirmed before allocating."""


class SelectionEditError(Exception):
    """Raised when a seat cannot be added to the pending selection."""


@dataclass(frozen=True)
class PendingAllocation:
    showing_id: str
    constraints: GroupConstraints
    proposal: AllocationResult
    selected_seat_ids: tuple[str, ...]


class BookingWorkflowService:
    """Keeps each user's suggested allocation until it is confirmed or discarded."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        allocation_service: Optional[SeatAllocationService] = None,
        booking_service: Optional[BookingService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._allocation_service = allocation_service or SeatAllocationService(
            repository=self._repository,
            settings=self._settings,
        )
        self._booking_service = booking_service or BookingService(
            repository=self._repository,
            settings=self._settings,
        )
        self._lock = RLock()
        self._pending: dict[str, PendingAllocation] = {}

    def _pending_for(self, user: AuthenticatedUser) -> PendingAllocation:
        with self._lock:
            pending = self._pending.get(user.user_id)
        if pending is None:
            raise PendingAllocationNotFoundError(
                "No pending allocation found. Request seats with /allocate first."
            )
        return pending

    def _verdict(self, pending: PendingAllocation) -> SelectionVerdict:
        seats = self._allocation_service.load_inventory(pending.showing_id)
        return validate_selection(
            pending.selected_seat_ids,
            pending.constraints,
            seats,
            self._settings.max_group_size,
        )

    def _to_payload(self, pending: PendingAllocation) -> dict[str, Any]:
        verdict = self._verdict(pending)
        return {
            "showing_id": pending.showing_id,
            "constraints": pending.constraints.to_dict(),
            "suggested_seat_ids": list(pending.proposal.seat_ids),
            "suggestion_message": pending.proposal.message,
            "locations": [block.describe() for block in pending.proposal.blocks],
            "selected_seat_ids": list(pending.selected_seat_ids),
            "is_valid": verdict.is_valid,
            "validation_message": verdict.message,
        }

    def request_allocation(
        self,
        *,
        user: AuthenticatedUser,
        showing_id: str,
        constraints: GroupConstraints,
    ) -> dict[str, Any]:
        result = self._allocation_service.allocate(
            showing_id=showing_id,
            constraints=constraints,
        )
        if not result.success:
            with self._lock:
                self._pending.pop(user.user_id, None)
            raise InsufficientEligibleSeatsError(result.message)

        pending = PendingAllocation(
            showing_id=showing_id,
            constraints=constraints,
            proposal=result,
            selected_seat_ids=result.seat_ids,
        )
        with self._lock:
            self._pending[user.user_id] = pending
        return self._to_payload(pending)

    def get_selection(self, user: AuthenticatedUser) -> dict[str, Any]:
        return self._to_payload(self._pending_for(user))

    def add_seat(self, user: AuthenticatedUser, seat_id: str) -> dict[str, Any]:
        with self._lock:
            pending = self._pending_for(user)
            if seat_id not in pending.selected_seat_ids:
                seats_by_id = {
                    seat.seat_id: seat
                    for seat in self._allocation_service.load_inventory(pending.showing_id)
                }
                seat = seats_by_id.get(seat_id)
                if seat is None:
                    raise SelectionEditError(f"Seat {seat_id} does not exist in this hall.")
                if seat.status is SeatStatus.BROKEN:
                    raise SelectionEditError("This seat is broken.")
                if seat.status is SeatStatus.BOOKED:
                    raise SelectionEditError("This seat is already booked.")
                if len(pending.selected_seat_ids) >= pending.constraints.group_size:
                    raise SelectionEditError(
                        f"You cannot select more than {pending.constraints.group_size} seat(s)."
                    )
                pending = replace(
                    pending, selected_seat_ids=pending.selected_seat_ids + (seat_id,)
                )
                self._pending[user.user_id] = pending
        return self._to_payload(pending)

    def remove_seat(self, user: AuthenticatedUser, seat_id: str) -> dict[str, Any]:
        with self._lock:
            pending = self._pending_for(user)
            pending = replace(
                pending,
                selected_seat_ids=tuple(
                    selected for selected in pending.selected_seat_ids if selected != seat_id
                ),
            )
            self._pending[user.user_id] = pending
        return self._to_payload(pending)

    def discard(self, user: AuthenticatedUser) -> None:
        with self._lock:
            self._pending.pop(user.user_id, None)

    def confirm(self, user: AuthenticatedUser) -> Booking:
        pending = self._pending_for(user)
        try:
            booking = self._booking_service.commit_booking(
                user=user,
                showing_id=pending.showing_id,
                seat_ids=pending.selected_seat_ids,
                constraints=pending.constraints,
            )
        except BookingConflictError:
            with self._lock:
                self._pending.pop(user.user_id, None)
            raise
        with self._lock:
            self._pending.pop(user.user_id, None)
        return booking

    def check_selection(
        self,
        *,
        showing_id: str,
        seat_ids: list[str],
        constraints: GroupConstraints,
    ) -> SelectionVerdict:
        """Stateless validation of an arbitrary selection."""
        seats = self._allocation_service.load_inventory(showing_id)
        return validate_selection(seat_ids, constraints, seats, self._settings.max_group_size)
