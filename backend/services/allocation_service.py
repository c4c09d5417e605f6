"""Deterministic seat allocation for a group over a showing's seat inventory."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Optional, Sequence

from backend.domain.constraints import (
    MAX_GROUP_SIZE,
    ExclusionReason,
    relies_on_senior_waiver,
    seat_exclusion_reason,
    validate_group_constraints,
)
from backend.domain.models import (
    AllocationResult,
    GroupConstraints,
    Seat,
    SeatBlock,
    SeatCategory,
    SeatStatus,
)
from backend.repository.data_repository import DataRepository
from backend.services.layout_service import row_index
from backend.services.validation_service import validate_selection
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class InsufficientEligibleSeatsError(Exception):
    """Raised when no seat set satisfies the group's hard constraints."""


class ShowingNotFoundError(Exception):
    """Raised when a showing id has no seat inventory."""


@dataclass(frozen=True)
class SeatRun:
    """Maximal block of consecutive eligible seats in one row."""

    row: str
    seats: tuple[Seat, ...]

    @property
    def length(self) -> int:
        return len(self.seats)

    @property
    def start(self) -> int:
        return self.seats[0].number


def find_runs(seats: Sequence[Seat]) -> list[SeatRun]:
    """Split seats into per-row runs of consecutive seat numbers."""
    seats_by_row: dict[str, list[Seat]] = defaultdict(list)
    for seat in seats:
        seats_by_row[seat.row].append(seat)

    runs: list[SeatRun] = []
    for row in sorted(seats_by_row, key=row_index):
        current: list[Seat] = []
        for seat in sorted(seats_by_row[row], key=lambda item: item.number):
            if current and seat.number != current[-1].number + 1:
                runs.append(SeatRun(row=row, seats=tuple(current)))
                current = []
            current.append(seat)
        if current:
            runs.append(SeatRun(row=row, seats=tuple(current)))
    return runs


def _describe_exclusions(
    exclusions: Counter[ExclusionReason],
    constraints: GroupConstraints,
) -> str:
    parts: list[str] = []
    if exclusions[ExclusionReason.UNAVAILABLE]:
        parts.append(f"{exclusions[ExclusionReason.UNAVAILABLE]} booked or broken")
    if exclusions[ExclusionReason.NOT_ACCESSIBLE]:
        parts.append(
            f"{exclusions[ExclusionReason.NOT_ACCESSIBLE]} not accessible "
            "(accessible seating required)"
        )
    if exclusions[ExclusionReason.AGE_RESTRICTED]:
        parts.append(
            f"{exclusions[ExclusionReason.AGE_RESTRICTED]} age-restricted above the "
            f"youngest member's age of {constraints.age_of_youngest_member}"
        )
    return ", ".join(parts) if parts else "none"


def _preference_tiers(
    eligible: Sequence[Seat],
    constraints: GroupConstraints,
) -> list[tuple[str, list[Seat]]]:
    """Candidate pools in preference order; the last pool is every eligible seat."""
    tiers: list[tuple[str, list[Seat]]] = []
    if constraints.wants_vip_seating:
        tiers.append(("VIP", [seat for seat in eligible if seat.category is SeatCategory.VIP]))
    if constraints.senior_citizen:
        tiers.append(
            ("senior", [seat for seat in eligible if seat.category is SeatCategory.SENIOR])
        )
    tiers.append(("", list(eligible)))
    return tiers


def _blocks_for(seat_groups: Sequence[Sequence[Seat]]) -> tuple[SeatBlock, ...]:
    return tuple(
        SeatBlock(row=group[0].row, seat_ids=tuple(seat.seat_id for seat in group))
        for group in seat_groups
    )


def _run_key(
    run: SeatRun,
    group_size: int,
    constraints: GroupConstraints,
) -> tuple[bool, int, int]:
    waived = any(relies_on_senior_waiver(seat, constraints) for seat in run.seats[:group_size])
    return waived, row_index(run.row), run.start


def _solo_seat_key(
    seat: Seat,
    seats_by_position: dict[tuple[str, int], Seat],
    constraints: GroupConstraints,
    tier: int,
) -> tuple[bool, bool, int, bool, int, int]:
    """Rank a solo seat; a seat between two parties loses to any other eligible seat."""
    left = seats_by_position.get((seat.row, seat.number - 1))
    right = seats_by_position.get((seat.row, seat.number + 1))
    at_boundary = left is None or right is None
    next_to_empty = any(
        neighbour is not None and neighbour.status is SeatStatus.AVAILABLE
        for neighbour in (left, right)
    )
    sandwiched = (
        left is not None
        and right is not None
        and left.status is SeatStatus.BOOKED
        and right.status is SeatStatus.BOOKED
        and not (left.booking_id is not None and left.booking_id == right.booking_id)
    )
    return (
        sandwiched,
        relies_on_senior_waiver(seat, constraints),
        tier,
        not (at_boundary or next_to_empty),
        row_index(seat.row),
        seat.number,
    )


def _allocate_solo(
    seats: Sequence[Seat],
    eligible: Sequence[Seat],
    constraints: GroupConstraints,
) -> AllocationResult:
    seats_by_position = {(seat.row, seat.number): seat for seat in seats}
    tiers = _preference_tiers(eligible, constraints)
    tier_by_seat: dict[str, int] = {}
    for index, (_, pool) in enumerate(tiers):
        for seat in pool:
            tier_by_seat.setdefault(seat.seat_id, index)

    best = min(
        eligible,
        key=lambda seat: _solo_seat_key(
            seat, seats_by_position, constraints, tier_by_seat[seat.seat_id]
        ),
    )
    label = tiers[tier_by_seat[best.seat_id]][0]
    prefix = f"{label} seat" if label else "Seat"
    return AllocationResult(
        seat_ids=(best.seat_id,),
        message=f"{prefix} {best.seat_id} allocated.",
        blocks=_blocks_for([[best]]),
    )


def _allocate_contiguous(
    eligible: Sequence[Seat],
    constraints: GroupConstraints,
) -> Optional[AllocationResult]:
    group_size = constraints.group_size
    for label, pool in _preference_tiers(eligible, constraints):
        candidates = [run for run in find_runs(pool) if run.length >= group_size]
        if not candidates:
            continue
        best = min(candidates, key=lambda run: _run_key(run, group_size, constraints))
        chosen = best.seats[:group_size]
        block = SeatBlock(row=best.row, seat_ids=tuple(seat.seat_id for seat in chosen))
        kind = f"{label} seats" if label else "seats"
        return AllocationResult(
            seat_ids=block.seat_ids,
            message=f"Allocated {group_size} adjacent {kind} together in {block.describe()}.",
            blocks=(block,),
        )
    return None


def _allocate_split(
    eligible: Sequence[Seat],
    constraints: GroupConstraints,
) -> AllocationResult:
    group_size = constraints.group_size
    runs = find_runs(eligible)
    longest = max((run.length for run in runs), default=0)
    ordered = sorted(
        runs,
        key=lambda run: (-run.length,) + _run_key(run, run.length, constraints),
    )

    taken: list[tuple[Seat, ...]] = []
    remaining = group_size
    for run in ordered:
        if remaining == 0:
            break
        portion = run.seats[:remaining]
        taken.append(portion)
        remaining -= len(portion)

    if remaining > 0:
        allocated = group_size - remaining
        return AllocationResult(
            seat_ids=(),
            message=(
                f"Could only find {allocated} of {group_size} eligible seats; "
                f"{remaining} short."
            ),
            failure_reason="shortfall",
        )

    blocks = _blocks_for(taken)
    placements = "; ".join(f"{len(block.seat_ids)} in {block.describe()}" for block in blocks)
    seat_ids = tuple(seat_id for block in blocks for seat_id in block.seat_ids)
    return AllocationResult(
        seat_ids=seat_ids,
        message=(
            f"No row has {group_size} adjacent eligible seats (longest block is {longest}), "
            f"so the group is split across {len(blocks)} locations: {placements}."
        ),
        blocks=blocks,
    )


def allocate_seats(
    seats: Sequence[Seat],
    constraints: GroupConstraints,
    max_group_size: int = MAX_GROUP_SIZE,
) -> AllocationResult:
    """Choose exactly `group_size` seats for the group, or explain why not.

    Hard constraints filter candidates; soft preferences (VIP, senior seats,
    contiguity, row order) only rank them. The outcome depends solely on the
    inputs. Any proposal is re-checked by the selection validator before it
    is returned.
    """
    validate_group_constraints(constraints, max_group_size)

    exclusions: Counter[ExclusionReason] = Counter()
    eligible: list[Seat] = []
    for seat in seats:
        reason = seat_exclusion_reason(seat, constraints)
        if reason is None:
            eligible.append(seat)
        else:
            exclusions[reason] += 1

    group_size = constraints.group_size
    if len(eligible) < group_size:
        return AllocationResult(
            seat_ids=(),
            message=(
                f"Not enough eligible seats for a group of {group_size}: "
                f"{len(eligible)} of {len(seats)} seats are eligible "
                f"(excluded: {_describe_exclusions(exclusions, constraints)})."
            ),
            failure_reason="insufficient_eligible_seats",
        )

    if group_size == 1:
        result = _allocate_solo(seats, eligible, constraints)
    else:
        result = _allocate_contiguous(eligible, constraints) or _allocate_split(
            eligible, constraints
        )

    if not result.success:
        return result

    verdict = validate_selection(result.seat_ids, constraints, seats, max_group_size)
    if not verdict.is_valid:
        logger.error(
            "Allocation proposal rejected by validator | seats=%s | reason=%s",
            result.seat_ids,
            verdict.message,
        )
        return AllocationResult(
            seat_ids=(),
            message=f"Allocation could not be verified: {verdict.message}",
            failure_reason="validation_failed",
        )
    return result


class SeatAllocationService:
    """Loads a showing's inventory and runs the allocation engine over it."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def load_inventory(self, showing_id: str) -> list[Seat]:
        seats = self._repository.get_seats_for_showing(showing_id)
        if not seats:
            raise ShowingNotFoundError(f"Showing {showing_id!r} has no seat inventory")
        return seats

    def allocate(self, *, showing_id: str, constraints: GroupConstraints) -> AllocationResult:
        validate_group_constraints(constraints, self._settings.max_group_size)
        seats = self.load_inventory(showing_id)
        result = allocate_seats(seats, constraints, self._settings.max_group_size)
        if result.success:
            logger.info(
                "Allocation completed | showing_id=%s | group_size=%s | seats=%s | split=%s",
                showing_id,
                constraints.group_size,
                list(result.seat_ids),
                result.is_split,
            )
        else:
            logger.info(
                "Allocation failed | showing_id=%s | group_size=%s | reason=%s",
                showing_id,
                constraints.group_size,
                result.failure_reason,
            )
        return result
