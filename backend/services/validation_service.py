"""Selection validation: the final hard-constraint gate before a booking commit."""

from __future__ import annotations

from collections import Counter
from typing import Sequence

from backend.domain.constraints import (
    MAX_GROUP_SIZE,
    ExclusionReason,
    seat_exclusion_reason,
    validate_group_constraints,
)
from backend.domain.models import GroupConstraints, Seat, SelectionVerdict


VALID_SELECTION_MESSAGE = "Selection is valid."


class SelectionMismatchError(Exception):
    """Raised when a selection violates a hard constraint."""

    def __init__(self, verdict: SelectionVerdict) -> None:
        super().__init__(verdict.message)
        self.verdict = verdict


def _fail(*violations: str) -> SelectionVerdict:
    return SelectionVerdict(is_valid=False, message=" ".join(violations), violations=violations)


def _count_violation(selected_count: int, group_size: int) -> str:
    difference = abs(selected_count - group_size)
    direction = "too few" if selected_count < group_size else "too many"
    return (
        f"Please select exactly {group_size} seat(s): {selected_count} selected, "
        f"{difference} {direction}."
    )


def validate_selection(
    selected_seat_ids: Sequence[str],
    constraints: GroupConstraints,
    seats: Sequence[Seat],
    max_group_size: int = MAX_GROUP_SIZE,
) -> SelectionVerdict:
    """Judge a selection against the group's hard constraints.

    Checks run in a fixed order and the result depends only on the inputs, so
    re-running it on the same selection, constraints and inventory always
    gives the same verdict. A single offending seat fails the whole selection.
    """
    validate_group_constraints(constraints, max_group_size)

    duplicates = sorted(seat_id for seat_id, count in Counter(selected_seat_ids).items() if count > 1)
    if duplicates:
        return _fail(f"Seat(s) selected more than once: {', '.join(duplicates)}.")

    if len(selected_seat_ids) != constraints.group_size:
        return _fail(_count_violation(len(selected_seat_ids), constraints.group_size))

    seats_by_id = {seat.seat_id: seat for seat in seats}
    unknown = [seat_id for seat_id in selected_seat_ids if seat_id not in seats_by_id]
    if unknown:
        return _fail(f"Unknown seat(s): {', '.join(unknown)}.")

    unavailable: list[str] = []
    not_accessible: list[str] = []
    age_blocked: list[str] = []
    for seat_id in selected_seat_ids:
        seat = seats_by_id[seat_id]
        reason = seat_exclusion_reason(seat, constraints)
        if reason is ExclusionReason.UNAVAILABLE:
            unavailable.append(f"{seat_id} ({seat.status.value})")
        elif reason is ExclusionReason.NOT_ACCESSIBLE:
            not_accessible.append(seat_id)
        elif reason is ExclusionReason.AGE_RESTRICTED:
            age_blocked.append(f"{seat_id} ({seat.age_restriction}+)")

    violations: list[str] = []
    if unavailable:
        violations.append(f"Seat(s) not available: {', '.join(unavailable)}.")
    if not_accessible:
        violations.append(
            f"All selected seats must be 'accessible'; not accessible: {', '.join(not_accessible)}."
        )
    if age_blocked:
        violations.append(
            "Selected seats do not meet the age requirement for a youngest member aged "
            f"{constraints.age_of_youngest_member}: {', '.join(age_blocked)}."
        )
    if violations:
        return _fail(*violations)
    return SelectionVerdict(is_valid=True, message=VALID_SELECTION_MESSAGE)


def ensure_valid_selection(
    selected_seat_ids: Sequence[str],
    constraints: GroupConstraints,
    seats: Sequence[Seat],
    max_group_size: int = MAX_GROUP_SIZE,
) -> SelectionVerdict:
    verdict = validate_selection(selected_seat_ids, constraints, seats, max_group_size)
    if not verdict.is_valid:
        raise SelectionMismatchError(verdict)
    return verdict
