from __future__ import annotations

import random
from dataclasses import replace

import pytest

from backend.domain.constraints import InvalidConstraintsError
from backend.domain.models import (
    GroupConstraints,
    HallLayoutConfig,
    Seat,
    SeatCategory,
    SeatStatus,
)
from backend.services.allocation_service import allocate_seats, find_runs
from backend.services.layout_service import generate_hall_layout
from backend.services.validation_service import validate_selection


def _hall(rows: int = 8, seats_per_row: int = 10, **layout) -> list[Seat]:
    return generate_hall_layout(
        HallLayoutConfig(rows=rows, seats_per_row=seats_per_row, **layout),
        broken_seat_count=0,
    )


def _with_status(seats: list[Seat], changes: dict[str, tuple[SeatStatus, str | None]]) -> list[Seat]:
    updated = []
    for seat in seats:
        if seat.seat_id in changes:
            status, booking_id = changes[seat.seat_id]
            seat = replace(seat, status=status, booking_id=booking_id)
        updated.append(seat)
    return updated


def _booked(*seat_ids: str, booking_id: str = "other") -> dict[str, tuple[SeatStatus, str | None]]:
    return {seat_id: (SeatStatus.BOOKED, booking_id) for seat_id in seat_ids}


def test_group_of_two_gets_adjacent_seats_in_first_row() -> None:
    result = allocate_seats(_hall(), GroupConstraints(group_size=2))

    assert result.success
    assert result.seat_ids == ("A1", "A2")
    assert not result.is_split
    assert "row A" in result.message
    assert "A1-A2" in result.message


def test_contiguous_block_skips_booked_and_broken_seats() -> None:
    seats = _with_status(
        _hall(rows=2, seats_per_row=5),
        {**_booked("A2"), "A4": (SeatStatus.BROKEN, None)},
    )
    result = allocate_seats(seats, GroupConstraints(group_size=3))

    assert result.seat_ids == ("B1", "B2", "B3")


def test_accessible_group_fails_without_accessible_seats() -> None:
    result = allocate_seats(
        _hall(),
        GroupConstraints(group_size=2, requires_accessible_seating=True),
    )

    assert not result.success
    assert result.seat_ids == ()
    assert result.failure_reason == "insufficient_eligible_seats"
    assert "accessible" in result.message
    assert "0 of 80" in result.message


def test_accessible_group_only_gets_accessible_seats() -> None:
    seats = _hall(accessible_seats=((0, 0), (0, 9), (5, 4)))
    result = allocate_seats(
        seats,
        GroupConstraints(group_size=2, requires_accessible_seating=True),
    )
    by_id = {seat.seat_id: seat for seat in seats}

    assert result.success
    assert len(result.seat_ids) == 2
    assert all(by_id[seat_id].category is SeatCategory.ACCESSIBLE for seat_id in result.seat_ids)


def test_age_restricted_row_is_excluded_for_younger_member() -> None:
    seats = _hall(rows=2, seats_per_row=3, age_restricted_rows=((0, 18),))
    result = allocate_seats(
        seats,
        GroupConstraints(group_size=3, age_of_youngest_member=10),
    )

    assert result.seat_ids == ("B1", "B2", "B3")


def test_age_restricted_hall_reports_age_exclusions() -> None:
    seats = _hall(rows=1, seats_per_row=4, age_restricted_rows=((0, 18),))
    result = allocate_seats(
        seats,
        GroupConstraints(group_size=2, age_of_youngest_member=12),
    )

    assert not result.success
    assert "age-restricted" in result.message
    assert "12" in result.message


def test_senior_citizen_makes_age_restricted_row_eligible() -> None:
    seats = _hall(rows=1, seats_per_row=4, age_restricted_rows=((0, 18),))
    result = allocate_seats(
        seats,
        GroupConstraints(group_size=3, age_of_youngest_member=10, senior_citizen=True),
    )

    assert result.seat_ids == ("A1", "A2", "A3")


def test_senior_waiver_seats_are_used_only_when_needed() -> None:
    seats = _hall(rows=2, seats_per_row=3, age_restricted_rows=((0, 18),))
    result = allocate_seats(
        seats,
        GroupConstraints(group_size=3, age_of_youngest_member=10, senior_citizen=True),
    )

    assert result.seat_ids == ("B1", "B2", "B3")


def test_senior_citizen_prefers_senior_seats() -> None:
    seats = _hall(rows=3, seats_per_row=4, senior_seats=((2, 1), (2, 2)))
    result = allocate_seats(seats, GroupConstraints(group_size=2, senior_citizen=True))

    assert result.seat_ids == ("C2", "C3")


def test_vip_preference_picks_vip_block() -> None:
    result = allocate_seats(
        _hall(vip_rows=(3,)),
        GroupConstraints(group_size=2, wants_vip_seating=True),
    )

    assert result.seat_ids == ("D1", "D2")
    assert "VIP" in result.message


def test_vip_preference_falls_back_when_no_vip_block_fits() -> None:
    seats = _with_status(_hall(rows=4, seats_per_row=4, vip_rows=(3,)), _booked("D2", "D3"))
    result = allocate_seats(seats, GroupConstraints(group_size=2, wants_vip_seating=True))

    assert result.seat_ids == ("A1", "A2")


def test_group_is_split_when_no_row_fits() -> None:
    seats = _hall(rows=2, seats_per_row=3)
    result = allocate_seats(seats, GroupConstraints(group_size=4))

    assert result.success
    assert result.is_split
    assert result.seat_ids == ("A1", "A2", "A3", "B1")
    assert "split across 2 locations" in result.message
    assert "row A seats A1-A3" in result.message
    assert "seat B1" in result.message


def test_split_consumes_largest_runs_first() -> None:
    seats = _with_status(_hall(rows=2, seats_per_row=5), _booked("A3", "B2", "B4"))
    # runs: A1-A2, A4-A5, B1, B3, B5
    result = allocate_seats(seats, GroupConstraints(group_size=5))

    assert result.seat_ids == ("A1", "A2", "A4", "A5", "B1")
    assert len(result.blocks) == 3


def test_solo_attendee_avoids_seat_between_two_parties() -> None:
    seats = _with_status(
        _hall(rows=1, seats_per_row=5),
        {**_booked("A1", booking_id="first"), **_booked("A3", booking_id="second")},
    )
    result = allocate_seats(seats, GroupConstraints(group_size=1))

    assert result.seat_ids == ("A4",)
    assert result.message == "Seat A4 allocated."


def test_solo_attendee_takes_sandwiched_seat_when_it_is_the_only_one() -> None:
    seats = _with_status(
        _hall(rows=1, seats_per_row=3),
        {**_booked("A1", booking_id="first"), **_booked("A3", booking_id="second")},
    )
    result = allocate_seats(seats, GroupConstraints(group_size=1))

    assert result.seat_ids == ("A2",)


def test_solo_seat_between_one_party_is_not_penalised() -> None:
    seats = _with_status(
        _hall(rows=1, seats_per_row=5),
        {
            **_booked("A1", booking_id="first"),
            **_booked("A3", booking_id="first"),
            **_booked("A5", booking_id="second"),
        },
    )
    result = allocate_seats(seats, GroupConstraints(group_size=1))

    assert result.seat_ids == ("A2",)


def test_solo_vip_preference_never_picks_seat_between_two_parties() -> None:
    seats = _with_status(
        _hall(rows=2, seats_per_row=3, vip_rows=(0,)),
        {**_booked("A1", booking_id="x"), **_booked("A3", booking_id="y")},
    )
    result = allocate_seats(seats, GroupConstraints(group_size=1, wants_vip_seating=True))

    assert result.seat_ids == ("B1",)
    assert result.message == "Seat B1 allocated."


def test_solo_vip_preference_picks_free_vip_seat() -> None:
    seats = _with_status(
        _hall(rows=2, seats_per_row=3, vip_rows=(1,)),
        _booked("B1", booking_id="x"),
    )
    result = allocate_seats(seats, GroupConstraints(group_size=1, wants_vip_seating=True))

    assert result.seat_ids == ("B2",)
    assert result.message == "VIP seat B2 allocated."


def test_solo_senior_takes_waived_seat_over_seat_between_two_parties() -> None:
    seats = _with_status(
        _hall(rows=2, seats_per_row=3, age_restricted_rows=((1, 18),)),
        {**_booked("A1", booking_id="x"), **_booked("A3", booking_id="y")},
    )
    result = allocate_seats(
        seats,
        GroupConstraints(group_size=1, age_of_youngest_member=10, senior_citizen=True),
    )

    assert result.seat_ids == ("B1",)


def test_full_hall_reports_counts() -> None:
    seats = [replace(seat, status=SeatStatus.BOOKED) for seat in _hall(rows=1, seats_per_row=3)]
    result = allocate_seats(seats, GroupConstraints(group_size=2))

    assert not result.success
    assert "0 of 3" in result.message
    assert "3 booked or broken" in result.message


def test_invalid_group_size_raises() -> None:
    with pytest.raises(InvalidConstraintsError):
        allocate_seats(_hall(), GroupConstraints(group_size=8))


def test_find_runs_breaks_on_gaps() -> None:
    seats = [seat for seat in _hall(rows=2, seats_per_row=4) if seat.seat_id not in {"A3", "B1"}]
    runs = find_runs(seats)

    assert [(run.row, run.start, run.length) for run in runs] == [
        ("A", 1, 2),
        ("A", 4, 1),
        ("B", 2, 3),
    ]


def test_allocation_is_deterministic() -> None:
    config = HallLayoutConfig(
        rows=8,
        seats_per_row=10,
        vip_rows=(3, 4),
        accessible_seats=((0, 0), (0, 9), (7, 0), (7, 9)),
        age_restricted_rows=((6, 15), (7, 18)),
    )
    seats = generate_hall_layout(config, rng=random.Random(99))
    constraints = GroupConstraints(group_size=4, wants_vip_seating=True)

    first = allocate_seats(seats, constraints)
    second = allocate_seats(list(seats), constraints)

    assert first == second


@pytest.mark.parametrize(
    "constraints",
    [
        GroupConstraints(group_size=1),
        GroupConstraints(group_size=3, wants_vip_seating=True),
        GroupConstraints(group_size=2, requires_accessible_seating=True),
        GroupConstraints(group_size=5, age_of_youngest_member=12),
        GroupConstraints(group_size=7, age_of_youngest_member=9, senior_citizen=True),
    ],
)
def test_every_allocation_passes_selection_validation(constraints: GroupConstraints) -> None:
    config = HallLayoutConfig(
        rows=8,
        seats_per_row=10,
        vip_rows=(3, 4),
        accessible_seats=((0, 0), (0, 9), (1, 0), (1, 9), (5, 0), (5, 9)),
        age_restricted_rows=((6, 15), (7, 18)),
    )
    seats = generate_hall_layout(config, rng=random.Random(17))
    result = allocate_seats(seats, constraints)

    assert result.success
    assert len(result.seat_ids) == constraints.group_size
    assert validate_selection(result.seat_ids, constraints, seats).is_valid
