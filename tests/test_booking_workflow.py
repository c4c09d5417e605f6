from __future__ import annotations

import random
import threading
from dataclasses import replace

from backend.domain.models import AuthenticatedUser, GroupConstraints
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import SeatAllocationService
from backend.services.booking_service import BookingService
from backend.services.booking_workflow_service import BookingWorkflowService, SelectionEditError
from backend.services.showing_service import ShowingService
from backend.utils.config import get_settings


ALICE = AuthenticatedUser(user_id="alice")


def _build_workflow(tmp_path) -> tuple[BookingWorkflowService, str]:
    get_settings.cache_clear()
    settings = replace(
        get_settings(),
        database_path=tmp_path / "workflow.db",
        broken_seat_count=0,
        layout_random_seed=42,
    )
    repository = DataRepository(settings)
    repository.initialize_database()
    ShowingService(
        repository=repository,
        settings=settings,
        rng=random.Random(settings.layout_random_seed),
    ).seed_default_showing()
    workflow = BookingWorkflowService(
        repository=repository,
        allocation_service=SeatAllocationService(repository=repository, settings=settings),
        booking_service=BookingService(repository=repository, settings=settings),
        settings=settings,
    )
    return workflow, settings.default_showing_id


def _run_together(action, seat_ids: list[str]) -> list[object]:
    barrier = threading.Barrier(len(seat_ids))
    outcomes: list[object] = []
    outcomes_lock = threading.Lock()

    def run(seat_id: str) -> None:
        barrier.wait()
        try:
            outcome: object = action(seat_id)
        except SelectionEditError as exc:
            outcome = exc
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=run, args=(seat_id,)) for seat_id in seat_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes


def test_concurrent_removals_do_not_lose_edits(tmp_path) -> None:
    workflow, showing_id = _build_workflow(tmp_path)
    allocated = workflow.request_allocation(
        user=ALICE,
        showing_id=showing_id,
        constraints=GroupConstraints(group_size=6),
    )
    seat_ids = allocated["selected_seat_ids"]
    assert len(seat_ids) == 6

    _run_together(lambda seat_id: workflow.remove_seat(ALICE, seat_id), seat_ids)

    assert workflow.get_selection(ALICE)["selected_seat_ids"] == []


def test_concurrent_additions_respect_group_size(tmp_path) -> None:
    workflow, showing_id = _build_workflow(tmp_path)
    workflow.request_allocation(
        user=ALICE,
        showing_id=showing_id,
        constraints=GroupConstraints(group_size=6),
    )
    for seat_id in list(workflow.get_selection(ALICE)["selected_seat_ids"]):
        workflow.remove_seat(ALICE, seat_id)

    candidates = [f"C{number}" for number in range(1, 9)]
    outcomes = _run_together(lambda seat_id: workflow.add_seat(ALICE, seat_id), candidates)

    selected = workflow.get_selection(ALICE)["selected_seat_ids"]
    assert len(selected) == 6
    assert set(selected) <= set(candidates)
    rejected = [outcome for outcome in outcomes if isinstance(outcome, SelectionEditError)]
    assert len(rejected) == 2
    assert all("more than 6" in str(outcome) for outcome in rejected)
