from __future__ import annotations

import random
from dataclasses import replace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.controllers.admin_controller import router as admin_router
from backend.controllers.booking_controller import router as booking_router
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import SeatAllocationService
from backend.services.auth_service import AuthService
from backend.services.booking_service import BookingService
from backend.services.booking_workflow_service import BookingWorkflowService
from backend.services.showing_service import ShowingService
from backend.utils.config import get_settings


SHOWING_ID = "main-hall"


def _build_test_settings(tmp_path, filename: str, admin_token: str | None):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        admin_token=admin_token,
        default_showing_id=SHOWING_ID,
        broken_seat_count=0,
        layout_random_seed=42,
    )


def _build_test_app(tmp_path, admin_token: str | None = "test-admin-token") -> FastAPI:
    settings = _build_test_settings(tmp_path, "booking_flow.db", admin_token)
    repository = DataRepository(settings)
    repository.initialize_database()

    showing_service = ShowingService(
        repository=repository,
        settings=settings,
        rng=random.Random(settings.layout_random_seed),
    )
    showing_service.seed_default_showing()
    allocation_service = SeatAllocationService(repository=repository, settings=settings)
    booking_service = BookingService(repository=repository, settings=settings)
    workflow_service = BookingWorkflowService(
        repository=repository,
        allocation_service=allocation_service,
        booking_service=booking_service,
        settings=settings,
    )

    app = FastAPI()
    app.include_router(booking_router)
    app.include_router(admin_router)
    app.state.repository = repository
    app.state.showing_service = showing_service
    app.state.booking_service = booking_service
    app.state.workflow_service = workflow_service
    app.state.auth_service = AuthService(settings=settings)
    return app


def _login(client: TestClient, user_id: str, admin_token: str | None = None) -> dict[str, str]:
    payload: dict[str, str] = {"user_id": user_id}
    if admin_token is not None:
        payload["admin_token"] = admin_token
    response = client.post("/login", json=payload)
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _allocate(client: TestClient, headers: dict[str, str], **constraints):
    return client.post(
        "/allocate",
        json={"showing_id": SHOWING_ID, "constraints": constraints},
        headers=headers,
    )


def test_allocate_review_and_confirm_flow(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))
    headers = _login(client, "alice")

    showings = client.get("/showings")
    assert showings.status_code == 200
    assert [item["showing_id"] for item in showings.json()] == [SHOWING_ID]

    allocated = _allocate(client, headers, group_size=2)
    assert allocated.status_code == 200
    body = allocated.json()
    assert body["suggested_seat_ids"] == ["A1", "A2"]
    assert body["selected_seat_ids"] == ["A1", "A2"]
    assert body["is_valid"] is True
    assert body["locations"] == ["row A seats A1-A2"]

    selection = client.get("/selection", headers=headers)
    assert selection.status_code == 200
    assert selection.json()["selected_seat_ids"] == ["A1", "A2"]

    confirmed = client.post("/confirm", headers=headers)
    assert confirmed.status_code == 201
    booking = confirmed.json()
    assert booking["seat_ids"] == ["A1", "A2"]
    assert booking["status"] == "CONFIRMED"
    assert booking["user_id"] == "alice"

    seat_map = client.get(f"/showings/{SHOWING_ID}/seats").json()["seats"]
    statuses = {seat["seat_id"]: seat["status"] for seat in seat_map}
    assert statuses["A1"] == "booked"
    assert statuses["A2"] == "booked"

    mine = client.get("/bookings/me", headers=headers)
    assert [item["booking_id"] for item in mine.json()] == [booking["booking_id"]]

    # the pending selection is cleared once confirmed
    assert client.get("/selection", headers=headers).status_code == 400


def test_editing_selection_revalidates_it(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))
    headers = _login(client, "bob")
    assert _allocate(client, headers, group_size=2).status_code == 200

    removed = client.delete("/selection/seats/A2", headers=headers)
    assert removed.status_code == 200
    assert removed.json()["selected_seat_ids"] == ["A1"]
    assert removed.json()["is_valid"] is False
    assert "1 too few" in removed.json()["validation_message"]

    rejected = client.post("/confirm", headers=headers)
    assert rejected.status_code == 422

    added = client.post("/selection/seats/C7", headers=headers)
    assert added.status_code == 200
    assert added.json()["selected_seat_ids"] == ["A1", "C7"]
    assert added.json()["is_valid"] is True

    too_many = client.post("/selection/seats/C8", headers=headers)
    assert too_many.status_code == 422
    assert "more than 2" in too_many.json()["detail"]

    unknown = client.post("/selection/seats/Z1", headers=headers)
    assert unknown.status_code == 422

    confirmed = client.post("/confirm", headers=headers)
    assert confirmed.status_code == 201
    assert confirmed.json()["seat_ids"] == ["A1", "C7"]


def test_age_restricted_selection_is_flagged(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))
    headers = _login(client, "carol")
    assert _allocate(client, headers, group_size=1, age_of_youngest_member=10).status_code == 200

    client.delete("/selection/seats/A1", headers=headers)
    edited = client.post("/selection/seats/H5", headers=headers)

    assert edited.status_code == 200
    assert edited.json()["is_valid"] is False
    assert "H5 (18+)" in edited.json()["validation_message"]


def test_discard_clears_pending_selection(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))
    headers = _login(client, "dave")
    assert _allocate(client, headers, group_size=3).status_code == 200

    assert client.delete("/selection", headers=headers).status_code == 204
    assert client.post("/confirm", headers=headers).status_code == 400


def test_accessible_group_without_enough_seats_gets_422(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))
    headers = _login(client, "erin")

    response = _allocate(client, headers, group_size=3, requires_accessible_seating=True)

    assert response.status_code == 422
    assert "accessible" in response.json()["detail"]


def test_invalid_group_size_is_rejected(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))
    headers = _login(client, "frank")

    assert _allocate(client, headers, group_size=8).status_code == 400
    assert _allocate(client, headers, group_size=0).status_code == 422


def test_unknown_showing_returns_404(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))
    headers = _login(client, "gina")

    assert client.get("/showings/nope/seats").status_code == 404
    response = client.post(
        "/allocate",
        json={"showing_id": "nope", "constraints": {"group_size": 2}},
        headers=headers,
    )
    assert response.status_code == 404


def test_booking_endpoints_require_login(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))

    assert _allocate(client, {}, group_size=2).status_code == 401
    assert client.get("/bookings/me").status_code == 401
    assert _allocate(client, {"Authorization": "Bearer forged"}, group_size=2).status_code == 401


def test_second_user_confirming_same_seats_gets_conflict(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))
    alice = _login(client, "alice")
    bob = _login(client, "bob")

    assert _allocate(client, alice, group_size=2).json()["selected_seat_ids"] == ["A1", "A2"]
    assert _allocate(client, bob, group_size=2).json()["selected_seat_ids"] == ["A1", "A2"]

    assert client.post("/confirm", headers=alice).status_code == 201
    conflict = client.post("/confirm", headers=bob)
    assert conflict.status_code == 409
    assert "A1" in conflict.json()["detail"]

    retry = _allocate(client, bob, group_size=2)
    assert retry.json()["selected_seat_ids"] == ["A3", "A4"]


def test_validate_selection_endpoint(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))

    valid = client.post(
        "/validate_selection",
        json={
            "showing_id": SHOWING_ID,
            "seat_ids": ["A1", "A10"],
            "constraints": {"group_size": 2, "requires_accessible_seating": True},
        },
    )
    assert valid.status_code == 200
    assert valid.json() == {"is_valid": True, "message": "Selection is valid.", "violations": []}

    invalid = client.post(
        "/validate_selection",
        json={
            "showing_id": SHOWING_ID,
            "seat_ids": ["A1", "A2"],
            "constraints": {"group_size": 2, "requires_accessible_seating": True},
        },
    )
    assert invalid.status_code == 200
    assert invalid.json()["is_valid"] is False
    assert "A2" in invalid.json()["message"]


def test_cancel_booking_is_idempotent_and_owner_only(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))
    alice = _login(client, "alice")
    bob = _login(client, "bob")
    _allocate(client, alice, group_size=2)
    booking_id = client.post("/confirm", headers=alice).json()["booking_id"]

    assert client.delete(f"/bookings/{booking_id}", headers=bob).status_code == 403

    first = client.delete(f"/bookings/{booking_id}", headers=alice)
    second = client.delete(f"/bookings/{booking_id}", headers=alice)
    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["status"] == "CANCELLED"

    seat_map = client.get(f"/showings/{SHOWING_ID}/seats").json()["seats"]
    assert {seat["seat_id"]: seat["status"] for seat in seat_map}["A1"] == "available"
    assert client.delete("/bookings/unknown", headers=alice).status_code == 404


def test_admin_endpoints_require_admin_session(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path, admin_token="secret"))
    user = _login(client, "alice")
    admin = _login(client, "ops", admin_token="secret")

    assert client.post("/login", json={"user_id": "x", "admin_token": "wrong"}).status_code == 401
    assert client.get("/admin/bookings").status_code == 401
    assert client.get("/admin/bookings", headers=user).status_code == 403

    _allocate(client, user, group_size=1)
    client.post("/confirm", headers=user)
    listing = client.get("/admin/bookings", headers=admin)
    assert listing.status_code == 200
    assert len(listing.json()) == 1


def test_admin_creates_showing_and_resets_layout(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path, admin_token=None))

    created = client.post(
        "/admin/showings",
        json={
            "showing_id": "late-show",
            "movie_id": 7,
            "movie_title": "Night Feature",
            "layout": {
                "rows": 3,
                "seats_per_row": 4,
                "vip_rows": [1],
                "accessible_seats": [{"row": 0, "seat": 0}],
            },
        },
    )
    assert created.status_code == 201

    seats = client.get("/showings/late-show/seats").json()["seats"]
    assert len(seats) == 12
    categories = {seat["seat_id"]: seat["category"] for seat in seats}
    assert categories["A1"] == "accessible"
    assert categories["B3"] == "vip"

    duplicate = client.post(
        "/admin/showings",
        json={"showing_id": "late-show", "movie_id": 7, "movie_title": "Night Feature"},
    )
    assert duplicate.status_code == 409

    out_of_hall = client.post(
        "/admin/showings",
        json={
            "showing_id": "bad-show",
            "movie_id": 8,
            "movie_title": "Misprint",
            "layout": {"rows": 2, "seats_per_row": 2, "vip_rows": [5]},
        },
    )
    assert out_of_hall.status_code == 400

    reset = client.post("/admin/showings/late-show/reset")
    assert reset.status_code == 200
    assert len(reset.json()["seats"]) == 80
    assert client.post("/admin/showings/missing/reset").status_code == 404


def test_admin_books_hand_picked_seats(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path, admin_token="secret"))
    user = _login(client, "alice")
    admin = _login(client, "ops", admin_token="secret")
    request = {"showing_id": SHOWING_ID, "seat_ids": ["A1", "H5"], "user_id": "walk-in"}

    assert client.post("/admin/bookings", json=request).status_code == 401
    assert client.post("/admin/bookings", json=request, headers=user).status_code == 403

    booked = client.post("/admin/bookings", json=request, headers=admin)
    assert booked.status_code == 201
    body = booked.json()
    assert body["seat_ids"] == ["A1", "H5"]
    assert body["user_id"] == "walk-in"
    assert body["constraints"]["requires_accessible_seating"] is True
    assert body["constraints"]["age_of_youngest_member"] is None

    seat_map = client.get(f"/showings/{SHOWING_ID}/seats").json()["seats"]
    statuses = {seat["seat_id"]: seat["status"] for seat in seat_map}
    assert statuses["A1"] == "booked"
    assert statuses["H5"] == "booked"

    taken = client.post(
        "/admin/bookings",
        json={"showing_id": SHOWING_ID, "seat_ids": ["H5", "H6"]},
        headers=admin,
    )
    assert taken.status_code == 409
    unknown = client.post(
        "/admin/bookings",
        json={"showing_id": SHOWING_ID, "seat_ids": ["Q1"]},
        headers=admin,
    )
    assert unknown.status_code == 422
    empty = client.post(
        "/admin/bookings",
        json={"showing_id": SHOWING_ID, "seat_ids": []},
        headers=admin,
    )
    assert empty.status_code == 422

    listing = client.get("/admin/bookings", headers=admin).json()
    assert [item["user_id"] for item in listing] == ["walk-in"]


def test_logout_ends_session(tmp_path) -> None:
    client = TestClient(_build_test_app(tmp_path))
    headers = _login(client, "alice")
    assert client.get("/bookings/me", headers=headers).status_code == 200

    assert client.post("/logout", headers=headers).status_code == 204
    assert client.get("/bookings/me", headers=headers).status_code == 401
    assert client.post("/logout", headers=headers).status_code == 401
