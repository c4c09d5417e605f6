#!/usr/bin/env python3
"""Validate local environment readiness for the seat booking service."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Callable

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.models import AuthenticatedUser, GroupConstraints, SeatStatus
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import SeatAllocationService
from backend.services.booking_service import BookingService
from backend.services.showing_service import ShowingService
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44

PACKAGE_SPECS = [
    ("fastapi", "fastapi"),
    ("uvicorn", "uvicorn"),
    ("pydantic", "pydantic"),
    ("httpx", "httpx"),
    ("pytest", "pytest"),
]


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def _run_check(name: str, check: Callable[[], str]) -> tuple[bool, str]:
    try:
        return _print_result(name, True, check())
    except Exception as exc:
        return _print_result(name, False, str(exc))


def _check_packages() -> str:
    import_errors: list[str] = []
    for module_name, dist_name in PACKAGE_SPECS:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        raise RuntimeError("missing/unimportable -> " + "; ".join(import_errors))
    return ": all importable"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="cineseat-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable with versions
    ok, line = _run_check("Required packages", _check_packages)
    results.append(line)
    all_passed = all_passed and ok

    try:
        settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "cineseat_validation.db",
            layout_random_seed=7,
        )
        repository = DataRepository(settings)
        showing_id = settings.default_showing_id
        user = AuthenticatedUser(user_id="environment-check")

        # CHECK 3: Database initialization
        ok, line = _run_check("Database initialization", lambda: repository.initialize_database() or "")
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Default showing seeding
        def seed() -> str:
            ShowingService(repository=repository, settings=settings).seed_default_showing()
            seats = repository.get_seats_for_showing(showing_id)
            expected = settings.hall_rows * settings.hall_seats_per_row
            if len(seats) != expected:
                raise RuntimeError(f"expected {expected} seats, got {len(seats)}")
            broken = sum(1 for seat in seats if seat.status is SeatStatus.BROKEN)
            return f": {len(seats)} seats, {broken} broken"

        ok, line = _run_check("Default showing", seed)
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Allocation, commit and cancellation round trip
        def round_trip() -> str:
            constraints = GroupConstraints(group_size=2)
            result = SeatAllocationService(repository=repository, settings=settings).allocate(
                showing_id=showing_id,
                constraints=constraints,
            )
            if not result.success:
                raise RuntimeError(result.message)
            booking_service = BookingService(repository=repository, settings=settings)
            booking = booking_service.commit_booking(
                user=user,
                showing_id=showing_id,
                seat_ids=result.seat_ids,
                constraints=constraints,
            )
            booking_service.cancel_booking(user=user, booking_id=booking.booking_id)
            return f": {', '.join(result.seat_ids)}"

        ok, line = _run_check("Allocation round trip", round_trip)
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" CineSeat Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
