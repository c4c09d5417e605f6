"""Showing lifecycle: seat inventory creation, seeding and layout resets."""

from __future__ import annotations

import random
from typing import Optional

from backend.domain.models import HallLayoutConfig, Seat, Showing
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import ShowingNotFoundError
from backend.services.layout_service import (
    default_layout_config,
    generate_hall_layout,
    layout_rng,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class ShowingExistsError(Exception):
    """Raised when creating a showing whose id is already taken."""


class ShowingHasBookingsError(Exception):
    """Raised when resetting the layout of a showing that has booked seats."""


class ShowingService:
    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._rng = rng or layout_rng(self._settings)

    def _generate(self, config: HallLayoutConfig) -> list[Seat]:
        return generate_hall_layout(
            config,
            broken_seat_count=self._settings.broken_seat_count,
            rng=self._rng,
        )

    def create_showing(
        self,
        *,
        showing_id: str,
        movie_id: int,
        movie_title: str,
        config: Optional[HallLayoutConfig] = None,
    ) -> Showing:
        showing = Showing(showing_id=showing_id, movie_id=movie_id, movie_title=movie_title)
        seats = self._generate(config or default_layout_config(self._settings))
        if not self._repository.create_showing(showing, seats):
            raise ShowingExistsError(f"Showing {showing_id!r} already exists")
        return showing

    def seed_default_showing(self) -> None:
        """Create the configured default showing only when it is missing."""
        if self._repository.get_showing(self._settings.default_showing_id) is not None:
            logger.info("Default showing already present; skipping seed")
            return
        self.create_showing(
            showing_id=self._settings.default_showing_id,
            movie_id=self._settings.default_movie_id,
            movie_title=self._settings.default_movie_title,
        )

    def reset_layout(
        self,
        showing_id: str,
        config: Optional[HallLayoutConfig] = None,
    ) -> list[Seat]:
        """Regenerate the hall with a fresh set of broken seats."""
        if self._repository.get_showing(showing_id) is None:
            raise ShowingNotFoundError(f"Showing {showing_id!r} does not exist")
        seats = self._generate(config or default_layout_config(self._settings))
        if not self._repository.replace_showing_seats(showing_id, seats):
            raise ShowingHasBookingsError(
                f"Showing {showing_id!r} has booked seats; cancel them before resetting"
            )
        logger.info("Seat layout reset | showing_id=%s", showing_id)
        return seats

    def list_showings(self) -> list[Showing]:
        return self._repository.list_showings()

    def get_seat_map(self, showing_id: str) -> list[Seat]:
        seats = self._repository.get_seats_for_showing(showing_id)
        if not seats:
            raise ShowingNotFoundError(f"Showing {showing_id!r} has no seat inventory")
        return seats
