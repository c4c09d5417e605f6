"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from backend.domain.models import (
    Booking,
    BookingStatus,
    GroupConstraints,
    Seat,
    SeatCategory,
    SeatStatus,
    Showing,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class SeatsUnavailableError(Exception):
    """Raised when a conditional seat update finds seats already taken."""

    def __init__(self, seat_ids: Sequence[str]) -> None:
        super().__init__(f"Seats no longer available: {', '.join(seat_ids)}")
        self.seat_ids = list(seat_ids)


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic.

    Seat status transitions are conditional updates run inside
    `BEGIN IMMEDIATE` transactions: SQLite then admits one writer at a time,
    so the availability re-check and the status change of a commit are seen
    by other connections as a single step.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.database_timeout_seconds,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _write_transaction(self) -> Iterator[sqlite3.Connection]:
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE;")
            try:
                yield connection
            except BaseException:
                connection.execute("ROLLBACK;")
                raise
            connection.execute("COMMIT;")
        finally:
            connection.close()

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        connection = self._connect()
        try:
            yield connection
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._write_transaction() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Showings (
                        id TEXT PRIMARY KEY,
                        movie_id INTEGER NOT NULL,
                        movie_title TEXT NOT NULL,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        id TEXT PRIMARY KEY,
                        showing_id TEXT NOT NULL,
                        movie_id INTEGER NOT NULL,
                        movie_title TEXT NOT NULL,
                        user_id TEXT NOT NULL,
                        seat_ids TEXT NOT NULL,
                        group_size INTEGER NOT NULL CHECK (group_size > 0),
                        constraints_json TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'CONFIRMED',
                        created_at TEXT NOT NULL,
                        cancelled_at TEXT,
                        FOREIGN KEY (showing_id) REFERENCES Showings(id)
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Seats (
                        showing_id TEXT NOT NULL,
                        seat_id TEXT NOT NULL,
                        row_label TEXT NOT NULL,
                        seat_number INTEGER NOT NULL CHECK (seat_number > 0),
                        category TEXT NOT NULL,
                        age_restriction INTEGER,
                        status TEXT NOT NULL
                            CHECK (status IN ('available', 'booked', 'broken')),
                        booking_id TEXT,
                        PRIMARY KEY (showing_id, seat_id),
                        FOREIGN KEY (showing_id) REFERENCES Showings(id),
                        FOREIGN KEY (booking_id) REFERENCES Bookings(id)
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_bookings_user_status
                    ON Bookings(user_id, status);
                    """
                )
                conn.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_seats_showing_status
                    ON Seats(showing_id, status);
                    """
                )
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def create_showing(self, showing: Showing, seats: Sequence[Seat]) -> bool:
        """Insert a showing and its seat inventory; False if the id already exists."""
        try:
            with self._write_transaction() as conn:
                existing = conn.execute(
                    "SELECT 1 FROM Showings WHERE id = ?;",
                    (showing.showing_id,),
                ).fetchone()
                if existing is not None:
                    return False
                conn.execute(
                    "INSERT INTO Showings (id, movie_id, movie_title) VALUES (?, ?, ?);",
                    (showing.showing_id, showing.movie_id, showing.movie_title),
                )
                self._insert_seats(conn, showing.showing_id, seats)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Showing creation failed: {exc}") from exc
        logger.info(
            "Showing created | showing_id=%s | seats=%s",
            showing.showing_id,
            len(seats),
        )
        return True

    @staticmethod
    def _insert_seats(
        conn: sqlite3.Connection,
        showing_id: str,
        seats: Sequence[Seat],
    ) -> None:
        conn.executemany(
            """
            INSERT INTO Seats (
                showing_id,
                seat_id,
                row_label,
                seat_number,
                category,
                age_restriction,
                status,
                booking_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    showing_id,
                    seat.seat_id,
                    seat.row,
                    seat.number,
                    seat.category.value,
                    seat.age_restriction,
                    seat.status.value,
                    seat.booking_id,
                )
                for seat in seats
            ],
        )

    def replace_showing_seats(self, showing_id: str, seats: Sequence[Seat]) -> bool:
        """Swap in a regenerated layout; refused while any seat is booked."""
        try:
            with self._write_transaction() as conn:
                booked = conn.execute(
                    """
                    SELECT COUNT(*) AS count
                    FROM Seats
                    WHERE showing_id = ? AND status = 'booked';
                    """,
                    (showing_id,),
                ).fetchone()
                if int(booked["count"]) > 0:
                    return False
                conn.execute("DELETE FROM Seats WHERE showing_id = ?;", (showing_id,))
                self._insert_seats(conn, showing_id, seats)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Seat layout replacement failed: {exc}") from exc
        return True

    def get_showing(self, showing_id: str) -> Optional[Showing]:
        with self._read() as conn:
            row = conn.execute(
                "SELECT id, movie_id, movie_title FROM Showings WHERE id = ?;",
                (showing_id,),
            ).fetchone()
        if row is None:
            return None
        return Showing(
            showing_id=str(row["id"]),
            movie_id=int(row["movie_id"]),
            movie_title=str(row["movie_title"]),
        )

    def list_showings(self) -> List[Showing]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT id, movie_id, movie_title FROM Showings ORDER BY created_at ASC, id ASC;"
            ).fetchall()
        return [
            Showing(
                showing_id=str(row["id"]),
                movie_id=int(row["movie_id"]),
                movie_title=str(row["movie_title"]),
            )
            for row in rows
        ]

    def get_seats_for_showing(self, showing_id: str) -> List[Seat]:
        """Return a snapshot of the showing's seat inventory in hall order."""
        with self._read() as conn:
            rows = conn.execute(
                """
                SELECT
                    seat_id,
                    row_label,
                    seat_number,
                    category,
                    age_restriction,
                    status,
                    booking_id
                FROM Seats
                WHERE showing_id = ?
                ORDER BY row_label ASC, seat_number ASC;
                """,
                (showing_id,),
            ).fetchall()
        return [
            Seat(
                seat_id=str(row["seat_id"]),
                row=str(row["row_label"]),
                number=int(row["seat_number"]),
                status=SeatStatus(row["status"]),
                category=SeatCategory(row["category"]),
                age_restriction=(
                    int(row["age_restriction"]) if row["age_restriction"] is not None else None
                ),
                booking_id=row["booking_id"],
            )
            for row in rows
        ]

    def book_seats(self, booking: Booking) -> None:
        """Book every seat of `booking` or none of them.

        Raises SeatsUnavailableError, after rolling back the booking row, when
        any seat is no longer available.
        """
        placeholders = ",".join("?" for _ in booking.seat_ids)
        with self._write_transaction() as conn:
            conn.execute(
                """
                INSERT INTO Bookings (
                    id,
                    showing_id,
                    movie_id,
                    movie_title,
                    user_id,
                    seat_ids,
                    group_size,
                    constraints_json,
                    status,
                    created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    booking.booking_id,
                    booking.showing_id,
                    booking.movie_id,
                    booking.movie_title,
                    booking.user_id,
                    json.dumps(list(booking.seat_ids)),
                    booking.group_size,
                    json.dumps(booking.constraints.to_dict()),
                    booking.status.value,
                    booking.created_at,
                ),
            )
            cursor = conn.execute(
                f"""
                UPDATE Seats
                SET status = 'booked', booking_id = ?
                WHERE showing_id = ?
                  AND status = 'available'
                  AND seat_id IN ({placeholders});
                """,
                (booking.booking_id, booking.showing_id, *booking.seat_ids),
            )
            if cursor.rowcount == len(booking.seat_ids):
                return
            taken = conn.execute(
                f"""
                SELECT seat_id
                FROM Seats
                WHERE showing_id = ?
                  AND seat_id IN ({placeholders})
                  AND (booking_id IS NULL OR booking_id != ?);
                """,
                (booking.showing_id, *booking.seat_ids, booking.booking_id),
            ).fetchall()
            conflicts = sorted(str(row["seat_id"]) for row in taken)
            raise SeatsUnavailableError(conflicts or sorted(booking.seat_ids))

    def cancel_booking(self, booking_id: str, cancelled_at: str) -> bool:
        """Release a confirmed booking's seats; False if it was not confirmed."""
        with self._write_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE Bookings
                SET status = 'CANCELLED', cancelled_at = ?
                WHERE id = ? AND status = 'CONFIRMED';
                """,
                (cancelled_at, booking_id),
            )
            if cursor.rowcount == 0:
                return False
            conn.execute(
                """
                UPDATE Seats
                SET status = 'available', booking_id = NULL
                WHERE booking_id = ? AND status = 'booked';
                """,
                (booking_id,),
            )
        return True

    @staticmethod
    def _to_booking(row: sqlite3.Row) -> Booking:
        return Booking(
            booking_id=str(row["id"]),
            showing_id=str(row["showing_id"]),
            movie_id=int(row["movie_id"]),
            movie_title=str(row["movie_title"]),
            user_id=str(row["user_id"]),
            seat_ids=tuple(json.loads(row["seat_ids"])),
            group_size=int(row["group_size"]),
            constraints=GroupConstraints(**json.loads(row["constraints_json"])),
            created_at=str(row["created_at"]),
            status=BookingStatus(row["status"]),
        )

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM Bookings WHERE id = ?;",
                (booking_id,),
            ).fetchone()
        if row is None:
            return None
        return self._to_booking(row)

    def list_bookings(
        self,
        user_id: Optional[str] = None,
        include_cancelled: bool = False,
    ) -> List[Booking]:
        """Return bookings newest first, optionally for a single user."""
        clauses: list[str] = []
        params: list[str] = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if not include_cancelled:
            clauses.append("status = 'CONFIRMED'")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._read() as conn:
            rows = conn.execute(
                f"SELECT * FROM Bookings {where} ORDER BY created_at DESC, id ASC;",
                tuple(params),
            ).fetchall()
        return [self._to_booking(row) for row in rows]

    def count_bookings(self, status: Optional[BookingStatus] = None) -> int:
        with self._read() as conn:
            if status is None:
                row = conn.execute("SELECT COUNT(*) AS count FROM Bookings;").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS count FROM Bookings WHERE status = ?;",
                    (status.value,),
                ).fetchone()
        return int(row["count"])
